"""Playback notifications for observers (UI, loggers, recorders).

The engine emits:

- ``"start"`` with the list of tracks that started
- ``"stop"`` when the clock halts
- ``"tick"`` with the :class:`~trackplay.sequencer.TickResult` of each tick
- ``"trigger"`` with each trigger as it is dispatched
- ``"track_stopped"`` with the track number when a track finishes on its own

A listener that raises is logged and skipped; it never interrupts playback.
"""

import asyncio
import logging
import typing


logger = logging.getLogger(__name__)


Listener = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named events with plain and coroutine listeners.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[Listener]] = {}

	def on (self, event_name: str, listener: Listener) -> None:

		"""Register ``listener`` for ``event_name``."""

		self._listeners.setdefault(event_name, []).append(listener)

	def off (self, event_name: str, listener: Listener) -> None:

		"""
		Unregister a listener.

		Raises ``ValueError`` if it was never registered for ``event_name``.
		"""

		listeners = self._listeners.get(event_name, [])

		if listener not in listeners:
			raise ValueError(f"Listener not registered for event {event_name!r}")

		listeners.remove(listener)

	def has_listeners (self, event_name: str) -> bool:

		return bool(self._listeners.get(event_name))

	def emit_sync (self, event_name: str, *args: typing.Any) -> None:

		"""
		Call plain listeners now.  Coroutine listeners are rejected with ``ValueError``.
		"""

		for listener in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(listener):
				raise ValueError(f"Async listener registered for {event_name!r} cannot be called from emit_sync")

			self._call(event_name, listener, *args)

	async def emit_async (self, event_name: str, *args: typing.Any) -> None:

		"""
		Call plain listeners now and await coroutine listeners together.
		"""

		pending: typing.List[typing.Awaitable[typing.Any]] = []

		for listener in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(listener):
				pending.append(self._await(event_name, listener, *args))

			else:
				self._call(event_name, listener, *args)

		if pending:
			await asyncio.gather(*pending)

	def _call (self, event_name: str, listener: Listener, *args: typing.Any) -> None:

		try:
			listener(*args)
		except Exception as exc:
			logger.warning(f"Listener for {event_name!r} failed: {exc}")

	async def _await (self, event_name: str, listener: Listener, *args: typing.Any) -> None:

		try:
			await listener(*args)
		except Exception as exc:
			logger.warning(f"Listener for {event_name!r} failed: {exc}")
