"""The playback clock: one tick every ``60 / (bpm * ppq)`` seconds.

The clock only knows about tempo and time.  Each tick it awaits the
``on_tick`` coroutine it was started with; the engine uses that to advance the
sequencer.  Tempo changes take effect from the next scheduled tick: the
period is recomputed after every tick, and the next deadline is the previous
deadline plus the new period, so the clock neither drifts nor jumps.
"""

import asyncio
import logging
import time
import typing

import trackplay.constants


logger = logging.getLogger(__name__)


TickCallback = typing.Callable[[int], typing.Awaitable[None]]


def clamp_bpm (bpm: float) -> float:

	"""Clamp a tempo to the supported range, warning when it changes."""

	clamped = max(trackplay.constants.BPM_MIN, min(trackplay.constants.BPM_MAX, float(bpm)))

	if clamped != bpm:
		logger.warning(f"BPM {bpm} out of range - clamped to {clamped:.2f}")

	return clamped


def clamp_ppq (ppq: int) -> int:

	"""Clamp pulses-per-quarter-note to the supported range, warning when it changes."""

	clamped = max(trackplay.constants.PPQ_MIN, min(trackplay.constants.PPQ_MAX, int(ppq)))

	if clamped != ppq:
		logger.warning(f"PPQ {ppq} out of range - clamped to {clamped}")

	return clamped


def tick_period (bpm: float, ppq: int) -> float:

	"""
	Return the tick period in seconds.

	Out-of-range values are clamped first, so this never divides by zero:

	```python
	tick_period(120, 2)  # → 0.25
	tick_period(0, 4)    # → 15.0 (BPM clamped to 1)
	```
	"""

	return 60.0 / (clamp_bpm(bpm) * clamp_ppq(ppq))


class Clock:

	"""
	Async tick source.

	In normal mode the loop sleeps until each deadline, finishing with a short
	busy-wait (``spin_wait``) for tighter timing.  In ``render_mode`` it
	simulates time instead, firing ticks back to back; tests and offline runs
	use this together with ``max_ticks``.
	"""

	def __init__ (
		self,
		bpm: float = trackplay.constants.DEFAULT_BPM,
		ppq: int = trackplay.constants.DEFAULT_PPQ,
		spin_wait: bool = True,
		render_mode: bool = False,
		max_ticks: typing.Optional[int] = None
	) -> None:

		self._bpm = clamp_bpm(bpm)
		self._ppq = clamp_ppq(ppq)

		self.spin_wait = spin_wait
		self.render_mode = render_mode
		self.max_ticks = max_ticks

		# Sleep to within this many seconds of the deadline, then spin.
		self._spin_threshold: float = 0.001

		self.running = False
		self.tick_count = 0
		self.start_time = 0.0
		self.elapsed_seconds = 0.0

	@property
	def bpm (self) -> float:

		return self._bpm

	@bpm.setter
	def bpm (self, value: float) -> None:

		self._bpm = clamp_bpm(value)
		logger.info(f"BPM set to {self._bpm:.2f}")

	@property
	def ppq (self) -> int:

		return self._ppq

	@ppq.setter
	def ppq (self, value: int) -> None:

		self._ppq = clamp_ppq(value)
		logger.info(f"PPQ set to {self._ppq}")

	@property
	def period (self) -> float:

		"""Seconds per tick at the current tempo."""

		return 60.0 / (self._bpm * self._ppq)

	def stop (self) -> None:

		"""Ask the run loop to finish after the current tick."""

		self.running = False

	async def run (self, on_tick: TickCallback) -> None:

		"""
		Tick until :meth:`stop` is called or ``max_ticks`` ticks have fired.
		"""

		self.running = True
		self.tick_count = 0
		self.elapsed_seconds = 0.0
		self.start_time = time.perf_counter()

		next_tick_time = self.start_time

		while self.running:

			current_time = next_tick_time if self.render_mode else time.perf_counter()

			while current_time >= next_tick_time:

				await on_tick(self.tick_count)
				self.tick_count += 1

				period = self.period
				next_tick_time += period
				self.elapsed_seconds += period

				if self.max_ticks is not None and self.tick_count >= self.max_ticks:
					self.running = False

				if not self.running:
					break

			if not self.running:
				break

			if self.render_mode:
				# Let tasks queued during the tick run before the next one.
				await asyncio.sleep(0)
				continue

			sleep_time = next_tick_time - time.perf_counter()

			if sleep_time > 0:
				if self.spin_wait and sleep_time > self._spin_threshold:
					await asyncio.sleep(sleep_time - self._spin_threshold)
					while time.perf_counter() < next_tick_time:
						pass
				else:
					await asyncio.sleep(sleep_time)

		logger.debug(f"Clock stopped after {self.tick_count} ticks")
