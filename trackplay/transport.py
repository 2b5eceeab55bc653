"""The boundary between the sequencer and the outside world.

The sequencer produces triggers; a :class:`TriggerTransport` delivers them.
:class:`Emitter` routes each trigger to the right transport call (and, for
Instrument rows with MIDI settings, to a MIDI port as well) and swallows
delivery errors after logging them, so a failed send never stalls playback.
"""

import logging
import typing

import trackplay.midi_utils
import trackplay.triggers


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class TriggerTransport (typing.Protocol):

	"""Anything that can deliver triggers to a synthesis engine."""

	def play_instrument (self, trigger: trackplay.triggers.InstrumentTrigger) -> None:
		...

	def play_sampler (self, trigger: trackplay.triggers.SamplerTrigger) -> None:
		...

	def stop_all (self) -> None:
		...

	def close (self) -> None:
		...


class Emitter:

	"""
	Dispatch resolved triggers.  No scheduling decisions are made here.
	"""

	def __init__ (
		self,
		transport: TriggerTransport,
		midi: typing.Optional[trackplay.midi_utils.MidiOutput] = None
	) -> None:

		self.transport = transport
		self.midi = midi

	def emit (self, trigger: trackplay.triggers.Trigger) -> None:

		"""Send one trigger.  Errors are logged and dropped."""

		try:
			if isinstance(trigger, trackplay.triggers.SamplerTrigger):
				self.transport.play_sampler(trigger)

			else:
				self.transport.play_instrument(trigger)

				if self.midi is not None and trigger.midi is not None:
					self.midi.play(trigger)

		except Exception as exc:
			logger.warning(f"Trigger for track {trigger.track} failed: {exc}")

	def stop_all (self) -> None:

		try:
			self.transport.stop_all()
		except Exception as exc:
			logger.warning(f"Stop-all failed: {exc}")

	def close (self) -> None:

		for closeable in (self.transport, self.midi):
			if closeable is None:
				continue
			try:
				closeable.close()
			except Exception as exc:
				logger.warning(f"Failed to close {type(closeable).__name__}: {exc}")
