"""OSC transport to the external synthesis engine.

Triggers are sent as two messages:

- ``/instrument <track> 1 <note> [<note> ...] <key> <value> ...``
- ``/sampler <path> <track> <key> <value> ...``

followed by named parameters (``"pan", 0.0, "lowPassFilter", 20000.0, ...``)
so the receiving side can read them by name.  ``/stop`` silences every voice.

Sending is fire-and-forget over UDP.  A failed send is logged and dropped; it
never reaches the sequencer.
"""

import logging
import typing

import pythonosc.udp_client

import trackplay.triggers


logger = logging.getLogger(__name__)


def instrument_args (trigger: trackplay.triggers.InstrumentTrigger) -> typing.List[typing.Any]:

	"""Build the argument list of an ``/instrument`` message."""

	args: typing.List[typing.Any] = [trigger.track, 1]
	args.extend(float(note) for note in trigger.notes)

	args.extend([
		"velocity", float(trigger.velocity),
		"trackVolume", float(trigger.level_db),
		"attack", float(trigger.attack),
		"decay", float(trigger.decay),
		"sustain", float(trigger.sustain),
		"release", float(trigger.release),
		"duration", float(trigger.duration),
		"pan", float(trigger.pan),
		"lowPassFilter", float(trigger.low_pass),
		"highPassFilter", float(trigger.high_pass),
		"effectComb", float(trigger.comb),
		"effectReverb", float(trigger.reverb),
	])

	soundmaker = trigger.soundmaker

	if soundmaker is not None:

		def normalized (value: typing.Optional[int]) -> float:
			return 0.0 if value is None else value / 254.0

		args.extend([
			"soundMaker", soundmaker.name,
			"valueA", normalized(soundmaker.a),
			"valueB", normalized(soundmaker.b),
			"valueC", normalized(soundmaker.c),
			"valueD", normalized(soundmaker.d),
			"preset", -1 if soundmaker.preset is None else soundmaker.preset,
		])

	return args


def sampler_args (trigger: trackplay.triggers.SamplerTrigger) -> typing.List[typing.Any]:

	"""Build the argument list of a ``/sampler`` message."""

	retrigger = trigger.retrigger
	timestretch = trigger.timestretch

	args: typing.List[typing.Any] = [
		trigger.path,
		trigger.track,
		"trackVolume", float(trigger.level_db),
		"sliceCount", trigger.slice_count,
		"sliceNum", trigger.slice_index,
		"sliceDurationBeats", float(trigger.slice_duration_beats),
		"bpmSource", float(trigger.bpm_source),
		"bpmTarget", float(trigger.bpm_target),
		"pitch", float(trigger.pitch),
		"gate", trigger.gate,
		"retrigNumTotal", retrigger.times if retrigger else 0,
		"retrigRateChangeBeats", float(retrigger.beats) if retrigger else 0.0,
		"retrigRateStart", float(retrigger.rate_start) if retrigger else 0.0,
		"retrigRateEnd", float(retrigger.rate_end) if retrigger else 0.0,
		"retrigPitchChange", float(retrigger.pitch_change) if retrigger else 0.0,
		"retrigVolumeChange", float(retrigger.volume_db) if retrigger else 0.0,
		"retrigFinalPitchToStart", int(retrigger.final_pitch_to_start) if retrigger else 0,
		"retrigFinalVolumeToStart", int(retrigger.final_volume_to_start) if retrigger else 0,
		"effectTimestretchStart", float(timestretch.start) if timestretch else 0.0,
		"effectTimestretchEnd", float(timestretch.end) if timestretch else 0.0,
		"effectTimestretchBeats", float(timestretch.beats) if timestretch else 0.0,
		"effectReverse", int(trigger.reverse),
		"pan", float(trigger.pan),
		"lowPassFilter", float(trigger.low_pass),
		"highPassFilter", float(trigger.high_pass),
		"effectComb", float(trigger.comb),
		"effectReverb", float(trigger.reverb),
		"deltaTime", float(trigger.delta_seconds),
	]

	ducking = trigger.ducking

	if ducking is not None:
		args.extend([
			"duckingType", int(ducking.type),
			"duckingBus", ducking.bus,
			"duckingDepth", float(ducking.depth),
			"duckingAttack", float(ducking.attack),
			"duckingRelease", float(ducking.release),
			"duckingThresh", float(ducking.thresh),
		])

	return args


class OscTransport:

	"""Send triggers to the synthesis engine over OSC/UDP."""

	def __init__ (self, host: str = "127.0.0.1", port: int = 57120) -> None:

		self.host = host
		self.port = port
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = pythonosc.udp_client.SimpleUDPClient(host, port)

		logger.info(f"OSC sending to {host}:{port}")

	def send (self, address: str, args: typing.Sequence[typing.Any]) -> None:

		"""Send one OSC message.  Errors are logged, not raised."""

		if self._client is None:
			return

		try:
			self._client.send_message(address, list(args))
		except Exception as e:
			logger.warning(f"OSC send error ({address}): {e}")

	def play_instrument (self, trigger: trackplay.triggers.InstrumentTrigger) -> None:

		self.send("/instrument", instrument_args(trigger))

	def play_sampler (self, trigger: trackplay.triggers.SamplerTrigger) -> None:

		self.send("/sampler", sampler_args(trigger))

	def stop_all (self) -> None:

		self.send("/stop", [])

	def close (self) -> None:

		self._client = None
