"""Turn a phrase row into a trigger.

The resolver reads one phrase row in the context of its track and produces an
:class:`~trackplay.triggers.InstrumentTrigger` or
:class:`~trackplay.triggers.SamplerTrigger`, or ``None`` when the row makes no
sound.  It applies, in order:

- sticky columns: an unset note, delta-time, file, pan, filter, comb, reverb,
  MIDI, SoundMaker or envelope cell inherits the nearest set value above it in
  the same phrase;
- virtual defaults for pitch, gate, pan and velocity;
- modulation (increment, then :func:`trackplay.modulation.modulate`);
- chord expansion on Instrument tracks;
- mapping of hex cell values (00-FE) to real units.

The resolver never schedules anything; effect episodes are the effect
scheduler's job.
"""

import dataclasses
import logging
import random
import typing

import trackplay.chords
import trackplay.clock
import trackplay.constants
import trackplay.model
import trackplay.modulation
import trackplay.triggers


logger = logging.getLogger(__name__)


# Columns that inherit the last set value above them in the phrase.
STICKY_COLUMNS: typing.Tuple[str, ...] = (
	"note", "delta_time", "file",
	"pan", "low_pass", "high_pass", "comb", "reverb",
	"midi", "soundmaker", "attack", "decay", "sustain", "release",
)


@dataclasses.dataclass
class StickyValues:

	"""The last non-empty note, delta-time and file a track actually played."""

	note: typing.Optional[int] = None
	delta_time: typing.Optional[int] = None
	file: typing.Optional[int] = None


def effective_value (phrase: trackplay.model.Phrase, row_index: int, column: str) -> typing.Optional[int]:

	"""Return the value of ``column`` at ``row_index``, or the nearest set value above it."""

	for index in range(min(row_index, len(phrase.rows) - 1), -1, -1):
		value = getattr(phrase.rows[index], column)
		if value is not None:
			return value

	return None


# Value mapping.  Hex cells run 00-FE.

def pitch_semitones (value: int) -> float:

	"""0x80 is no detune; 00-FE spans -24 to about +23.6 semitones."""

	return (value - 128) / 128 * 24


def pan_position (value: typing.Optional[int]) -> float:

	if value is None or value == trackplay.constants.VIRTUAL_PAN:
		return 0.0

	return (value - 127) / 127


def low_pass_hz (value: typing.Optional[int]) -> float:

	"""00 is fully open (20 kHz), FE closes to 20 Hz, exponentially."""

	if value is None:
		return trackplay.constants.LOW_PASS_OPEN

	span = trackplay.constants.FILTER_LOG_MAX - trackplay.constants.FILTER_LOG_MIN
	return 10 ** (trackplay.constants.FILTER_LOG_MAX - value / trackplay.constants.CELL_MAX * span)


def high_pass_hz (value: typing.Optional[int]) -> float:

	"""00 is fully open (20 Hz), FE closes to 20 kHz, exponentially."""

	if value is None:
		return trackplay.constants.HIGH_PASS_OPEN

	span = trackplay.constants.FILTER_LOG_MAX - trackplay.constants.FILTER_LOG_MIN
	return 10 ** (trackplay.constants.FILTER_LOG_MIN + value / trackplay.constants.CELL_MAX * span)


def unit_amount (value: typing.Optional[int]) -> float:

	"""Map 00-FE to 0.0-1.0 (comb, reverb, sustain); unset is 0."""

	if value is None or not 0 <= value <= trackplay.constants.CELL_MAX:
		return 0.0

	return value / trackplay.constants.CELL_MAX


def envelope_seconds (value: typing.Optional[int]) -> float:

	"""Attack / release: exponential from 0.02 s (00) to 30 s (FE)."""

	low = trackplay.constants.ENVELOPE_MIN_SECONDS

	if value is None or not 0 <= value <= trackplay.constants.CELL_MAX:
		return low

	high = trackplay.constants.ENVELOPE_MAX_SECONDS
	return low * (high / low) ** (value / trackplay.constants.CELL_MAX)


def decay_seconds (value: typing.Optional[int]) -> float:

	"""Decay: linear from 0 s (00) to 30 s (FE)."""

	return unit_amount(value) * trackplay.constants.ENVELOPE_MAX_SECONDS


class Resolver:

	"""
	Resolve phrase rows against a project.

	The resolver is stateless apart from the project reference; per-track state
	(random stream, increment counters, sticky carry-over) is passed in by the
	sequencer so each track stays independent.
	"""

	def __init__ (self, project: trackplay.model.Project) -> None:

		self.project = project

	def resolve (
		self,
		track: int,
		phrase: trackplay.model.Phrase,
		row_index: int,
		rng: random.Random,
		increment_counters: typing.Dict[int, int],
		sticky: typing.Optional[StickyValues] = None
	) -> typing.Optional[trackplay.triggers.Trigger]:

		"""
		Resolve the row at ``row_index`` of ``phrase`` for ``track``.

		Returns ``None`` when the row does not trigger (unset or non-positive
		delta-time, no note anywhere above it, or, on a Sampler track, no
		usable sample file).
		"""

		row = phrase.row(row_index)

		if row is None or not row.playable:
			return None

		kind = self.project.track_kind(track)

		def sticky_value (column: str) -> typing.Optional[int]:
			if column in STICKY_COLUMNS:
				return effective_value(phrase, row_index, column)
			return getattr(row, column)

		note = sticky_value("note")

		if note is None:
			logger.debug(f"Track {track} row {row_index:02X}: no note - silent")
			return None

		note = self._modulate(note, row, rng, increment_counters)

		delta_ticks = row.delta_time
		assert delta_ticks is not None
		delta_seconds = delta_ticks * trackplay.clock.tick_period(self.project.bpm, self.project.ppq)

		gate = row.gate if row.gate is not None else trackplay.constants.VIRTUAL_GATE
		pan = sticky_value("pan")

		common: typing.Dict[str, typing.Any] = dict(
			track = track,
			gate = gate,
			delta_ticks = delta_ticks,
			delta_seconds = delta_seconds,
			pan = pan_position(pan),
			low_pass = low_pass_hz(sticky_value("low_pass")),
			high_pass = high_pass_hz(sticky_value("high_pass")),
			comb = unit_amount(sticky_value("comb")),
			reverb = unit_amount(sticky_value("reverb")),
			level_db = self.project.track_level(track),
		)

		trigger: typing.Optional[trackplay.triggers.Trigger]

		if kind.resolves_note:
			trigger = self._instrument(row, note, common, sticky_value)
			file_index = None

		else:
			file_index = sticky_value("file")
			trigger = self._sampler(row, note, file_index, common)

		if trigger is not None and sticky is not None:
			sticky.note = note
			sticky.delta_time = delta_ticks
			if file_index is not None:
				sticky.file = file_index

		return trigger

	def _modulate (
		self,
		note: int,
		row: trackplay.model.PhraseRow,
		rng: random.Random,
		increment_counters: typing.Dict[int, int]
	) -> int:

		"""Apply the row's modulation entry, if it resolves to one."""

		settings = self.project.modulate.get(row.modulate)

		if settings is None:
			return note

		assert row.modulate is not None

		if settings.increment > 0:
			counter = increment_counters.get(row.modulate, 0)
			note = trackplay.modulation.apply_increment(note, settings.increment, counter, settings.wrap)
			increment_counters[row.modulate] = counter + 1

		return trackplay.modulation.modulate(note, settings, rng)

	def _instrument (
		self,
		row: trackplay.model.PhraseRow,
		note: int,
		common: typing.Dict[str, typing.Any],
		sticky_value: typing.Callable[[str], typing.Optional[int]]
	) -> trackplay.triggers.InstrumentTrigger:

		notes = [
			trackplay.modulation.clamp_note(n)
			for n in trackplay.chords.chord_notes(note, row.chord, row.chord_addition, row.chord_transpose)
		]

		velocity = row.velocity if row.velocity is not None else trackplay.constants.VIRTUAL_VELOCITY
		velocity = max(0, min(127, velocity))

		return trackplay.triggers.InstrumentTrigger(
			notes = notes,
			velocity = velocity / 127,
			duration = common["delta_seconds"] * common["gate"] / 128,
			attack = envelope_seconds(sticky_value("attack")),
			decay = decay_seconds(sticky_value("decay")),
			sustain = unit_amount(sticky_value("sustain")),
			release = envelope_seconds(sticky_value("release")),
			arpeggio_index = row.arpeggio,
			midi = self.project.midi.get(sticky_value("midi")),
			soundmaker = self.project.soundmaker.get(sticky_value("soundmaker")),
			**common
		)

	def _sampler (
		self,
		row: trackplay.model.PhraseRow,
		note: int,
		file_index: typing.Optional[int],
		common: typing.Dict[str, typing.Any]
	) -> typing.Optional[trackplay.triggers.SamplerTrigger]:

		path = self.project.file_path(file_index)

		if path is None:
			logger.debug(f"Track {common['track']}: no sample file for file index {file_index} - silent")
			return None

		metadata = self.project.metadata_for(path)
		slice_count = metadata.slices if metadata.slices > 0 else trackplay.constants.DEFAULT_FILE_SLICES

		pitch = row.pitch if row.pitch is not None else trackplay.constants.VIRTUAL_PITCH

		return trackplay.triggers.SamplerTrigger(
			path = path,
			slice_index = note % slice_count,
			slice_count = slice_count,
			bpm_source = metadata.bpm,
			bpm_target = self.project.bpm,
			pitch = pitch_semitones(pitch),
			slice_duration_beats = (1.0 / max(self.project.ppq, 1)) * (common["gate"] / 96.0),
			reverse = bool(row.reverse),
			ducking = self.project.ducking.get(row.ducking),
			retrigger_index = row.retrigger,
			timestretch_index = row.timestretch,
			**common
		)
