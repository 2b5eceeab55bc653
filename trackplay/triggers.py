"""Resolved trigger events handed to the transport.

A trigger is a phrase row after sticky-column inheritance, virtual defaults,
modulation and value mapping: everything the synth needs, in real units.
"""

import dataclasses
import typing

import trackplay.model


@dataclasses.dataclass
class RetriggerParams:

	"""Retrigger burst attached to a sampler trigger."""

	times: int
	beats: float
	rate_start: float
	rate_end: float
	pitch_change: float
	volume_db: float
	final_pitch_to_start: bool = False
	final_volume_to_start: bool = False


@dataclasses.dataclass
class TimestretchParams:

	"""Time-stretch window attached to a sampler trigger."""

	start: float
	end: float
	beats: float


@dataclasses.dataclass
class InstrumentTrigger:

	"""
	Play one or more notes on a synth voice.

	``notes`` holds the chord-expanded notes, root (or lowest rotation) first.
	``velocity`` is 0.0-1.0.  Times are in seconds.
	"""

	track: int
	notes: typing.List[int]
	velocity: float = 64 / 127
	gate: int = 0x80
	delta_ticks: int = 1
	delta_seconds: float = 0.0
	duration: float = 0.0
	attack: float = 0.02
	decay: float = 0.0
	sustain: float = 0.0
	release: float = 0.02
	pan: float = 0.0
	low_pass: float = 20000.0
	high_pass: float = 20.0
	comb: float = 0.0
	reverb: float = 0.0
	level_db: float = 0.0
	arpeggio_index: typing.Optional[int] = None
	midi: typing.Optional[trackplay.model.MidiSettings] = None
	soundmaker: typing.Optional[trackplay.model.SoundMakerSettings] = None

	@property
	def note (self) -> int:

		return self.notes[0]


@dataclasses.dataclass
class SamplerTrigger:

	"""
	Play one slice of a sample file.

	``pitch`` is in semitones, ``pan`` -1.0 to 1.0, filters in Hz.
	``retrigger`` and ``timestretch`` are filled in by the effect scheduler
	when the row starts an episode.
	"""

	track: int
	path: str
	slice_index: int
	slice_count: int
	bpm_source: float
	bpm_target: float
	pitch: float = 0.0
	gate: int = 0x80
	delta_ticks: int = 1
	delta_seconds: float = 0.0
	slice_duration_beats: float = 0.0
	pan: float = 0.0
	low_pass: float = 20000.0
	high_pass: float = 20.0
	comb: float = 0.0
	reverb: float = 0.0
	reverse: bool = False
	level_db: float = 0.0
	ducking: typing.Optional[trackplay.model.DuckingSettings] = None
	retrigger_index: typing.Optional[int] = None
	timestretch_index: typing.Optional[int] = None
	retrigger: typing.Optional[RetriggerParams] = None
	timestretch: typing.Optional[TimestretchParams] = None


Trigger = typing.Union[InstrumentTrigger, SamplerTrigger]


@dataclasses.dataclass
class ArpeggioStep:

	"""
	One arpeggiated note, due ``offset`` ticks after the row that started it.

	The engine sends ``trigger`` (a copy of the row's instrument trigger with a
	single note) ``delay`` ticks into the current tick.
	"""

	track: int
	trigger: InstrumentTrigger
	offset: float
	delay: float = 0.0
