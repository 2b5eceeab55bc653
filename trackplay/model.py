"""Composition data model: song grid, chain and phrase pools, settings tables.

The composition is a three-level hierarchy.  Each of the eight tracks owns a
column of the :class:`Song` grid; each song cell names a :class:`Chain`; each
chain row names a :class:`Phrase`; each phrase row carries the note, timing and
effect columns that the resolver turns into a trigger.

Instrument tracks and Sampler tracks read from separate chain/phrase pools.
Which pool a track uses is decided by its :class:`TrackKind`, so code that
walks the hierarchy asks ``project.pool_for(track)`` rather than threading a
flag around.

Every container is fixed-capacity and every accessor range-checks: reading a
missing or out-of-range index returns ``None`` (an empty cell), never raises.
Edits made while playback is running must go through the ``Project`` edit
methods (or hold ``project.lock``) so a tick never reads a half-applied edit.
"""

import dataclasses
import enum
import threading
import typing

import trackplay.constants


T = typing.TypeVar("T")


class TrackKind (enum.Enum):

	"""Which chain/phrase pool and which trigger a track produces."""

	INSTRUMENT = "instrument"
	SAMPLER = "sampler"

	@property
	def resolves_note (self) -> bool:

		"""Instrument rows resolve to (chord) notes for a synth voice."""

		return self is TrackKind.INSTRUMENT

	@property
	def resolves_sample (self) -> bool:

		"""Sampler rows resolve to a slice of a sample file."""

		return self is TrackKind.SAMPLER


@dataclasses.dataclass
class PhraseRow:

	"""
	One row of a phrase.  ``None`` in any column means "--" (unset).

	``delta_time`` is the playback gate: a positive value triggers the row and
	holds it for that many ticks; unset or zero means the row is skipped.

	The chord, arpeggio, midi, soundmaker, ADSR and velocity columns are only
	read on Instrument tracks.
	"""

	note: typing.Optional[int] = None
	pitch: typing.Optional[int] = None
	delta_time: typing.Optional[int] = None
	gate: typing.Optional[int] = None
	retrigger: typing.Optional[int] = None
	timestretch: typing.Optional[int] = None
	modulate: typing.Optional[int] = None
	reverse: typing.Optional[int] = None
	pan: typing.Optional[int] = None
	low_pass: typing.Optional[int] = None
	high_pass: typing.Optional[int] = None
	comb: typing.Optional[int] = None
	reverb: typing.Optional[int] = None
	ducking: typing.Optional[int] = None
	file: typing.Optional[int] = None
	chord: typing.Optional[int] = None
	chord_addition: typing.Optional[int] = None
	chord_transpose: typing.Optional[int] = None
	arpeggio: typing.Optional[int] = None
	midi: typing.Optional[int] = None
	soundmaker: typing.Optional[int] = None
	attack: typing.Optional[int] = None
	decay: typing.Optional[int] = None
	sustain: typing.Optional[int] = None
	release: typing.Optional[int] = None
	velocity: typing.Optional[int] = None

	def is_set (self, column: str) -> bool:

		"""Return True when ``column`` holds a value (is not "--")."""

		return getattr(self, column) is not None

	@property
	def playable (self) -> bool:

		"""A row triggers only when its delta-time is positive."""

		return self.delta_time is not None and self.delta_time > 0


# Column names in save-file order.
PHRASE_COLUMNS: typing.Tuple[str, ...] = tuple(field.name for field in dataclasses.fields(PhraseRow))


class Phrase:

	"""A fixed 255-row table of :class:`PhraseRow`."""

	def __init__ (self) -> None:

		self.rows: typing.List[PhraseRow] = [PhraseRow() for _ in range(trackplay.constants.PHRASE_ROWS)]

	def row (self, index: int) -> typing.Optional[PhraseRow]:

		"""Return the row at ``index``, or ``None`` when out of range."""

		if 0 <= index < len(self.rows):
			return self.rows[index]

		return None

	def has_playable_from (self, index: int) -> bool:

		"""Return True if any row at or after ``index`` would trigger."""

		return any(row.playable for row in self.rows[max(index, 0):])

	def is_empty (self) -> bool:

		"""A phrase with no playable row produces no sound."""

		return not self.has_playable_from(0)


class Chain:

	"""A fixed 16-row list of optional phrase ids."""

	def __init__ (self) -> None:

		self.rows: typing.List[typing.Optional[int]] = [None] * trackplay.constants.CHAIN_ROWS

	def phrase_at (self, row: int) -> typing.Optional[int]:

		"""Return the phrase id at ``row``, or ``None`` when empty or out of range."""

		if 0 <= row < len(self.rows):
			return self.rows[row]

		return None

	def has_phrase_from (self, row: int) -> bool:

		"""Return True if any row at or after ``row`` names a phrase."""

		return any(phrase_id is not None for phrase_id in self.rows[max(row, 0):])


class Song:

	"""The 8-track x 16-row grid of optional chain ids."""

	def __init__ (self) -> None:

		self.cells: typing.List[typing.List[typing.Optional[int]]] = [
			[None] * trackplay.constants.SONG_ROWS for _ in range(trackplay.constants.NUM_TRACKS)
		]

	def chain_at (self, track: int, row: int) -> typing.Optional[int]:

		"""Return the chain id for ``track`` at ``row``, or ``None``."""

		if not 0 <= track < len(self.cells):
			return None

		column = self.cells[track]

		if 0 <= row < len(column):
			return column[row]

		return None


class TrackPool:

	"""The chains and phrases used by every track of one :class:`TrackKind`."""

	def __init__ (self) -> None:

		self.chains: typing.List[Chain] = [Chain() for _ in range(trackplay.constants.TABLE_SIZE)]
		self.phrases: typing.List[Phrase] = [Phrase() for _ in range(trackplay.constants.TABLE_SIZE)]

	def chain (self, chain_id: typing.Optional[int]) -> typing.Optional[Chain]:

		"""Look up a chain; unset or out-of-range ids read as ``None``."""

		if chain_id is None or not 0 <= chain_id < len(self.chains):
			return None

		return self.chains[chain_id]

	def phrase (self, phrase_id: typing.Optional[int]) -> typing.Optional[Phrase]:

		"""Look up a phrase; unset or out-of-range ids read as ``None``."""

		if phrase_id is None or not 0 <= phrase_id < len(self.phrases):
			return None

		return self.phrases[phrase_id]


# ---------------------------------------------------------------------------
# Settings records
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class RetriggerSettings:

	"""
	A retrigger burst: ``times`` hits spread over ``beats`` beats.

	Attributes:
		times: Number of retriggers in the burst.
		start: Playback rate at the start of the burst.
		end: Playback rate at the end of the burst.
		beats: Length of the burst in beats.
		volume_db: Volume change across the burst (-16 to +16 dB).
		pitch_change: Pitch change across the burst (-24 to +24 semitones).
		final_pitch_to_start: Snap the last retrigger's pitch back to the start value.
		final_volume_to_start: Snap the last retrigger's volume back to the start value.
		every: Only every Nth row trigger starts a burst (1 = every trigger).
		probability: Percentage chance that an eligible trigger starts a burst.
	"""

	times: int = 0
	start: float = 0.0
	end: float = 0.0
	beats: float = 0.0
	volume_db: float = 0.0
	pitch_change: float = 0.0
	final_pitch_to_start: bool = False
	final_volume_to_start: bool = False
	every: int = 1
	probability: int = 100


@dataclasses.dataclass
class TimestretchSettings:

	"""A stretch ratio sliding from ``start`` to ``end`` over ``beats`` beats."""

	start: float = 0.0
	end: float = 0.0
	beats: float = 0.0
	every: int = 1
	probability: int = 100


@dataclasses.dataclass
class ModulateSettings:

	"""
	Note modulation applied when a row references this entry.

	Attributes:
		seed: -1 disables randomization, 0 draws from the track's random
			stream, any positive value draws from a generator seeded with it.
		irandom: Upper bound of the random draw (inclusive); 0 disables it.
		sub: Subtracted from the note.
		add: Added to the note.
		increment: Step added per application, multiplied by the wrapped counter.
		wrap: Counter modulus for ``increment`` (0 = never wrap).
		scale_root: Root pitch class of ``scale`` (0-11).
		scale: Scale name (see :data:`trackplay.intervals.SCALES`), "all" = off.
		probability: Percentage chance that modulation applies at all.
	"""

	seed: int = -1
	irandom: int = 0
	sub: int = 0
	add: int = 0
	increment: int = 0
	wrap: int = 0
	scale_root: int = 0
	scale: str = "all"
	probability: int = 100


class ArpeggioDirection (enum.IntEnum):

	NONE = 0
	UP = 1
	DOWN = 2


@dataclasses.dataclass
class ArpeggioRow:

	direction: ArpeggioDirection = ArpeggioDirection.NONE
	count: typing.Optional[int] = None
	divisor: typing.Optional[int] = None

	@property
	def active (self) -> bool:

		"""Rows with no direction, count or divisor are skipped."""

		return (
			self.direction != ArpeggioDirection.NONE
			and self.count is not None and self.count >= 0
			and self.divisor is not None and self.divisor > 0
		)


@dataclasses.dataclass
class ArpeggioSettings:

	rows: typing.List[ArpeggioRow] = dataclasses.field(
		default_factory=lambda: [ArpeggioRow() for _ in range(trackplay.constants.ARPEGGIO_ROWS)]
	)


class DuckingType (enum.IntEnum):

	NONE = 0
	DUCKING = 1
	DUCKED = 2


@dataclasses.dataclass
class DuckingSettings:

	"""Sidechain ducking: a ``DUCKING`` track pushes down ``DUCKED`` tracks on the same bus."""

	type: DuckingType = DuckingType.NONE
	bus: int = 0
	depth: float = 0.0
	attack: float = 0.0
	release: float = 0.0
	thresh: float = 0.0


@dataclasses.dataclass
class MidiSettings:

	"""Route an Instrument row to a MIDI output port as well as the synth."""

	device: str = "None"
	channel: int = 1

	@property
	def enabled (self) -> bool:

		return bool(self.device) and self.device != "None"


@dataclasses.dataclass
class SoundMakerSettings:

	"""Which synth voice an Instrument row plays, plus four macro parameters."""

	name: str = "None"
	a: typing.Optional[int] = None
	b: typing.Optional[int] = None
	c: typing.Optional[int] = None
	d: typing.Optional[int] = None
	preset: typing.Optional[int] = None


@dataclasses.dataclass
class FileMetadata:

	"""Tempo and slice count of a sample file."""

	bpm: float = trackplay.constants.DEFAULT_FILE_BPM
	slices: int = trackplay.constants.DEFAULT_FILE_SLICES


class SettingsTable (typing.Generic[T]):

	"""
	A fixed-capacity table of settings records addressed by a hex byte.

	Reads are forgiving: ``get(None)``, negative and out-of-range indices all
	return ``None`` so a dangling reference in a phrase row plays as "no effect".
	"""

	def __init__ (self, factory: typing.Callable[[], T], size: int = trackplay.constants.TABLE_SIZE) -> None:

		self._factory = factory
		self.entries: typing.List[T] = [factory() for _ in range(size)]

	def __len__ (self) -> int:

		return len(self.entries)

	def __iter__ (self) -> typing.Iterator[T]:

		return iter(self.entries)

	def get (self, index: typing.Optional[int]) -> typing.Optional[T]:

		"""Return the entry at ``index`` or ``None`` when it cannot be addressed."""

		if index is None or not 0 <= index < len(self.entries):
			return None

		return self.entries[index]

	def set (self, index: int, value: T) -> None:

		"""Replace the entry at ``index``.  Raises ``IndexError`` when out of range."""

		if not 0 <= index < len(self.entries):
			raise IndexError(f"Settings index {index} out of range (0-{len(self.entries) - 1})")

		self.entries[index] = value


class Project:

	"""
	Everything the playback engine reads: the composition, the settings tables,
	the sample file list and the tempo.

	The editor mutates a project while the engine plays it.  Both sides hold
	``lock`` (a re-entrant lock) for the duration of an edit or a tick.
	"""

	def __init__ (self, bpm: float = trackplay.constants.DEFAULT_BPM, ppq: int = trackplay.constants.DEFAULT_PPQ) -> None:

		self.lock = threading.RLock()

		self.bpm = bpm
		self.ppq = ppq

		self.song = Song()
		self.pools: typing.Dict[TrackKind, TrackPool] = {kind: TrackPool() for kind in TrackKind}

		self.track_kinds: typing.List[TrackKind] = [
			TrackKind.INSTRUMENT if track < trackplay.constants.FIRST_SAMPLER_TRACK else TrackKind.SAMPLER
			for track in range(trackplay.constants.NUM_TRACKS)
		]
		self.track_levels: typing.List[float] = [trackplay.constants.DEFAULT_TRACK_LEVEL_DB] * trackplay.constants.NUM_TRACKS

		self.retrigger: SettingsTable[RetriggerSettings] = SettingsTable(RetriggerSettings)
		self.timestretch: SettingsTable[TimestretchSettings] = SettingsTable(TimestretchSettings)
		self.modulate: SettingsTable[ModulateSettings] = SettingsTable(ModulateSettings)
		self.arpeggio: SettingsTable[ArpeggioSettings] = SettingsTable(ArpeggioSettings)
		self.ducking: SettingsTable[DuckingSettings] = SettingsTable(DuckingSettings)
		self.midi: SettingsTable[MidiSettings] = SettingsTable(MidiSettings)
		self.soundmaker: SettingsTable[SoundMakerSettings] = SettingsTable(SoundMakerSettings)

		self.files: typing.List[str] = []
		self.file_metadata: typing.Dict[str, FileMetadata] = {}

	def track_kind (self, track: int) -> TrackKind:

		"""Return the kind of ``track``.  Raises ``IndexError`` for an invalid track."""

		return self.track_kinds[track]

	def pool_for (self, track: int) -> TrackPool:

		"""Return the chain/phrase pool ``track`` plays from."""

		return self.pools[self.track_kind(track)]

	def track_level (self, track: int) -> float:

		if 0 <= track < len(self.track_levels):
			return self.track_levels[track]

		return trackplay.constants.DEFAULT_TRACK_LEVEL_DB

	def file_path (self, index: typing.Optional[int]) -> typing.Optional[str]:

		"""Return the sample file at ``index``, or ``None`` when unset, missing or blank."""

		if index is None or not 0 <= index < len(self.files):
			return None

		return self.files[index] or None

	def metadata_for (self, path: str) -> FileMetadata:

		"""Return the stored metadata for ``path``, or the defaults."""

		return self.file_metadata.get(path, FileMetadata())

	# Editing.  Each edit holds the lock so a concurrent tick sees either the
	# old value or the new one.

	def set_song_cell (self, track: int, row: int, chain_id: typing.Optional[int]) -> None:

		with self.lock:
			self.song.cells[track][row] = chain_id

	def set_chain_row (self, kind: TrackKind, chain_id: int, row: int, phrase_id: typing.Optional[int]) -> None:

		with self.lock:
			self.pools[kind].chains[chain_id].rows[row] = phrase_id

	def set_phrase_row (self, kind: TrackKind, phrase_id: int, row: int, **columns: typing.Optional[int]) -> None:

		"""Update columns of a phrase row, e.g. ``set_phrase_row(kind, 0, 0, note=60, delta_time=4)``."""

		with self.lock:
			target = self.pools[kind].phrases[phrase_id].rows[row]

			for column, value in columns.items():
				if column not in PHRASE_COLUMNS:
					raise ValueError(f"Unknown phrase column {column!r}")
				setattr(target, column, value)

	def clear_phrase_row (self, kind: TrackKind, phrase_id: int, row: int) -> None:

		with self.lock:
			self.pools[kind].phrases[phrase_id].rows[row] = PhraseRow()

	def set_track_kind (self, track: int, kind: TrackKind) -> None:

		with self.lock:
			self.track_kinds[track] = kind

	def add_file (self, path: str, metadata: typing.Optional[FileMetadata] = None) -> int:

		"""Append a sample file to the file list and return its index."""

		with self.lock:
			self.files.append(path)

			if metadata is not None:
				self.file_metadata[path] = metadata

			return len(self.files) - 1
