"""Effect episodes: retrigger bursts, time-stretch windows and arpeggios.

An episode starts when a triggered row references a settings entry, then
unfolds tick by tick on its own, independent of the row cursor, until its
duration has elapsed.  Each track hosts at most one episode of each kind; a
new episode pre-empts the running one of the same kind.  Stopping a track
discards its episodes without completing them.

Whether a row starts an episode at all is gated twice: the ``every`` counter
(only the 1st, N+1th, 2N+1th ... trigger of that settings entry on that track
qualifies), then a ``probability`` roll on the track's random stream.
"""

import dataclasses
import enum
import logging
import math
import random
import typing

import trackplay.model
import trackplay.triggers


logger = logging.getLogger(__name__)


class EffectKind (enum.Enum):

	RETRIGGER = "retrigger"
	TIMESTRETCH = "timestretch"
	ARPEGGIO = "arpeggio"


def lerp (start: float, end: float, progress: float) -> float:

	"""Linear interpolation, with ``progress`` clamped to 0.0-1.0."""

	progress = max(0.0, min(1.0, progress))
	return start + (end - start) * progress


def beats_to_ticks (beats: float, ppq: int) -> int:

	"""Episode length in ticks; never shorter than one tick."""

	return max(1, int(round(beats * ppq)))


class Episode:

	"""
	Base runtime state shared by every effect kind.

	``elapsed`` counts ticks since the episode started (0 on its first tick);
	the episode is finished once ``elapsed`` reaches ``duration``.
	"""

	kind: EffectKind

	def __init__ (self, track: int, settings_index: int, start_tick: int, duration: int) -> None:

		self.track = track
		self.settings_index = settings_index
		self.start_tick = start_tick
		self.duration = max(1, duration)
		self.elapsed = 0

	@property
	def progress (self) -> float:

		"""How far through the episode we are (0.0 to 1.0)."""

		return min(1.0, self.elapsed / self.duration)

	@property
	def finished (self) -> bool:

		return self.elapsed >= self.duration

	def advance (self) -> None:

		self.elapsed += 1

	def __repr__ (self) -> str:

		return f"<{type(self).__name__} track={self.track} index={self.settings_index:02X} {self.elapsed}/{self.duration}>"


class RetriggerEpisode (Episode):

	"""A burst of ``times`` retriggers spread over ``beats`` beats."""

	kind = EffectKind.RETRIGGER

	def __init__ (self, track: int, settings_index: int, start_tick: int, settings: trackplay.model.RetriggerSettings, ppq: int) -> None:

		super().__init__(track, settings_index, start_tick, beats_to_ticks(settings.beats, ppq))
		self.settings = settings

	@property
	def current_retrigger (self) -> int:

		"""Index of the retrigger sounding now (0 to ``times - 1``)."""

		times = max(1, self.settings.times)
		return min(times - 1, int(self.progress * times))

	@property
	def is_final (self) -> bool:

		return self.current_retrigger == max(1, self.settings.times) - 1

	@property
	def rate (self) -> float:

		return lerp(self.settings.start, self.settings.end, self.progress)

	@property
	def pitch_offset (self) -> float:

		"""Semitones relative to the starting pitch."""

		if self.settings.final_pitch_to_start and self.is_final:
			return 0.0

		return lerp(0.0, self.settings.pitch_change, self.progress)

	@property
	def volume_offset (self) -> float:

		"""Decibels relative to the starting volume."""

		if self.settings.final_volume_to_start and self.is_final:
			return 0.0

		return lerp(0.0, self.settings.volume_db, self.progress)

	def params (self) -> trackplay.triggers.RetriggerParams:

		s = self.settings

		return trackplay.triggers.RetriggerParams(
			times = s.times,
			beats = s.beats,
			rate_start = s.start,
			rate_end = s.end,
			pitch_change = s.pitch_change,
			volume_db = s.volume_db,
			final_pitch_to_start = s.final_pitch_to_start,
			final_volume_to_start = s.final_volume_to_start,
		)


class TimestretchEpisode (Episode):

	"""A stretch ratio sliding from ``start`` to ``end``."""

	kind = EffectKind.TIMESTRETCH

	def __init__ (self, track: int, settings_index: int, start_tick: int, settings: trackplay.model.TimestretchSettings, ppq: int) -> None:

		super().__init__(track, settings_index, start_tick, beats_to_ticks(settings.beats, ppq))
		self.settings = settings

	@property
	def ratio (self) -> float:

		return lerp(self.settings.start, self.settings.end, self.progress)

	def params (self) -> trackplay.triggers.TimestretchParams:

		return trackplay.triggers.TimestretchParams(
			start = self.settings.start,
			end = self.settings.end,
			beats = self.settings.beats,
		)


def next_chord_note (current: int, chord: typing.Sequence[int], up: bool) -> int:

	"""
	Step from ``current`` to the neighbouring chord tone.

	``current`` may be an octave-shifted chord tone; its position is found by
	exact match, then by pitch class, then by nearest note.  Stepping past
	either end of the chord wraps around with an octave change.
	"""

	index = -1
	octave_offset = 0

	if current in chord:
		index = list(chord).index(current)

	if index == -1:
		best = None
		for i, tone in enumerate(chord):
			if tone % 12 == current % 12:
				distance = abs(current - tone)
				if best is None or distance < best:
					best = distance
					index = i
					octave_offset = int((current - tone) / 12) * 12

	if index == -1:
		best = None
		for i, tone in enumerate(chord):
			distance = abs(current - tone)
			if best is None or distance < best:
				best = distance
				index = i
				octave_offset = int((current - tone) / 12) * 12

	if up:
		if index + 1 >= len(chord):
			return chord[0] + octave_offset + 12
		return chord[index + 1] + octave_offset

	if index - 1 < 0:
		return chord[-1] + octave_offset - 12

	return chord[index - 1] + octave_offset


def unroll_arpeggio (chord: typing.Sequence[int], settings: trackplay.model.ArpeggioSettings) -> typing.List[typing.Tuple[int, int]]:

	"""
	Expand an arpeggio pattern over a chord.

	Returns ``(note, divisor)`` pairs in play order, starting from the note
	after the root.  Chords walk their tones; a single note walks octaves.
	"""

	if not chord:
		return []

	current = chord[0]
	is_chord = len(chord) > 1
	steps: typing.List[typing.Tuple[int, int]] = []

	for row in settings.rows:

		if not row.active:
			continue

		assert row.count is not None and row.divisor is not None
		up = row.direction == trackplay.model.ArpeggioDirection.UP

		for _ in range(row.count):
			if is_chord:
				current = next_chord_note(current, chord, up)
			else:
				current = current + 12 if up else current - 12

			steps.append((current, row.divisor))

	return steps


class ArpeggioEpisode (Episode):

	"""
	An unrolled arpeggio.  Step ``k`` sounds ``sum(delta_ticks / divisor_j for j <= k)``
	ticks after the row, so a divisor of 4 plays four notes per row length.
	"""

	kind = EffectKind.ARPEGGIO

	def __init__ (
		self,
		track: int,
		settings_index: int,
		start_tick: int,
		trigger: trackplay.triggers.InstrumentTrigger,
		settings: trackplay.model.ArpeggioSettings
	) -> None:

		self.base = trigger
		self.steps: typing.List[trackplay.triggers.ArpeggioStep] = []

		offset = 0.0

		for note, divisor in unroll_arpeggio(trigger.notes, settings):
			offset += trigger.delta_ticks / divisor
			step_trigger = dataclasses.replace(trigger, notes=[max(0, min(127, note))])
			self.steps.append(trackplay.triggers.ArpeggioStep(track=track, trigger=step_trigger, offset=offset))

		last = self.steps[-1].offset if self.steps else 0.0
		super().__init__(track, settings_index, start_tick, int(math.floor(last)) + 1)

	def due (self) -> typing.List[trackplay.triggers.ArpeggioStep]:

		"""Steps that fall within the current tick, with their delay into it (in ticks)."""

		due = []

		for step in self.steps:
			if self.elapsed <= step.offset < self.elapsed + 1:
				due.append(trackplay.triggers.ArpeggioStep(
					track = step.track,
					trigger = step.trigger,
					offset = step.offset,
					delay = step.offset - self.elapsed,
				))

		return due


class EffectScheduler:

	"""
	Tracks in-flight episodes for every track.

	The sequencer calls :meth:`on_trigger` for each trigger it produces,
	:meth:`advance` once per tick for each playing track, and
	:meth:`cancel_track` when a track stops.
	"""

	def __init__ (self, project: trackplay.model.Project) -> None:

		self.project = project
		self.episodes: typing.Dict[int, typing.Dict[EffectKind, Episode]] = {}
		self._every_counters: typing.Dict[typing.Tuple[int, EffectKind, int], int] = {}

	def active (self, track: int) -> typing.List[Episode]:

		"""Episodes currently running on ``track``."""

		return list(self.episodes.get(track, {}).values())

	def episode (self, track: int, kind: EffectKind) -> typing.Optional[Episode]:

		return self.episodes.get(track, {}).get(kind)

	def reset_track (self, track: int) -> None:

		"""Forget episodes and ``every`` counters for a new playback session."""

		self.cancel_track(track)

		for key in [key for key in self._every_counters if key[0] == track]:
			del self._every_counters[key]

	def cancel_track (self, track: int) -> None:

		"""Discard every in-flight episode on ``track``."""

		discarded = self.episodes.pop(track, None)

		if discarded:
			logger.debug(f"Track {track}: discarded {list(discarded.values())}")

	def should_activate (self, track: int, kind: EffectKind, index: int, every: int, probability: int, rng: random.Random) -> bool:

		"""Apply ``every`` then ``probability`` gating to one trigger."""

		key = (track, kind, index)
		count = self._every_counters.get(key, 0)
		self._every_counters[key] = count + 1

		if every > 1 and count % every != 0:
			return False

		if probability < 100 and rng.randint(1, 100) > probability:
			return False

		return True

	def _start (self, episode: Episode) -> None:

		running = self.episodes.setdefault(episode.track, {})

		if episode.kind in running:
			logger.debug(f"Track {episode.track}: {episode!r} pre-empts {running[episode.kind]!r}")

		running[episode.kind] = episode

	def on_trigger (self, trigger: trackplay.triggers.Trigger, tick: int, rng: random.Random) -> typing.List[Episode]:

		"""
		Start the episodes a trigger asks for and attach their parameters to it.

		Returns the episodes that were started.
		"""

		started: typing.List[Episode] = []
		track = trigger.track
		ppq = max(self.project.ppq, 1)

		if isinstance(trigger, trackplay.triggers.SamplerTrigger):

			retrigger = self.project.retrigger.get(trigger.retrigger_index)

			if retrigger is not None and trigger.retrigger_index is not None:
				if self.should_activate(track, EffectKind.RETRIGGER, trigger.retrigger_index, retrigger.every, retrigger.probability, rng):
					episode = RetriggerEpisode(track, trigger.retrigger_index, tick, retrigger, ppq)
					trigger.retrigger = episode.params()
					started.append(episode)

			timestretch = self.project.timestretch.get(trigger.timestretch_index)

			if timestretch is not None and trigger.timestretch_index is not None:
				if self.should_activate(track, EffectKind.TIMESTRETCH, trigger.timestretch_index, timestretch.every, timestretch.probability, rng):
					episode = TimestretchEpisode(track, trigger.timestretch_index, tick, timestretch, ppq)
					trigger.timestretch = episode.params()
					started.append(episode)

		else:

			arpeggio = self.project.arpeggio.get(trigger.arpeggio_index)

			if arpeggio is not None and trigger.arpeggio_index is not None:
				episode = ArpeggioEpisode(track, trigger.arpeggio_index, tick, trigger, arpeggio)
				if episode.steps:
					started.append(episode)

		for episode in started:
			self._start(episode)
			logger.debug(f"Track {track}: started {episode!r}")

		return started

	def advance (self, track: int) -> None:

		"""Age every episode on ``track`` by one tick, dropping finished ones."""

		running = self.episodes.get(track)

		if not running:
			return

		for kind, episode in list(running.items()):
			episode.advance()
			if episode.finished:
				logger.debug(f"Track {track}: finished {episode!r}")
				del running[kind]

	def due_arpeggio_steps (self, track: int) -> typing.List[trackplay.triggers.ArpeggioStep]:

		episode = self.episode(track, EffectKind.ARPEGGIO)

		if isinstance(episode, ArpeggioEpisode):
			return episode.due()

		return []
