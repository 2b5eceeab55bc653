"""The hierarchical cursor: one playback automaton per track.

Each of the eight tracks walks Song → Chain → Phrase on its own.  Every call
to :meth:`Sequencer.advance_tick` moves each playing track forward by exactly
one tick:

- A row with a positive delta-time ``N`` triggers on the tick it is reached
  and is held for ``N`` ticks; the next row is reached on the tick the hold
  runs out.
- A row with an unset or non-positive delta-time never triggers and costs one
  tick.
- When nothing playable is left in the phrase, the chain moves to its next
  phrase on the same tick; when no phrase is left in the chain, song playback
  moves to the next song row (chain and phrase playback loop instead).
- An empty or dangling chain row, chain id or phrase id costs one silent tick.
- A song row with no chain ends the track's song playback.

Tracks are independent: each has its own cursor, its own random stream
(seeded when the track starts) and its own modulation counters.
"""

import dataclasses
import enum
import logging
import random
import typing

import trackplay.constants
import trackplay.effects
import trackplay.model
import trackplay.resolver
import trackplay.ticks
import trackplay.triggers


logger = logging.getLogger(__name__)


class PlayState (enum.Enum):

	STOPPED = "stopped"
	PLAYING_SONG = "playing_song"
	PLAYING_CHAIN = "playing_chain"
	PLAYING_PHRASE = "playing_phrase"


class PlaybackScope (enum.Enum):

	SONG = "song"
	CHAIN = "chain"
	PHRASE = "phrase"


_SCOPE_STATE = {
	PlaybackScope.SONG: PlayState.PLAYING_SONG,
	PlaybackScope.CHAIN: PlayState.PLAYING_CHAIN,
	PlaybackScope.PHRASE: PlayState.PLAYING_PHRASE,
}


@dataclasses.dataclass
class TrackCursor:

	"""Where a track is (or will resume from) in the hierarchy."""

	song_row: int = 0
	chain_id: typing.Optional[int] = None
	chain_row: int = 0
	phrase_id: typing.Optional[int] = None
	phrase_row: int = 0


@dataclasses.dataclass
class TickResult:

	"""What happened on one tick."""

	tick: int
	triggers: typing.List[trackplay.triggers.Trigger] = dataclasses.field(default_factory=list)
	arpeggio_steps: typing.List[trackplay.triggers.ArpeggioStep] = dataclasses.field(default_factory=list)
	episodes: typing.List[trackplay.effects.Episode] = dataclasses.field(default_factory=list)
	stopped: typing.List[int] = dataclasses.field(default_factory=list)


class TrackPlayback:

	"""Transient playback state of one track."""

	def __init__ (self, track: int) -> None:

		self.track = track
		self.state = PlayState.STOPPED
		self.cursor = TrackCursor()
		self.ticks_left = 0
		self.sticky = trackplay.resolver.StickyValues()
		self.rng = random.Random()
		self.increment_counters: typing.Dict[int, int] = {}

	@property
	def playing (self) -> bool:

		return self.state is not PlayState.STOPPED


class Sequencer:

	"""
	Drives every track's automaton from a single tick source.

	All reads of the composition happen while holding ``project.lock``, so an
	edit made from another thread lands between ticks, never inside one.
	"""

	def __init__ (
		self,
		project: trackplay.model.Project,
		resolver: typing.Optional[trackplay.resolver.Resolver] = None,
		effects: typing.Optional[trackplay.effects.EffectScheduler] = None
	) -> None:

		self.project = project
		self.resolver = resolver or trackplay.resolver.Resolver(project)
		self.effects = effects or trackplay.effects.EffectScheduler(project)
		self.tracks: typing.List[TrackPlayback] = [TrackPlayback(track) for track in range(trackplay.constants.NUM_TRACKS)]
		self.tick = 0

	# ------------------------------------------------------------------
	# Queries
	# ------------------------------------------------------------------

	def _tracks (self, track: typing.Optional[int]) -> typing.List[TrackPlayback]:

		if track is None:
			return list(self.tracks)

		if not 0 <= track < len(self.tracks):
			raise ValueError(f"Track must be 0-{len(self.tracks) - 1}, got {track}")

		return [self.tracks[track]]

	def cursor (self, track: int) -> TrackCursor:

		"""Return a copy of ``track``'s current (or resume) position."""

		return dataclasses.replace(self._tracks(track)[0].cursor)

	def last_played (self, track: int) -> trackplay.resolver.StickyValues:

		"""The note, delta-time and sample file ``track`` last triggered, for display."""

		return dataclasses.replace(self._tracks(track)[0].sticky)

	def state (self, track: int) -> PlayState:

		return self._tracks(track)[0].state

	def is_playing (self, track: typing.Optional[int] = None) -> bool:

		"""True if ``track`` (or, with no argument, any track) is playing."""

		return any(playback.playing for playback in self._tracks(track))

	def playing_tracks (self) -> typing.List[int]:

		return [playback.track for playback in self.tracks if playback.playing]

	def track_length (self, track: int) -> int:

		"""Total ticks in ``track``'s song column."""

		with self.project.lock:
			return trackplay.ticks.track_ticks(self.project, track)

	# ------------------------------------------------------------------
	# Transport
	# ------------------------------------------------------------------

	def start_playback (
		self,
		scope: PlaybackScope = PlaybackScope.SONG,
		track: typing.Optional[int] = None,
		from_top: bool = False,
		chain: typing.Optional[int] = None,
		phrase: typing.Optional[int] = None,
		seed: typing.Optional[int] = None
	) -> typing.List[int]:

		"""
		Start playback on one track, or on all tracks when ``track`` is None.

		Parameters:
			scope: Play the whole song, loop one chain, or loop one phrase.
			track: Track to start (0-7), or ``None`` for all.
			from_top: Start from row 0 instead of the persisted cursor.
			chain: Chain to loop in ``CHAIN`` scope (defaults to the cursor's chain).
			phrase: Phrase to loop in ``PHRASE`` scope (defaults to the cursor's phrase).
			seed: Fixed session seed.  Track ``n`` gets ``random.Random(seed + n)``;
				``None`` seeds each track from system entropy.

		Returns:
			The tracks that actually started.  A track whose start position
			holds nothing to play stays stopped.
		"""

		if scope not in _SCOPE_STATE:
			raise ValueError(f"Unknown playback scope: {scope!r}")

		started = []

		with self.project.lock:

			if not self.is_playing():
				self.tick = 0

			for playback in self._tracks(track):
				if self._start_track(playback, scope, from_top, chain, phrase, seed):
					started.append(playback.track)

		if started:
			logger.info(f"Playback started ({scope.value}, {'top' if from_top else 'cursor'}) on tracks {started}")

		return started

	def _start_track (
		self,
		playback: TrackPlayback,
		scope: PlaybackScope,
		from_top: bool,
		chain: typing.Optional[int],
		phrase: typing.Optional[int],
		seed: typing.Optional[int]
	) -> bool:

		track = playback.track
		resume = TrackCursor() if from_top else dataclasses.replace(playback.cursor)

		if from_top:
			playback.cursor = TrackCursor()

		playback.state = PlayState.STOPPED
		playback.ticks_left = 0
		playback.sticky = trackplay.resolver.StickyValues()
		playback.increment_counters = {}
		playback.rng = random.Random(seed + track) if seed is not None else random.Random()
		self.effects.reset_track(track)

		pool = self.project.pool_for(track)
		cursor = TrackCursor()

		if scope is PlaybackScope.SONG:
			cursor.song_row = resume.song_row
			cursor.chain_id = self.project.song.chain_at(track, cursor.song_row)

			if cursor.chain_id is None:
				logger.debug(f"Track {track}: no chain at song row {cursor.song_row:02X} - not starting")
				return False

			cursor.chain_row = resume.chain_row
			cursor.phrase_row = resume.phrase_row

		elif scope is PlaybackScope.CHAIN:
			cursor.song_row = resume.song_row
			cursor.chain_id = chain if chain is not None else resume.chain_id
			target = pool.chain(cursor.chain_id)

			if target is None or not target.has_phrase_from(0):
				logger.debug(f"Track {track}: chain {cursor.chain_id} has no phrases - not starting")
				return False

			cursor.chain_row = 0 if chain is not None and chain != resume.chain_id else resume.chain_row
			cursor.phrase_row = 0 if chain is not None and chain != resume.chain_id else resume.phrase_row

		else:
			cursor.song_row = resume.song_row
			cursor.chain_id = resume.chain_id
			cursor.chain_row = resume.chain_row
			cursor.phrase_id = phrase if phrase is not None else resume.phrase_id
			target_phrase = pool.phrase(cursor.phrase_id)

			if target_phrase is None or target_phrase.is_empty():
				logger.debug(f"Track {track}: phrase {cursor.phrase_id} has nothing to play - not starting")
				return False

			cursor.phrase_row = 0 if phrase is not None and phrase != resume.phrase_id else resume.phrase_row

		if scope is not PlaybackScope.PHRASE:
			target_chain = pool.chain(cursor.chain_id)
			cursor.chain_row = max(0, min(cursor.chain_row, trackplay.constants.CHAIN_ROWS - 1))
			cursor.phrase_id = target_chain.phrase_at(cursor.chain_row) if target_chain is not None else None

		cursor.phrase_row = max(0, min(cursor.phrase_row, trackplay.constants.PHRASE_ROWS - 1))

		playback.cursor = cursor
		playback.state = _SCOPE_STATE[scope]

		return True

	def stop_playback (self, track: typing.Optional[int] = None, reset: bool = False) -> typing.List[int]:

		"""
		Stop one track, or all tracks when ``track`` is None.

		The cursor is kept so playback can resume from it, unless ``reset`` is
		set, in which case it returns to the top.  In-flight effect episodes are
		discarded.  Returns the tracks that were playing.
		"""

		stopped = []

		with self.project.lock:
			for playback in self._tracks(track):

				if playback.playing:
					playback.state = PlayState.STOPPED
					stopped.append(playback.track)

				playback.ticks_left = 0
				self.effects.cancel_track(playback.track)

				if reset:
					playback.cursor = TrackCursor()

		if stopped:
			logger.info(f"Playback stopped on tracks {stopped}{' (reset)' if reset else ''}")

		return stopped

	# ------------------------------------------------------------------
	# Tick
	# ------------------------------------------------------------------

	def advance_tick (self) -> TickResult:

		"""
		Advance every playing track by one tick.

		Returns the triggers due now, the arpeggio steps falling inside this
		tick, the episodes that started, and the tracks that stopped.
		"""

		with self.project.lock:

			result = TickResult(tick=self.tick)

			for playback in self.tracks:

				if not playback.playing:
					continue

				self.effects.advance(playback.track)

				trigger = self._step(playback, result)

				if trigger is not None:
					result.triggers.append(trigger)
					result.episodes.extend(self.effects.on_trigger(trigger, self.tick, playback.rng))

				if playback.playing:
					result.arpeggio_steps.extend(self.effects.due_arpeggio_steps(playback.track))

			self.tick += 1

		return result

	def _step (self, playback: TrackPlayback, result: TickResult) -> typing.Optional[trackplay.triggers.Trigger]:

		"""Move one track forward by one tick, returning its trigger if any."""

		if playback.ticks_left > 0:
			playback.ticks_left -= 1

			if playback.ticks_left > 0:
				return None

			if not self._advance_row(playback):
				self._finish(playback, result)
				return None

		return self._evaluate(playback)

	def _evaluate (self, playback: TrackPlayback) -> typing.Optional[trackplay.triggers.Trigger]:

		"""Read the row under the cursor.  Always leaves at least one tick to wait."""

		cursor = playback.cursor
		phrase = self.project.pool_for(playback.track).phrase(cursor.phrase_id)

		if phrase is None:
			playback.ticks_left = 1
			return None

		row = phrase.row(cursor.phrase_row)

		if row is None or not row.playable:
			playback.ticks_left = 1
			return None

		assert row.delta_time is not None
		playback.ticks_left = row.delta_time

		trigger = self.resolver.resolve(
			playback.track,
			phrase,
			cursor.phrase_row,
			playback.rng,
			playback.increment_counters,
			playback.sticky
		)

		if trigger is not None:
			logger.debug(
				f"Tick {self.tick} track {playback.track}: "
				f"chain {cursor.chain_id} phrase {cursor.phrase_id} row {cursor.phrase_row:02X} -> {type(trigger).__name__}"
			)

		return trigger

	def _advance_row (self, playback: TrackPlayback) -> bool:

		"""Move to the next row; returns False when the track has run out of material."""

		cursor = playback.cursor
		pool = self.project.pool_for(playback.track)
		phrase = pool.phrase(cursor.phrase_id)
		next_row = cursor.phrase_row + 1

		if phrase is not None and next_row < trackplay.constants.PHRASE_ROWS and phrase.has_playable_from(next_row):
			cursor.phrase_row = next_row
			return True

		if playback.state is PlayState.PLAYING_PHRASE:
			if phrase is None or phrase.is_empty():
				return False
			cursor.phrase_row = 0
			return True

		return self._advance_chain(playback, pool)

	def _advance_chain (self, playback: TrackPlayback, pool: trackplay.model.TrackPool) -> bool:

		cursor = playback.cursor
		chain = pool.chain(cursor.chain_id)
		next_row = cursor.chain_row + 1

		if chain is not None and next_row < trackplay.constants.CHAIN_ROWS and chain.has_phrase_from(next_row):
			self._enter_chain_row(cursor, chain, next_row)
			return True

		if playback.state is PlayState.PLAYING_CHAIN:
			if chain is None or not chain.has_phrase_from(0):
				return False
			self._enter_chain_row(cursor, chain, 0)
			return True

		return self._advance_song(playback, pool)

	def _advance_song (self, playback: TrackPlayback, pool: trackplay.model.TrackPool) -> bool:

		cursor = playback.cursor
		next_row = cursor.song_row + 1

		if next_row >= trackplay.constants.SONG_ROWS:
			return False

		chain_id = self.project.song.chain_at(playback.track, next_row)

		if chain_id is None:
			return False

		cursor.song_row = next_row
		cursor.chain_id = chain_id
		chain = pool.chain(chain_id)

		if chain is None:
			# Dangling chain id: one silent tick, then on to the next song row.
			cursor.chain_row = 0
			cursor.phrase_id = None
			cursor.phrase_row = 0
			return True

		self._enter_chain_row(cursor, chain, 0)
		return True

	def _enter_chain_row (self, cursor: TrackCursor, chain: trackplay.model.Chain, row: int) -> None:

		cursor.chain_row = row
		cursor.phrase_id = chain.phrase_at(row)
		cursor.phrase_row = 0

	def _finish (self, playback: TrackPlayback, result: TickResult) -> None:

		"""The track ran out of material: stop it and rewind its cursor."""

		playback.state = PlayState.STOPPED
		playback.ticks_left = 0
		playback.cursor = TrackCursor()
		self.effects.cancel_track(playback.track)
		result.stopped.append(playback.track)

		logger.info(f"Track {playback.track} finished at tick {self.tick}")
