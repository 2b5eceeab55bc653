"""Length of phrases, chains and song columns in ticks.

The totals match what song playback spends from the top: a playable row costs
its delta-time, a skip row before the last playable row costs one tick, and
trailing skip rows cost nothing.  A phrase or chain that is reached but holds
nothing to play (empty, unset or dangling) costs one silent tick.  A song
column ends at its first row without a chain.  Used for progress display
alongside the playback cursor.
"""

import typing

import trackplay.constants
import trackplay.model


def phrase_ticks (pool: trackplay.model.TrackPool, phrase_id: typing.Optional[int]) -> int:

	phrase = pool.phrase(phrase_id)

	if phrase is None or phrase.is_empty():
		return 1

	last = max(index for index, row in enumerate(phrase.rows) if row.playable)

	return sum(row.delta_time if row.playable else 1 for row in phrase.rows[:last + 1])


def chain_ticks (pool: trackplay.model.TrackPool, chain_id: typing.Optional[int]) -> int:

	chain = pool.chain(chain_id)

	if chain is None or not chain.has_phrase_from(0):
		return 1

	last = max(index for index, phrase_id in enumerate(chain.rows) if phrase_id is not None)

	return sum(phrase_ticks(pool, phrase_id) for phrase_id in chain.rows[:last + 1])


def track_ticks (project: trackplay.model.Project, track: int) -> int:

	"""Total ticks of ``track``'s song column, read from the track's own pool."""

	if not 0 <= track < trackplay.constants.NUM_TRACKS:
		return 0

	pool = project.pool_for(track)
	total = 0

	for row in range(trackplay.constants.SONG_ROWS):

		chain_id = project.song.chain_at(track, row)

		if chain_id is None:
			break

		total += chain_ticks(pool, chain_id)

	return total
