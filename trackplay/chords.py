"""Chord expansion for Instrument rows.

A phrase row's chord columns (type, addition, transposition) turn a single
root note into a list of notes.  Transposition is an inversion by rotation:
the lowest note is moved to the top an octave higher, once per step, in list
order.  The list is never re-sorted.
"""

import enum
import typing


class ChordType (enum.IntEnum):

	NONE = 0
	MAJOR = 1
	MINOR = 2
	DOMINANT = 3


class ChordAddition (enum.IntEnum):

	NONE = 0
	SEVENTH = 1
	NINTH = 2
	FOURTH = 3


CHORD_INTERVALS: typing.Dict[ChordType, typing.List[int]] = {
	ChordType.NONE: [],
	ChordType.MAJOR: [4, 7],
	ChordType.MINOR: [3, 7],
	ChordType.DOMINANT: [4, 7],
}


def addition_interval (chord: ChordType, addition: ChordAddition) -> typing.Optional[int]:

	"""Return the semitone offset an addition puts on top of the chord, if any."""

	if addition == ChordAddition.SEVENTH:
		return 10 if chord == ChordType.MINOR else 11

	if addition == ChordAddition.NINTH:
		return 14

	if addition == ChordAddition.FOURTH:
		return 5

	return None


def chord_notes (
	root: int,
	chord: typing.Union[ChordType, int, None] = ChordType.NONE,
	addition: typing.Union[ChordAddition, int, None] = ChordAddition.NONE,
	transpose: typing.Optional[int] = None
) -> typing.List[int]:

	"""
	Expand a root note into the notes of a chord.

	Parameters:
		root: MIDI root note.
		chord: Chord type.  ``NONE`` (or an unrecognised value) returns just
			the root; additions and transposition only apply to real chords.
		addition: Extra tone appended after the triad.  A 7th is a minor 7th
			on a minor chord and a major 7th otherwise.
		transpose: Number of left rotations.  Each rotation moves the first
			note to the end, an octave higher.

	Example:
		```python
		chord_notes(60, ChordType.MINOR, ChordAddition.NONE, 2)  # → [67, 72, 75]
		```
	"""

	try:
		chord_type = ChordType(chord or 0)
		chord_addition = ChordAddition(addition or 0)
	except ValueError:
		return [root]

	if chord_type == ChordType.NONE:
		return [root]

	notes = [root] + [root + interval for interval in CHORD_INTERVALS[chord_type]]

	extra = addition_interval(chord_type, chord_addition)

	if extra is not None:
		notes.append(root + extra)

	for _ in range(max(transpose or 0, 0)):
		first = notes.pop(0)
		notes.append(first + 12)

	return notes
