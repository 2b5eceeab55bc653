import typing


# Scale tone lists in scan order.  Quantization walks each list front to back,
# so the order is part of the behaviour, not just the set of pitch classes.
SCALES: typing.Dict[str, typing.List[int]] = {
	"all": [],
	"major": [0, 2, 4, 5, 7, 9, 11],
	"minor": [0, 2, 3, 5, 7, 8, 10],
	"dorian": [0, 2, 3, 5, 7, 9, 10],
	"mixolydian": [0, 2, 4, 5, 7, 9, 10],
	"pentatonic": [0, 2, 4, 7, 9],
	"blues": [0, 3, 5, 6, 7, 10],
	"chromatic": [0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11],
}


def get_scale (name: str) -> typing.List[int]:

	"""
	Return the tone list of a named scale.
	"""

	if name not in SCALES:
		raise ValueError(f"Unknown scale {name!r}. Available: {sorted(SCALES)}")

	return list(SCALES[name])


def quantize_to_scale (note: int, scale: str, root: int = 0) -> int:

	"""
	Snap a note to the named scale transposed to ``root``.

	Distance is measured within the octave only (no wraparound to the next
	octave), and when two scale tones are equally close the one that appears
	first in the scale's tone list wins.  This is not the same as "nearest,
	lowest wins":

	```python
	quantize_to_scale(61, "major", root=0)  # → 60 (C# to C)
	quantize_to_scale(60, "major", root=2)  # → 71 (C in D major lands on B)
	```

	Parameters:
		note: MIDI note number.  Negative notes are raised by octaves first.
		scale: A key of :data:`SCALES`.  ``"all"`` returns the note unchanged.
		root: Pitch class the scale is built on (0 = C ... 11 = B).

	Raises:
		ValueError: If ``scale`` is not a known scale name.
	"""

	tones = get_scale(scale)

	if not tones:
		return note

	while note < 0:
		note += 12

	root = root % 12
	octave = note // 12
	relative = (note % 12 - root + 12) % 12

	closest = tones[0]
	best_distance = abs(relative - closest)

	for tone in tones[1:]:
		distance = abs(relative - tone)
		if distance < best_distance:
			best_distance = distance
			closest = tone

	return octave * 12 + (closest + root) % 12
