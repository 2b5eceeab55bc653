"""Note modulation: randomize, offset, quantize and clamp a note.

:func:`modulate` is a pure function of its inputs except that, for settings
with ``seed == 0``, it consumes draws from the caller's random stream.  Each
playing track owns one ``random.Random`` (seeded when the track starts) so
randomized modulation is independent per track and reproducible when the
session seed is fixed.
"""

import logging
import random

import trackplay.constants
import trackplay.intervals
import trackplay.model


logger = logging.getLogger(__name__)


def clamp_note (note: int) -> int:

	"""Clamp to the MIDI note range."""

	return max(trackplay.constants.NOTE_MIN, min(trackplay.constants.NOTE_MAX, note))


def modulate (note: int, settings: trackplay.model.ModulateSettings, rng: random.Random) -> int:

	"""
	Apply modulation settings to a note.

	Order of operations:

	1. Probability: below 100%, roll 1-100 on ``rng``; a roll above the
	   probability returns ``note`` untouched.
	2. Randomize (unless ``seed == -1``): when ``irandom > 0`` draw a value in
	   ``[0, irandom]`` which *replaces* the note.  A positive seed draws from
	   a fresh generator seeded with it, so the draw is identical every call.
	   Seed 0 draws from ``rng``.
	3. Subtract ``sub`` then add ``add``.
	4. Quantize to ``scale`` rooted at ``scale_root`` (skipped for ``"all"``).
	5. Clamp to 0-127.
	"""

	if settings.probability < 100:
		roll = rng.randint(1, 100)

		if roll > settings.probability:
			return note

	result = note

	if settings.seed != -1 and settings.irandom > 0:

		if settings.seed > 0:
			result = random.Random(settings.seed).randint(0, settings.irandom)
		else:
			result = rng.randint(0, settings.irandom)

	result = result - settings.sub + settings.add

	if settings.scale and settings.scale != "all":

		if settings.scale in trackplay.intervals.SCALES:
			result = trackplay.intervals.quantize_to_scale(result, settings.scale, settings.scale_root)
		else:
			logger.warning(f"Unknown scale {settings.scale!r} in modulation settings - not quantizing")

	return clamp_note(result)


def apply_increment (note: int, increment: int, counter: int, wrap: int = 0) -> int:

	"""
	Add a stepped offset driven by an external counter.

	Adds ``increment * (counter % wrap)``, or ``increment * counter`` when
	``wrap`` is 0.  Does nothing unless ``counter >= 0`` and ``increment > 0``.

	```python
	apply_increment(60, 2, 5, wrap=4)  # → 62 (counter wraps to 1)
	```
	"""

	if counter < 0 or increment <= 0:
		return note

	steps = counter % wrap if wrap > 0 else counter

	return clamp_note(note + increment * steps)
