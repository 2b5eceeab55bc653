import random
import typing

import pytest

import trackplay.model
import trackplay.resolver
import trackplay.triggers

from trackplay.model import TrackKind


def _phrase (project: trackplay.model.Project, kind: TrackKind, rows: typing.Sequence[typing.Dict[str, typing.Any]], phrase_id: int = 0) -> trackplay.model.Phrase:

	for index, columns in enumerate(rows):
		project.set_phrase_row(kind, phrase_id, index, **columns)

	return project.pools[kind].phrases[phrase_id]


def _resolve (
	project: trackplay.model.Project,
	track: int,
	phrase: trackplay.model.Phrase,
	row: int,
	counters: typing.Optional[typing.Dict[int, int]] = None,
	sticky: typing.Optional[trackplay.resolver.StickyValues] = None
) -> typing.Optional[trackplay.triggers.Trigger]:

	resolver = trackplay.resolver.Resolver(project)
	return resolver.resolve(track, phrase, row, random.Random(0), counters if counters is not None else {}, sticky)


def test_instrument_row_defaults (project: trackplay.model.Project) -> None:

	"""Unset pitch, gate, pan and velocity take their virtual defaults."""

	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=2)])

	trigger = _resolve(project, 0, phrase, 0)

	assert isinstance(trigger, trackplay.triggers.InstrumentTrigger)
	assert trigger.track == 0
	assert trigger.notes == [60]
	assert trigger.note == 60
	assert trigger.velocity == pytest.approx(64 / 127)
	assert trigger.gate == 0x80
	assert trigger.delta_ticks == 2
	assert trigger.delta_seconds == pytest.approx(0.5)
	assert trigger.duration == pytest.approx(0.5)
	assert trigger.pan == 0.0
	assert trigger.low_pass == pytest.approx(20000.0, rel=1e-3)
	assert trigger.high_pass == pytest.approx(20.0, rel=1e-3)
	assert trigger.level_db == -6.0


def test_skip_rows_do_not_resolve (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=0), dict(note=60)])

	assert _resolve(project, 0, phrase, 0) is None
	assert _resolve(project, 0, phrase, 1) is None
	assert _resolve(project, 0, phrase, 300) is None


def test_no_note_anywhere_is_silent (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(delta_time=1)])

	assert _resolve(project, 0, phrase, 0) is None


def test_note_is_sticky (project: trackplay.model.Project) -> None:

	"""A row without a note plays the nearest note set above it."""

	phrase = _phrase(project, TrackKind.INSTRUMENT, [
		dict(note=60, delta_time=1),
		dict(delta_time=1),
		dict(note=62, delta_time=1),
		dict(delta_time=1),
	])

	notes = [_resolve(project, 0, phrase, row).note for row in range(4)]

	assert notes == [60, 60, 62, 62]


def test_mix_columns_are_sticky (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.INSTRUMENT, [
		dict(note=60, delta_time=1, pan=0, reverb=254),
		dict(delta_time=1),
	])

	trigger = _resolve(project, 0, phrase, 1)

	assert trigger.pan == -1.0
	assert trigger.reverb == 1.0


def test_gate_sets_duration (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=4, gate=64)])

	trigger = _resolve(project, 0, phrase, 0)

	# 4 ticks at 0.25 s, half gate.
	assert trigger.duration == pytest.approx(0.5)


def test_chord_columns_expand_notes (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=1, chord=2, chord_transpose=2, velocity=127)])

	trigger = _resolve(project, 0, phrase, 0)

	assert trigger.notes == [67, 72, 75]
	assert trigger.velocity == 1.0


def test_modulation_applies (project: trackplay.model.Project) -> None:

	project.modulate.set(1, trackplay.model.ModulateSettings(add=12))
	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=1, modulate=1)])

	assert _resolve(project, 0, phrase, 0).note == 72


def test_dangling_modulation_index_is_ignored (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=1, modulate=300)])

	assert _resolve(project, 0, phrase, 0).note == 60


def test_increment_counts_per_settings_entry (project: trackplay.model.Project) -> None:

	"""Each resolve of a row using the entry advances its counter."""

	project.modulate.set(2, trackplay.model.ModulateSettings(increment=2, wrap=3))
	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=1, modulate=2)])
	counters: typing.Dict[int, int] = {}

	notes = [_resolve(project, 0, phrase, 0, counters).note for _ in range(4)]

	assert notes == [60, 62, 64, 60]
	assert counters == {2: 4}


def test_sticky_carry_over_records_played_values (project: trackplay.model.Project) -> None:

	project.modulate.set(0, trackplay.model.ModulateSettings(add=1))
	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=3, modulate=0)])
	sticky = trackplay.resolver.StickyValues()

	_resolve(project, 0, phrase, 0, sticky=sticky)

	assert sticky.note == 61
	assert sticky.delta_time == 3


def test_midi_and_soundmaker_lookup (project: trackplay.model.Project) -> None:

	project.midi.set(0, trackplay.model.MidiSettings(device="Dummy MIDI", channel=2))
	project.soundmaker.set(1, trackplay.model.SoundMakerSettings(name="FM", a=127))
	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=60, delta_time=1, midi=0, soundmaker=1)])

	trigger = _resolve(project, 0, phrase, 0)

	assert trigger.midi.device == "Dummy MIDI"
	assert trigger.soundmaker.name == "FM"


def test_sampler_row (project: trackplay.model.Project) -> None:

	"""The note picks a slice; tempo comes from the file metadata and the project."""

	index = project.add_file("kick.wav", trackplay.model.FileMetadata(bpm=90, slices=8))
	phrase = _phrase(project, TrackKind.SAMPLER, [dict(note=10, delta_time=1, file=index)])

	trigger = _resolve(project, 4, phrase, 0)

	assert isinstance(trigger, trackplay.triggers.SamplerTrigger)
	assert trigger.path == "kick.wav"
	assert trigger.slice_index == 2
	assert trigger.slice_count == 8
	assert trigger.bpm_source == 90
	assert trigger.bpm_target == 120
	assert trigger.pitch == 0.0
	assert trigger.slice_duration_beats == pytest.approx(0.5 * 128 / 96)
	assert trigger.reverse is False


def test_sampler_file_is_sticky (project: trackplay.model.Project) -> None:

	index = project.add_file("loop.wav")
	phrase = _phrase(project, TrackKind.SAMPLER, [
		dict(note=1, delta_time=1, file=index),
		dict(note=2, delta_time=1),
	])

	trigger = _resolve(project, 4, phrase, 1)

	assert trigger.path == "loop.wav"
	assert trigger.slice_count == 16


def test_sampler_without_file_is_silent (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.SAMPLER, [dict(note=1, delta_time=1), dict(note=1, delta_time=1, file=9)])

	assert _resolve(project, 4, phrase, 0) is None
	assert _resolve(project, 4, phrase, 1) is None


def test_sampler_ducking_lookup (project: trackplay.model.Project) -> None:

	index = project.add_file("pad.wav")
	project.ducking.set(3, trackplay.model.DuckingSettings(type=trackplay.model.DuckingType.DUCKING, bus=1))
	phrase = _phrase(project, TrackKind.SAMPLER, [dict(note=0, delta_time=1, file=index, ducking=3)])

	trigger = _resolve(project, 4, phrase, 0)

	assert trigger.ducking.bus == 1


def test_value_mapping () -> None:

	assert trackplay.resolver.pitch_semitones(0x80) == 0.0
	assert trackplay.resolver.pitch_semitones(0) == -24.0
	assert trackplay.resolver.pan_position(254) == 1.0
	assert trackplay.resolver.pan_position(0x80) == 0.0
	assert trackplay.resolver.low_pass_hz(254) == pytest.approx(20.0, rel=1e-3)
	assert trackplay.resolver.high_pass_hz(254) == pytest.approx(20000.0, rel=1e-3)
	assert trackplay.resolver.unit_amount(127) == 0.5
	assert trackplay.resolver.unit_amount(None) == 0.0
	assert trackplay.resolver.envelope_seconds(0) == pytest.approx(0.02)
	assert trackplay.resolver.envelope_seconds(254) == pytest.approx(30.0)
	assert trackplay.resolver.decay_seconds(254) == pytest.approx(30.0)


def test_effective_value_walks_upwards (project: trackplay.model.Project) -> None:

	phrase = _phrase(project, TrackKind.INSTRUMENT, [dict(note=48), dict(), dict(note=50), dict()])

	assert trackplay.resolver.effective_value(phrase, 1, "note") == 48
	assert trackplay.resolver.effective_value(phrase, 3, "note") == 50
	assert trackplay.resolver.effective_value(phrase, 1000, "note") == 50
	assert trackplay.resolver.effective_value(phrase, 3, "pan") is None
