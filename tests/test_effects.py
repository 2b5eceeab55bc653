import random

import pytest

import trackplay.effects
import trackplay.model
import trackplay.triggers

from trackplay.effects import EffectKind
from trackplay.model import ArpeggioDirection, ArpeggioRow, ArpeggioSettings


def _arpeggio (*rows: ArpeggioRow) -> ArpeggioSettings:

	settings = ArpeggioSettings()
	settings.rows[:len(rows)] = list(rows)
	return settings


def _sampler_trigger (**overrides: object) -> trackplay.triggers.SamplerTrigger:

	values = dict(track=4, path="loop.wav", slice_index=0, slice_count=16, bpm_source=120.0, bpm_target=120.0)
	values.update(overrides)
	return trackplay.triggers.SamplerTrigger(**values)


def test_lerp_clamps_progress () -> None:

	assert trackplay.effects.lerp(1.0, 3.0, 0.5) == 2.0
	assert trackplay.effects.lerp(1.0, 3.0, -1.0) == 1.0
	assert trackplay.effects.lerp(1.0, 3.0, 2.0) == 3.0


def test_beats_to_ticks_is_at_least_one () -> None:

	assert trackplay.effects.beats_to_ticks(0.5, 4) == 2
	assert trackplay.effects.beats_to_ticks(0, 4) == 1


def test_retrigger_episode_interpolates () -> None:

	settings = trackplay.model.RetriggerSettings(times=4, beats=1, start=1.0, end=2.0, pitch_change=12, final_pitch_to_start=True)
	episode = trackplay.effects.RetriggerEpisode(4, 1, 0, settings, ppq=4)

	assert episode.duration == 4
	assert episode.rate == 1.0
	assert episode.current_retrigger == 0

	episode.advance()
	episode.advance()

	assert episode.rate == 1.5
	assert episode.pitch_offset == 6.0
	assert episode.current_retrigger == 2

	episode.advance()

	# The final retrigger snaps back to the starting pitch.
	assert episode.is_final
	assert episode.pitch_offset == 0.0

	episode.advance()

	assert episode.finished


@pytest.mark.parametrize("snap_back", [False, True])
def test_retrigger_volume_slide (snap_back: bool) -> None:

	settings = trackplay.model.RetriggerSettings(times=4, beats=1, pitch_change=12, volume_db=-8, final_volume_to_start=snap_back)
	episode = trackplay.effects.RetriggerEpisode(4, 0, 0, settings, ppq=4)

	assert episode.volume_offset == 0.0

	episode.advance()
	episode.advance()

	assert episode.volume_offset == -4.0

	episode.advance()

	assert episode.is_final
	assert episode.volume_offset == (0.0 if snap_back else -6.0)

	# Only the volume snaps back; the pitch keeps sliding.
	assert episode.pitch_offset == 9.0


def test_timestretch_ratio () -> None:

	settings = trackplay.model.TimestretchSettings(start=1.0, end=0.5, beats=2)
	episode = trackplay.effects.TimestretchEpisode(4, 0, 0, settings, ppq=2)

	assert episode.duration == 4
	assert episode.ratio == 1.0

	for _ in range(4):
		episode.advance()

	assert episode.ratio == 0.5
	assert episode.params() == trackplay.triggers.TimestretchParams(start=1.0, end=0.5, beats=2)


def test_next_chord_note_wraps_with_octave () -> None:

	chord = [60, 64, 67]

	assert trackplay.effects.next_chord_note(60, chord, up=True) == 64
	assert trackplay.effects.next_chord_note(67, chord, up=True) == 72
	assert trackplay.effects.next_chord_note(72, chord, up=True) == 76
	assert trackplay.effects.next_chord_note(60, chord, up=False) == 55


def test_unroll_chord_and_single_note () -> None:

	settings = _arpeggio(ArpeggioRow(ArpeggioDirection.UP, 3, 4), ArpeggioRow(ArpeggioDirection.DOWN, 1, 2))

	assert trackplay.effects.unroll_arpeggio([60, 64, 67], settings) == [(64, 4), (67, 4), (72, 4), (67, 2)]
	assert trackplay.effects.unroll_arpeggio([60], _arpeggio(ArpeggioRow(ArpeggioDirection.UP, 2, 1))) == [(72, 1), (84, 1)]


def test_inactive_arpeggio_rows_are_skipped () -> None:

	settings = _arpeggio(ArpeggioRow(ArpeggioDirection.NONE, 3, 4), ArpeggioRow(ArpeggioDirection.UP, 1, None))

	assert trackplay.effects.unroll_arpeggio([60, 64, 67], settings) == []


def test_arpeggio_steps_fall_inside_ticks () -> None:

	"""With delta-time 4 and divisor 8, steps land every half tick after the row."""

	trigger = trackplay.triggers.InstrumentTrigger(track=0, notes=[60, 64, 67], delta_ticks=4)
	episode = trackplay.effects.ArpeggioEpisode(0, 0, 0, trigger, _arpeggio(ArpeggioRow(ArpeggioDirection.UP, 3, 8)))

	assert [step.offset for step in episode.steps] == [0.5, 1.0, 1.5]
	assert episode.duration == 2

	first = episode.due()
	assert [(step.trigger.notes, step.delay) for step in first] == [([64], 0.5)]

	episode.advance()
	second = episode.due()
	assert [(step.trigger.notes, step.delay) for step in second] == [([67], 0.0), ([72], 0.5)]

	# Steps are copies of the row's trigger with a single note.
	assert second[0].trigger.delta_ticks == 4
	assert trigger.notes == [60, 64, 67]


def test_every_gate_counts_per_entry () -> None:

	scheduler = trackplay.effects.EffectScheduler(trackplay.model.Project())
	rng = random.Random(0)

	results = [scheduler.should_activate(4, EffectKind.RETRIGGER, 1, 2, 100, rng) for _ in range(4)]
	other = scheduler.should_activate(4, EffectKind.RETRIGGER, 2, 2, 100, rng)

	assert results == [True, False, True, False]
	assert other is True


def test_zero_probability_never_activates () -> None:

	scheduler = trackplay.effects.EffectScheduler(trackplay.model.Project())
	rng = random.Random(0)

	assert not any(scheduler.should_activate(4, EffectKind.TIMESTRETCH, 0, 1, 0, rng) for _ in range(20))


def test_sampler_trigger_starts_episodes () -> None:

	project = trackplay.model.Project(ppq=4)
	project.retrigger.set(1, trackplay.model.RetriggerSettings(times=2, beats=1, start=1.0, end=2.0))
	project.timestretch.set(2, trackplay.model.TimestretchSettings(start=1.0, end=2.0, beats=0.5))
	scheduler = trackplay.effects.EffectScheduler(project)

	trigger = _sampler_trigger(retrigger_index=1, timestretch_index=2)
	started = scheduler.on_trigger(trigger, 0, random.Random(0))

	assert {episode.kind for episode in started} == {EffectKind.RETRIGGER, EffectKind.TIMESTRETCH}
	assert trigger.retrigger is not None and trigger.retrigger.times == 2
	assert trigger.timestretch is not None and trigger.timestretch.beats == 0.5

	# Timestretch lasts two ticks, retrigger four.
	scheduler.advance(4)
	scheduler.advance(4)

	assert scheduler.episode(4, EffectKind.TIMESTRETCH) is None
	assert scheduler.episode(4, EffectKind.RETRIGGER) is not None


def test_new_episode_preempts_same_kind () -> None:

	project = trackplay.model.Project(ppq=4)
	project.retrigger.set(1, trackplay.model.RetriggerSettings(times=2, beats=4))
	project.retrigger.set(3, trackplay.model.RetriggerSettings(times=8, beats=4))
	scheduler = trackplay.effects.EffectScheduler(project)
	rng = random.Random(0)

	scheduler.on_trigger(_sampler_trigger(retrigger_index=1), 0, rng)
	scheduler.on_trigger(_sampler_trigger(retrigger_index=3), 1, rng)

	episodes = scheduler.active(4)

	assert len(episodes) == 1
	assert episodes[0].settings_index == 3


def test_dangling_index_starts_nothing () -> None:

	scheduler = trackplay.effects.EffectScheduler(trackplay.model.Project())
	trigger = _sampler_trigger(retrigger_index=400)

	assert scheduler.on_trigger(trigger, 0, random.Random(0)) == []
	assert trigger.retrigger is None


def test_instrument_arpeggio_and_cancel () -> None:

	project = trackplay.model.Project()
	project.arpeggio.set(0, _arpeggio(ArpeggioRow(ArpeggioDirection.UP, 2, 1)))
	scheduler = trackplay.effects.EffectScheduler(project)

	trigger = trackplay.triggers.InstrumentTrigger(track=1, notes=[60], delta_ticks=1, arpeggio_index=0)
	started = scheduler.on_trigger(trigger, 0, random.Random(0))

	assert [episode.kind for episode in started] == [EffectKind.ARPEGGIO]
	assert scheduler.due_arpeggio_steps(1) == []

	scheduler.advance(1)
	assert [step.trigger.notes for step in scheduler.due_arpeggio_steps(1)] == [[72]]

	scheduler.cancel_track(1)

	assert scheduler.active(1) == []
	assert scheduler.due_arpeggio_steps(1) == []


def test_reset_track_restarts_every_counter () -> None:

	scheduler = trackplay.effects.EffectScheduler(trackplay.model.Project())
	rng = random.Random(0)

	assert scheduler.should_activate(4, EffectKind.RETRIGGER, 0, 3, 100, rng)
	assert not scheduler.should_activate(4, EffectKind.RETRIGGER, 0, 3, 100, rng)

	scheduler.reset_track(4)

	assert scheduler.should_activate(4, EffectKind.RETRIGGER, 0, 3, 100, rng)


@pytest.mark.parametrize("count", [0, 1])
def test_zero_count_rows_add_no_steps (count: int) -> None:

	steps = trackplay.effects.unroll_arpeggio([60, 64], _arpeggio(ArpeggioRow(ArpeggioDirection.UP, count, 1)))

	assert len(steps) == count
