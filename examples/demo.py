"""
trackplay demo - a project built in code.

A two-bar pattern in A minor, played once through and sent to a synth
listening for OSC on 127.0.0.1:57120.

How to read this file
─────────────────────
1. Project   - Tempo and ticks per beat.
2. Settings  - Modulation, arpeggio and retrigger tables, referenced by index.
3. Tracks    - Song cell -> chain -> phrase, one phrase per track.
4. Play      - Press Ctrl+C to stop.  The project is also saved to demo.json.

Track 0 plays a bass line whose notes are nudged at random and snapped back
to A minor.  Track 1 plays minor chords, each unrolled into an upward
arpeggio.  Track 4 (a sampler track) plays slices of a drum break, with a
retrigger burst on the last hit of the bar.
"""

import asyncio
import logging

import trackplay
import trackplay.chords
import trackplay.model


logging.basicConfig(level=logging.INFO)


# ─── Project ─────────────────────────────────────────────────────────

project = trackplay.Project(bpm=112, ppq=4)

INSTRUMENT = trackplay.model.TrackKind.INSTRUMENT
SAMPLER = trackplay.model.TrackKind.SAMPLER


# ─── Settings ────────────────────────────────────────────────────────

# Random offset of up to 3 semitones, quantized to A minor.
project.modulate.set(0, trackplay.model.ModulateSettings(seed=0, irandom=3, scale_root=9, scale="minor", probability=60))

arpeggio = trackplay.model.ArpeggioSettings()
arpeggio.rows[0] = trackplay.model.ArpeggioRow(trackplay.model.ArpeggioDirection.UP, 3, 4)
project.arpeggio.set(0, arpeggio)

project.retrigger.set(0, trackplay.model.RetriggerSettings(times=6, start=1.0, end=2.0, beats=0.5, pitch_change=12.0))

BREAK = project.add_file("samples/amen.wav", trackplay.model.FileMetadata(bpm=136, slices=16))


# ─── Tracks ──────────────────────────────────────────────────────────

BASS = [45, None, 48, None, 45, None, 52, 50]

project.set_song_cell(0, 0, 0)
project.set_chain_row(INSTRUMENT, 0, 0, 0)

for row, note in enumerate(BASS):
	if note is not None:
		project.set_phrase_row(INSTRUMENT, 0, row, note=note, delta_time=4, gate=64, modulate=0)
	else:
		project.set_phrase_row(INSTRUMENT, 0, row, delta_time=4)

project.set_song_cell(1, 0, 1)
project.set_chain_row(INSTRUMENT, 1, 0, 1)

for row, note in enumerate([57, 53, 48, 55]):
	project.set_phrase_row(INSTRUMENT, 1, row, note=note, delta_time=8, chord=int(trackplay.chords.ChordType.MINOR), arpeggio=0)

project.set_song_cell(4, 0, 0)
project.set_chain_row(SAMPLER, 0, 0, 0)

for row, slice_number in enumerate([0, 2, 4, 2, 8, 10, 12, 14]):
	project.set_phrase_row(SAMPLER, 0, row, note=slice_number, delta_time=4, file=BREAK if row == 0 else None)

project.set_phrase_row(SAMPLER, 0, 7, note=14, delta_time=4, retrigger=0)


# ─── Play ────────────────────────────────────────────────────────────

trackplay.save_project(project, "demo.json")

engine = trackplay.Engine(project, trackplay.OscTransport("127.0.0.1", 57120))

asyncio.run(trackplay.run_until_stopped(engine))
