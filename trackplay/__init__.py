"""
trackplay - the playback engine of a grid-based music tracker.

A project is a song grid of 8 tracks by 16 rows.  Each song cell names a
chain, each chain row names a phrase, and each phrase is a column-per-parameter
table of up to 255 rows (note, delta-time, gate, filters, effect settings and
so on).  trackplay walks that hierarchy tick by tick and turns every playable
row into a trigger for an external synthesis engine, sent over OSC (and, for
instrument rows with MIDI settings, to a MIDI port).

What it does:

- **Tick clock.** ``60 / (bpm * ppq)`` seconds per tick, hybrid sleep+spin
  timing, tempo changes from the next tick without drift.
- **Cursor per track.** Song, chain and phrase scopes, resume from the last
  position, stop at the end of the song.
- **Sticky columns.** An unset note, file or mix column inherits the last set
  value above it in the phrase.
- **Modulation.** Probability gate, seeded random draw, offsets, incrementing
  counters and scale quantization.
- **Effects over time.** Retrigger bursts, time-stretch windows and chord
  arpeggios that span several ticks.

Minimal example:

```python
import asyncio
import trackplay

project = trackplay.load_project("song.json")
engine = trackplay.Engine(project, trackplay.OscTransport("127.0.0.1", 57120))

asyncio.run(trackplay.run_until_stopped(engine))
```

Package-level exports: ``Engine``, ``EngineConfig``, ``OscTransport``,
``PlaybackScope``, ``Project``, ``load_project``, ``run_until_stopped``,
``save_project``.
"""

import trackplay.config
import trackplay.engine
import trackplay.model
import trackplay.osc
import trackplay.savefile
import trackplay.sequencer


Engine = trackplay.engine.Engine
EngineConfig = trackplay.config.EngineConfig
OscTransport = trackplay.osc.OscTransport
PlaybackScope = trackplay.sequencer.PlaybackScope
Project = trackplay.model.Project
load_project = trackplay.savefile.load_project
run_until_stopped = trackplay.engine.run_until_stopped
save_project = trackplay.savefile.save_project
