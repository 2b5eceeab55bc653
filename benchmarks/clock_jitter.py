"""Tick clock jitter benchmark.

Runs the playback clock for a number of beats with an empty tick callback and
measures how late each tick fires against its ideal time.

Usage:
    python benchmarks/clock_jitter.py [--bpm BPM] [--ppq PPQ] [--beats N]
                                      [--no-spin-wait] [--compare]
"""

import argparse
import asyncio
import logging
import statistics
import time
import typing

logging.basicConfig(level=logging.ERROR)

import trackplay.clock


def _run_benchmark (bpm: float, ppq: int, beats: int, spin_wait: bool) -> typing.List[float]:

	"""Return per-tick lateness in seconds."""

	clock = trackplay.clock.Clock(bpm=bpm, ppq=ppq, spin_wait=spin_wait, max_ticks=beats * ppq)
	fired: typing.List[float] = []

	async def on_tick (tick: int) -> None:
		fired.append(time.perf_counter())

	asyncio.run(clock.run(on_tick))

	period = trackplay.clock.tick_period(bpm, ppq)

	return [stamp - (clock.start_time + index * period) for index, stamp in enumerate(fired)]


def _print_report (jitter: typing.List[float], bpm: float, ppq: int, spin_wait: bool, label: str = "") -> None:

	if not jitter:
		print("No ticks measured.")
		return

	ms = sorted(value * 1000 for value in jitter)

	mode = "spin-wait on" if spin_wait else "spin-wait off"
	header = f" {label}" if label else ""

	print(f"\nClock jitter{header}: {len(ms)} ticks at {bpm:.0f} BPM, PPQ {ppq} ({mode})")
	print(f"  Tick period : {trackplay.clock.tick_period(bpm, ppq) * 1000:8.3f} ms")
	print(f"  Mean        : {statistics.mean(ms):8.3f} ms")
	print(f"  Median      : {statistics.median(ms):8.3f} ms")
	print(f"  P95         : {ms[int(len(ms) * 0.95)]:8.3f} ms")
	print(f"  Max         : {ms[-1]:8.3f} ms")
	print(f"  Drift       : {(jitter[-1] - jitter[0]) * 1000:+8.3f} ms")


def main () -> None:

	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("--bpm", type=float, default=120, help="Tempo (default: 120)")
	parser.add_argument("--ppq", type=int, default=4, help="Ticks per beat (default: 4)")
	parser.add_argument("--beats", type=int, default=64, help="Beats to measure (default: 64)")
	parser.add_argument("--no-spin-wait", action="store_true", help="Sleep only, no busy-wait")
	parser.add_argument("--compare", action="store_true", help="Run both modes")
	args = parser.parse_args()

	if args.compare:
		for spin_wait in (True, False):
			jitter = _run_benchmark(args.bpm, args.ppq, args.beats, spin_wait)
			_print_report(jitter, args.bpm, args.ppq, spin_wait, label="[compare]")
		return

	spin_wait = not args.no_spin_wait
	_print_report(_run_benchmark(args.bpm, args.ppq, args.beats, spin_wait), args.bpm, args.ppq, spin_wait)


if __name__ == "__main__":
	main()
