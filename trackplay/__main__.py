import argparse
import asyncio
import logging
import typing

import trackplay.config
import trackplay.engine
import trackplay.midi_utils
import trackplay.osc
import trackplay.savefile
import trackplay.sequencer


logger = logging.getLogger(__name__)


def parse_args (argv: typing.Optional[typing.List[str]] = None) -> argparse.Namespace:

	"""
	Parse command-line arguments.
	"""

	parser = argparse.ArgumentParser(prog="trackplay", description="Play a tracker project over OSC.")

	parser.add_argument("project", help="Project save file (JSON)")
	parser.add_argument("--config", default="trackplay.yaml", help="YAML settings file (default: %(default)s)")
	parser.add_argument(
		"--scope",
		choices = [scope.value for scope in trackplay.sequencer.PlaybackScope],
		default = trackplay.sequencer.PlaybackScope.SONG.value,
		help = "Play the whole song, or loop one chain or phrase"
	)
	parser.add_argument("--track", type=int, default=None, help="Play only this track (0-7)")

	return parser.parse_args(argv)


def main (argv: typing.Optional[typing.List[str]] = None) -> None:

	"""
	Main entry point for the trackplay application.
	"""

	args = parse_args(argv)
	config = trackplay.config.load_config(args.config)

	logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

	logger.info("trackplay starting...")

	project = trackplay.savefile.load_project(args.project, config.bpm, config.ppq)

	transport = trackplay.osc.OscTransport(config.osc_host, config.osc_port)
	midi = trackplay.midi_utils.MidiOutput() if config.midi_enabled else None

	engine = trackplay.engine.Engine(project, transport, config, midi)

	try:
		asyncio.run(trackplay.engine.run_until_stopped(
			engine,
			scope = trackplay.sequencer.PlaybackScope(args.scope),
			track = args.track
		))
	except KeyboardInterrupt:
		pass

	logger.info("trackplay stopped.")


if __name__ == "__main__":
	main()
