"""Engine settings, loaded from an optional YAML file.

```yaml
tempo:
  bpm: 120
  ppq: 4
osc:
  host: 127.0.0.1
  port: 57120
midi:
  enabled: true
clock:
  spin_wait: true
logging:
  level: INFO
playback:
  seed: null
```

Every key is optional.  A missing file means all defaults.
"""

import dataclasses
import logging
import os
import typing

import yaml

import trackplay.clock
import trackplay.constants


logger = logging.getLogger(__name__)


_SECTIONS = ('tempo', 'osc', 'midi', 'clock', 'logging', 'playback')


@dataclasses.dataclass
class EngineConfig:

	"""
	Runtime settings for the engine and its transports.

	``bpm`` and ``ppq`` apply only when the project file does not set its own.
	``seed`` fixes the per-track random streams for reproducible playback.
	"""

	bpm: float = trackplay.constants.DEFAULT_BPM
	ppq: int = trackplay.constants.DEFAULT_PPQ
	osc_host: str = "127.0.0.1"
	osc_port: int = 57120
	midi_enabled: bool = True
	spin_wait: bool = True
	log_level: str = "INFO"
	seed: typing.Optional[int] = None


def config_from_dict (data: typing.Optional[typing.Dict[str, typing.Any]]) -> EngineConfig:

	"""Build an :class:`EngineConfig` from parsed YAML, keeping defaults for anything missing."""

	data = data or {}

	if not isinstance(data, dict):
		raise ValueError(f"Config must be a mapping, got {type(data).__name__}")

	for key in data:
		if key not in _SECTIONS:
			logger.warning(f"Unknown config section {key!r} ignored")

	tempo = data.get('tempo') or {}
	osc = data.get('osc') or {}
	midi = data.get('midi') or {}
	clock = data.get('clock') or {}
	log = data.get('logging') or {}
	playback = data.get('playback') or {}

	defaults = EngineConfig()

	seed = playback.get('seed', defaults.seed)

	return EngineConfig(
		bpm = trackplay.clock.clamp_bpm(tempo.get('bpm', defaults.bpm)),
		ppq = trackplay.clock.clamp_ppq(tempo.get('ppq', defaults.ppq)),
		osc_host = str(osc.get('host', defaults.osc_host)),
		osc_port = int(osc.get('port', defaults.osc_port)),
		midi_enabled = bool(midi.get('enabled', defaults.midi_enabled)),
		spin_wait = bool(clock.get('spin_wait', defaults.spin_wait)),
		log_level = str(log.get('level', defaults.log_level)).upper(),
		seed = None if seed is None else int(seed)
	)


def load_config (config_path: str = 'trackplay.yaml') -> EngineConfig:

	"""
	Load engine settings from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return EngineConfig()

	with open(config_path, 'r') as f:
		return config_from_dict(yaml.safe_load(f))
