import pathlib

import pytest

import trackplay.config


def test_missing_file_uses_defaults (tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:

	with caplog.at_level("WARNING"):
		config = trackplay.config.load_config(str(tmp_path / "absent.yaml"))

	assert config == trackplay.config.EngineConfig()
	assert "not found" in caplog.text


def test_nested_yaml_layout (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "trackplay.yaml"
	path.write_text(
		"tempo:\n"
		"  bpm: 140\n"
		"  ppq: 8\n"
		"osc:\n"
		"  host: 10.0.0.5\n"
		"  port: 9000\n"
		"midi:\n"
		"  enabled: false\n"
		"clock:\n"
		"  spin_wait: false\n"
		"logging:\n"
		"  level: debug\n"
		"playback:\n"
		"  seed: 7\n"
	)

	config = trackplay.config.load_config(str(path))

	assert config.bpm == 140
	assert config.ppq == 8
	assert config.osc_host == "10.0.0.5"
	assert config.osc_port == 9000
	assert config.midi_enabled is False
	assert config.spin_wait is False
	assert config.log_level == "DEBUG"
	assert config.seed == 7


def test_partial_config_keeps_defaults (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "trackplay.yaml"
	path.write_text("osc:\n  port: 57121\n")

	config = trackplay.config.load_config(str(path))

	assert config.osc_port == 57121
	assert config.osc_host == "127.0.0.1"
	assert config.bpm == 120.0
	assert config.seed is None


def test_empty_file_is_all_defaults (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "trackplay.yaml"
	path.write_text("")

	assert trackplay.config.load_config(str(path)) == trackplay.config.EngineConfig()


def test_out_of_range_tempo_is_clamped () -> None:

	config = trackplay.config.config_from_dict({"tempo": {"bpm": 5000, "ppq": 0}})

	assert config.bpm == 999.0
	assert config.ppq == 1


def test_unknown_sections_warn (caplog: pytest.LogCaptureFixture) -> None:

	with caplog.at_level("WARNING"):
		trackplay.config.config_from_dict({"sequencer": {"initial_bpm": 125}})

	assert "sequencer" in caplog.text


def test_non_mapping_raises () -> None:

	with pytest.raises(ValueError):
		trackplay.config.config_from_dict(["tempo"])
