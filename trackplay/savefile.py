"""Translate between a tracker save file (JSON) and a :class:`~trackplay.model.Project`.

The save format stores every cell as an integer with ``-1`` meaning "unset".
In memory an unset cell is ``None``; this module is the only place that knows
about the sentinel.  Older files with fewer phrase columns are padded with
unset cells on load.

Chord transposition is stored on disk as an enum (0 = none, 1 = zero
rotations, 2 = one rotation, ...); in memory it is the rotation count.
"""

import dataclasses
import json
import logging
import typing

import trackplay.constants
import trackplay.model


logger = logging.getLogger(__name__)


UNSET = -1

# Save-file column order.  The first 23 match the historical layout; later
# columns were appended and are absent from older files.
SAVE_COLUMNS: typing.Tuple[str, ...] = (
	"note", "pitch", "delta_time", "gate", "retrigger", "timestretch", "reverse",
	"pan", "low_pass", "high_pass", "comb", "reverb", "file",
	"chord", "chord_addition", "chord_transpose", "arpeggio", "midi", "soundmaker",
	"attack", "decay", "sustain", "release",
	"modulate", "ducking", "velocity",
)

# Keys that are not a plain camelCase of the attribute name.
_KEY_OVERRIDES = {
	"volume_db": "volumeDB",
}

_KIND_PREFIX = {
	trackplay.model.TrackKind.INSTRUMENT: "instrument",
	trackplay.model.TrackKind.SAMPLER: "sampler",
}

_TABLE_KEYS = (
	("retrigger", "retriggerSettings"),
	("timestretch", "timestrechSettings"),
	("modulate", "modulateSettings"),
	("ducking", "duckingSettings"),
	("midi", "midiSettings"),
	("soundmaker", "soundMakerSettings"),
)


def from_cell (value: typing.Any) -> typing.Optional[int]:

	"""Map an on-disk cell to its in-memory form (``-1`` and ``null`` become ``None``)."""

	if value is None or value == UNSET:
		return None

	return int(value)


def to_cell (value: typing.Optional[int]) -> int:

	"""Map an in-memory cell to its on-disk form."""

	return UNSET if value is None else int(value)


def _key (attribute: str) -> str:

	if attribute in _KEY_OVERRIDES:
		return _KEY_OVERRIDES[attribute]

	head, *rest = attribute.split("_")
	return head + "".join(part.capitalize() for part in rest)


def _row_from_cells (cells: typing.Sequence[typing.Any]) -> trackplay.model.PhraseRow:

	values: typing.Dict[str, typing.Optional[int]] = {}

	for column, raw in zip(SAVE_COLUMNS, cells):
		values[column] = from_cell(raw)

	transpose = values.get("chord_transpose")

	if transpose is not None:
		values["chord_transpose"] = transpose - 1 if transpose > 0 else None

	return trackplay.model.PhraseRow(**values)


def _row_to_cells (row: trackplay.model.PhraseRow) -> typing.List[int]:

	cells = []

	for column in SAVE_COLUMNS:
		value = getattr(row, column)

		if column == "chord_transpose" and value is not None:
			value += 1

		cells.append(to_cell(value))

	return cells


def _enum_from_cell (cls: typing.Type[typing.Any], raw: typing.Any) -> typing.Any:

	"""Read an enum cell; unknown or malformed values fall back to ``NONE`` with a warning."""

	try:
		return cls(from_cell(raw) or 0)
	except (TypeError, ValueError):
		logger.warning(f"Unknown {cls.__name__} value {raw!r} - using NONE")
		return cls.NONE


def _record_from_dict (cls: typing.Type[typing.Any], data: typing.Dict[str, typing.Any]) -> typing.Any:

	"""Build a settings dataclass from a save-file dict, keeping defaults for missing keys."""

	record = cls()

	for field in dataclasses.fields(cls):
		key = _key(field.name)

		if key not in data:
			continue

		default = getattr(record, field.name)
		raw = data[key]

		if field.name == "rows":
			value = [
				trackplay.model.ArpeggioRow(
					direction = _enum_from_cell(trackplay.model.ArpeggioDirection, item.get("direction")),
					count = from_cell(item.get("count")),
					divisor = from_cell(item.get("divisor")),
				)
				for item in raw
			][:trackplay.constants.ARPEGGIO_ROWS]
			value += [trackplay.model.ArpeggioRow() for _ in range(trackplay.constants.ARPEGGIO_ROWS - len(value))]

		elif field.name == "type":
			value = _enum_from_cell(trackplay.model.DuckingType, raw)

		elif field.name == "channel":
			# Older files store the channel as a string, "all" included.
			value = int(raw) if str(raw).isdigit() else default

		elif isinstance(default, bool):
			value = bool(raw)

		elif isinstance(default, float):
			value = float(raw)

		elif isinstance(default, str):
			value = str(raw)

		elif isinstance(default, int):
			value = int(raw)

		else:
			value = from_cell(raw)

		setattr(record, field.name, value)

	return record


def _record_to_dict (record: typing.Any) -> typing.Dict[str, typing.Any]:

	data: typing.Dict[str, typing.Any] = {}

	for field in dataclasses.fields(record):
		value = getattr(record, field.name)

		if field.name == "rows":
			value = [
				{"direction": int(row.direction), "count": to_cell(row.count), "divisor": to_cell(row.divisor)}
				for row in value
			]

		elif field.name == "channel":
			value = str(value)

		elif isinstance(value, (bool, float, str)):
			pass

		elif isinstance(value, int):
			value = int(value)

		elif value is None:
			value = UNSET

		data[_key(field.name)] = value

	return data


def _load_table (table: trackplay.model.SettingsTable, items: typing.Sequence[typing.Dict[str, typing.Any]], cls: typing.Type[typing.Any]) -> None:

	for index, item in enumerate(items[:len(table)]):
		table.set(index, _record_from_dict(cls, item))


def project_from_dict (
	data: typing.Dict[str, typing.Any],
	default_bpm: float = trackplay.constants.DEFAULT_BPM,
	default_ppq: int = trackplay.constants.DEFAULT_PPQ
) -> trackplay.model.Project:

	"""
	Build a project from a decoded save file.  Missing sections keep their defaults;
	a file without a tempo gets ``default_bpm`` and ``default_ppq``.
	"""

	project = trackplay.model.Project(
		bpm = float(data.get("bpm", default_bpm)),
		ppq = int(data.get("ppq", default_ppq)),
	)

	for track, column in enumerate(data.get("songData", [])[:trackplay.constants.NUM_TRACKS]):
		for row, cell in enumerate(column[:trackplay.constants.SONG_ROWS]):
			project.song.cells[track][row] = from_cell(cell)

	for track, is_sampler in enumerate(data.get("trackTypes", [])[:trackplay.constants.NUM_TRACKS]):
		project.track_kinds[track] = trackplay.model.TrackKind.SAMPLER if is_sampler else trackplay.model.TrackKind.INSTRUMENT

	for track, level in enumerate(data.get("trackSetLevels", [])[:trackplay.constants.NUM_TRACKS]):
		project.track_levels[track] = float(level)

	for kind, prefix in _KIND_PREFIX.items():
		pool = project.pools[kind]

		for chain_id, rows in enumerate(data.get(f"{prefix}ChainsData") or []):
			if chain_id >= len(pool.chains):
				break
			for row, cell in enumerate(rows[:trackplay.constants.CHAIN_ROWS]):
				pool.chains[chain_id].rows[row] = from_cell(cell)

		for phrase_id, rows in enumerate(data.get(f"{prefix}PhrasesData") or []):
			if phrase_id >= len(pool.phrases) or not rows:
				continue
			for row, cells in enumerate(rows[:trackplay.constants.PHRASE_ROWS]):
				pool.phrases[phrase_id].rows[row] = _row_from_cells(cells)

	project.files = list(data.get("samplerPhrasesFiles") or data.get("phrasesFiles") or [])

	for path, meta in (data.get("fileMetadata") or {}).items():
		project.file_metadata[path] = trackplay.model.FileMetadata(
			bpm = float(meta.get("bpm", trackplay.constants.DEFAULT_FILE_BPM)),
			slices = int(meta.get("slices", trackplay.constants.DEFAULT_FILE_SLICES)),
		)

	for attribute, key in _TABLE_KEYS:
		table = getattr(project, attribute)
		_load_table(table, data.get(key) or [], type(table.entries[0]))

	_load_table(project.arpeggio, data.get("arpeggioSettings") or [], trackplay.model.ArpeggioSettings)

	return project


def project_to_dict (project: trackplay.model.Project) -> typing.Dict[str, typing.Any]:

	"""Encode a project in the save-file layout."""

	with project.lock:

		data: typing.Dict[str, typing.Any] = {
			"bpm": project.bpm,
			"ppq": project.ppq,
			"songData": [[to_cell(cell) for cell in column] for column in project.song.cells],
			"trackTypes": [kind is trackplay.model.TrackKind.SAMPLER for kind in project.track_kinds],
			"trackSetLevels": list(project.track_levels),
			"samplerPhrasesFiles": list(project.files),
			"fileMetadata": {path: {"bpm": meta.bpm, "slices": meta.slices} for path, meta in project.file_metadata.items()},
			"arpeggioSettings": [_record_to_dict(entry) for entry in project.arpeggio],
		}

		for kind, prefix in _KIND_PREFIX.items():
			pool = project.pools[kind]
			data[f"{prefix}ChainsData"] = [[to_cell(cell) for cell in chain.rows] for chain in pool.chains]
			data[f"{prefix}PhrasesData"] = [[_row_to_cells(row) for row in phrase.rows] for phrase in pool.phrases]

		for attribute, key in _TABLE_KEYS:
			data[key] = [_record_to_dict(entry) for entry in getattr(project, attribute)]

	return data


def load_project (
	path: str,
	default_bpm: float = trackplay.constants.DEFAULT_BPM,
	default_ppq: int = trackplay.constants.DEFAULT_PPQ
) -> trackplay.model.Project:

	"""Read a JSON save file from ``path``."""

	with open(path, "r") as f:
		data = json.load(f)

	project = project_from_dict(data, default_bpm, default_ppq)
	logger.info(f"Loaded project {path} ({project.bpm:.2f} BPM, PPQ {project.ppq}, {len(project.files)} files)")

	return project


def save_project (project: trackplay.model.Project, path: str) -> None:

	"""Write ``project`` to ``path`` as JSON."""

	with open(path, "w") as f:
		json.dump(project_to_dict(project), f)

	logger.info(f"Saved project to {path}")
