import threading
import typing

import mido
import pytest

import trackplay.model
import trackplay.triggers


class FakeTransport:

	"""Records every call instead of sending anything."""

	def __init__ (self) -> None:

		self._lock = threading.Lock()
		self.instrument: typing.List[trackplay.triggers.InstrumentTrigger] = []
		self.sampler: typing.List[trackplay.triggers.SamplerTrigger] = []
		self.stops = 0
		self.closed = False

	def play_instrument (self, trigger: trackplay.triggers.InstrumentTrigger) -> None:

		with self._lock:
			self.instrument.append(trigger)

	def play_sampler (self, trigger: trackplay.triggers.SamplerTrigger) -> None:

		with self._lock:
			self.sampler.append(trigger)

	def stop_all (self) -> None:

		with self._lock:
			self.stops += 1

	def close (self) -> None:

		self.closed = True


class FailingTransport (FakeTransport):

	"""A transport whose every send raises."""

	def play_instrument (self, trigger: trackplay.triggers.InstrumentTrigger) -> None:

		raise ConnectionError("synth unreachable")

	def play_sampler (self, trigger: trackplay.triggers.SamplerTrigger) -> None:

		raise ConnectionError("synth unreachable")


class FakeMidiOut:

	"""MIDI output stub that keeps what it was sent."""

	def __init__ (self, name: str) -> None:

		self.name = name
		self.messages: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		self.messages.append(message)

	def close (self) -> None:

		self.closed = True

	def panic (self) -> None:

		return None


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> typing.Dict[str, FakeMidiOut]:

	"""Patch mido to open fake MIDI outputs; returns the ports opened so far, by name."""

	opened: typing.Dict[str, FakeMidiOut] = {}

	def fake_get_output_names () -> typing.List[str]:
		return ["Dummy MIDI", "Scarlett 2i4 USB:Scarlett 2i4 USB MIDI 1 16:0"]

	def fake_open_output (name: str) -> FakeMidiOut:
		port = FakeMidiOut(name)
		opened[name] = port
		return port

	monkeypatch.setattr(mido, "get_output_names", fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", fake_open_output)

	return opened


@pytest.fixture
def fake_transport () -> FakeTransport:

	return FakeTransport()


@pytest.fixture
def project () -> trackplay.model.Project:

	"""An empty project at 120 BPM, PPQ 2 (0.25 s per tick)."""

	return trackplay.model.Project(bpm=120, ppq=2)


INSTRUMENT = trackplay.model.TrackKind.INSTRUMENT
SAMPLER = trackplay.model.TrackKind.SAMPLER


def place_phrase (
	project: trackplay.model.Project,
	track: int,
	rows: typing.Sequence[typing.Dict[str, typing.Optional[int]]],
	song_row: int = 0,
	chain_id: int = 0,
	phrase_id: int = 0
) -> None:

	"""Put ``rows`` into a phrase reached from ``track``'s song row via a one-phrase chain."""

	kind = project.track_kind(track)

	project.set_song_cell(track, song_row, chain_id)
	project.set_chain_row(kind, chain_id, 0, phrase_id)

	for index, columns in enumerate(rows):
		project.set_phrase_row(kind, phrase_id, index, **columns)


@pytest.fixture
def single_note_project (project: trackplay.model.Project) -> trackplay.model.Project:

	"""Track 0: song row 0 -> chain 0 -> phrase 0, a single note 60 held for 4 ticks."""

	place_phrase(project, 0, [dict(note=60, delta_time=4)])
	return project
