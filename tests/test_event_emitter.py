import pytest

import trackplay.event_emitter


def test_on_and_emit_sync () -> None:

	"""Registered listeners are called on emit_sync."""

	emitter = trackplay.event_emitter.EventEmitter()
	received: list[int] = []

	emitter.on("tick", lambda v: received.append(v))
	emitter.emit_sync("tick", 42)

	assert received == [42]
	assert emitter.has_listeners("tick")
	assert not emitter.has_listeners("stop")


def test_off_removes_only_that_listener () -> None:

	emitter = trackplay.event_emitter.EventEmitter()
	a: list[int] = []
	b: list[int] = []

	def listener_a (v: int) -> None:
		a.append(v)

	def listener_b (v: int) -> None:
		b.append(v)

	emitter.on("tick", listener_a)
	emitter.on("tick", listener_b)
	emitter.off("tick", listener_a)
	emitter.emit_sync("tick", 7)

	assert a == []
	assert b == [7]


def test_off_raises_for_unregistered_listener () -> None:

	emitter = trackplay.event_emitter.EventEmitter()

	with pytest.raises(ValueError):
		emitter.off("tick", lambda: None)


def test_emit_sync_rejects_async_listener () -> None:

	emitter = trackplay.event_emitter.EventEmitter()

	async def listener () -> None:
		return None

	emitter.on("start", listener)

	with pytest.raises(ValueError):
		emitter.emit_sync("start")


def test_failing_listener_does_not_stop_others (caplog: pytest.LogCaptureFixture) -> None:

	emitter = trackplay.event_emitter.EventEmitter()
	received: list[str] = []

	def broken (name: str) -> None:
		raise RuntimeError("listener bug")

	emitter.on("trigger", broken)
	emitter.on("trigger", received.append)

	with caplog.at_level("WARNING"):
		emitter.emit_sync("trigger", "x")

	assert received == ["x"]
	assert "listener bug" in caplog.text


@pytest.mark.asyncio
async def test_emit_async_calls_both_kinds () -> None:

	emitter = trackplay.event_emitter.EventEmitter()
	received: list[str] = []

	async def async_listener (value: str) -> None:
		received.append(f"async {value}")

	def sync_listener (value: str) -> None:
		received.append(f"sync {value}")

	emitter.on("stop", async_listener)
	emitter.on("stop", sync_listener)

	await emitter.emit_async("stop", "now")

	assert sorted(received) == ["async now", "sync now"]


@pytest.mark.asyncio
async def test_emit_async_survives_failing_coroutine (caplog: pytest.LogCaptureFixture) -> None:

	emitter = trackplay.event_emitter.EventEmitter()

	async def broken () -> None:
		raise RuntimeError("async bug")

	emitter.on("stop", broken)

	with caplog.at_level("WARNING"):
		await emitter.emit_async("stop")

	assert "async bug" in caplog.text
