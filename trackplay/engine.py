"""Playback engine: the clock, the sequencer and the trigger emitter wired together.

```python
project = trackplay.savefile.load_project("song.json")
engine = trackplay.engine.Engine(project, trackplay.osc.OscTransport())

asyncio.run(trackplay.engine.run_until_stopped(engine))
```

Each tick the engine advances the sequencer (under ``project.lock``), then
hands every trigger to a worker thread so a slow or failing transport never
delays the next tick.  Arpeggio steps falling inside the tick are sent after
their sub-tick delay.  When the last track stops, the clock stops too.
"""

import asyncio
import logging
import signal
import typing

import trackplay.clock
import trackplay.config
import trackplay.effects
import trackplay.event_emitter
import trackplay.midi_utils
import trackplay.model
import trackplay.resolver
import trackplay.sequencer
import trackplay.transport
import trackplay.triggers


logger = logging.getLogger(__name__)


class Engine:

	"""
	One playback session over one project.

	Owns the clock, resolver, effect scheduler, sequencer and emitter; nothing
	is kept at module level, so several engines can run side by side (tests
	do this).
	"""

	def __init__ (
		self,
		project: trackplay.model.Project,
		transport: trackplay.transport.TriggerTransport,
		config: typing.Optional[trackplay.config.EngineConfig] = None,
		midi: typing.Optional[trackplay.midi_utils.MidiOutput] = None,
		render_mode: bool = False,
		max_ticks: typing.Optional[int] = None
	) -> None:

		"""
		Parameters:
			project: The composition to play.  Its ``bpm`` and ``ppq`` set the clock.
			transport: Where triggers go.
			config: Clock and seeding options; defaults when omitted.
			midi: Optional MIDI output for rows with MIDI settings.
			render_mode: Fire ticks back to back instead of in real time.
			max_ticks: Stop the clock after this many ticks.
		"""

		self.project = project
		self.config = config or trackplay.config.EngineConfig()

		self.clock = trackplay.clock.Clock(
			bpm = project.bpm,
			ppq = project.ppq,
			spin_wait = self.config.spin_wait,
			render_mode = render_mode,
			max_ticks = max_ticks
		)

		with project.lock:
			project.bpm = self.clock.bpm
			project.ppq = self.clock.ppq

		self.resolver = trackplay.resolver.Resolver(project)
		self.effects = trackplay.effects.EffectScheduler(project)
		self.sequencer = trackplay.sequencer.Sequencer(project, self.resolver, self.effects)
		self.emitter = trackplay.transport.Emitter(transport, midi)
		self.events = trackplay.event_emitter.EventEmitter()

		self.task: typing.Optional[asyncio.Task] = None
		self._sends: typing.Set[asyncio.Task] = set()
		self._delayed: typing.Dict[int, typing.List[asyncio.TimerHandle]] = {}
		self._session_open = False
		self._in_tick = False

	@property
	def running (self) -> bool:

		return self.task is not None and not self.task.done()

	def set_bpm (self, bpm: float) -> None:

		"""Change tempo from the next tick.  Out-of-range values are clamped."""

		self.clock.bpm = bpm

		with self.project.lock:
			self.project.bpm = self.clock.bpm

	def set_ppq (self, ppq: int) -> None:

		"""Change ticks per beat from the next tick.  Out-of-range values are clamped."""

		self.clock.ppq = ppq

		with self.project.lock:
			self.project.ppq = self.clock.ppq

	async def play (
		self,
		scope: trackplay.sequencer.PlaybackScope = trackplay.sequencer.PlaybackScope.SONG,
		track: typing.Optional[int] = None,
		from_top: bool = False,
		chain: typing.Optional[int] = None,
		phrase: typing.Optional[int] = None
	) -> typing.List[int]:

		"""
		Start playback and, if it is not already ticking, the clock.

		Returns the tracks that started.  When nothing can start the clock is
		left alone.
		"""

		started = self.sequencer.start_playback(
			scope = scope,
			track = track,
			from_top = from_top,
			chain = chain,
			phrase = phrase,
			seed = self.config.seed
		)

		if not started:
			logger.info("Nothing to play")
			return started

		self._session_open = True

		if not self.running:
			self.task = asyncio.create_task(self.clock.run(self._on_tick))
			logger.info(f"Clock started at {self.clock.bpm:.2f} BPM, PPQ {self.clock.ppq}")

		await self.events.emit_async("start", started)

		return started

	async def stop (self, track: typing.Optional[int] = None, reset: bool = False) -> typing.List[int]:

		"""
		Stop one track, or all of them.  Stopping the last playing track halts
		the clock and sends ``/stop`` to silence the synth.
		"""

		stopped = self.sequencer.stop_playback(track, reset)

		for number in stopped:
			self._cancel_delayed(number)

		if not self.sequencer.is_playing():
			await self._halt()

		return stopped

	async def wait (self) -> None:

		"""Wait until the clock stops and every in-flight send has finished."""

		if self.task is not None:
			await self.task

		await self._drain()

	async def shutdown (self) -> None:

		"""Stop everything and close the transports."""

		await self.stop()
		await self._drain()
		self.emitter.close()

		logger.info("Engine shut down")

	async def _halt (self) -> None:

		self.clock.stop()

		if self.task is not None:

			# From inside a tick (or a listener it awaits) the clock task is our caller.
			if not self._in_tick:
				await self.task

			self.task = None

		await self._end_session()

	async def _end_session (self) -> None:

		if not self._session_open:
			return

		self._session_open = False

		for track in list(self._delayed):
			self._cancel_delayed(track)

		self.emitter.stop_all()
		await self.events.emit_async("stop")

	async def _drain (self) -> None:

		if self._sends:
			await asyncio.gather(*list(self._sends), return_exceptions=True)

	async def _on_tick (self, tick: int) -> None:

		self._in_tick = True

		try:
			await self._process_tick(tick)
		finally:
			self._in_tick = False

	async def _process_tick (self, tick: int) -> None:

		result = self.sequencer.advance_tick()

		for trigger in result.triggers:
			self._dispatch(trigger)

		for step in result.arpeggio_steps:
			self._dispatch_later(step)

		for track in result.stopped:
			self._cancel_delayed(track)
			await self.events.emit_async("track_stopped", track)

		for trigger in result.triggers:
			await self.events.emit_async("trigger", trigger)

		await self.events.emit_async("tick", result)

		if not self.sequencer.is_playing():
			logger.info(f"All tracks finished after {tick + 1} ticks")
			self.clock.stop()
			await self._end_session()

	def _dispatch (self, trigger: trackplay.triggers.Trigger) -> None:

		"""Send ``trigger`` on a worker thread without blocking the tick."""

		task = asyncio.create_task(self._send(trigger))
		self._sends.add(task)
		task.add_done_callback(self._sends.discard)

	def _dispatch_later (self, step: trackplay.triggers.ArpeggioStep) -> None:

		delay = step.delay * self.clock.period

		# Render mode has no wall clock to wait on.
		if delay <= 0 or self.clock.render_mode:
			self._dispatch(step.trigger)
			return

		loop = asyncio.get_running_loop()
		handles = self._delayed.setdefault(step.track, [])
		handles[:] = [handle for handle in handles if not handle.cancelled() and handle.when() > loop.time()]
		handles.append(loop.call_later(delay, self._dispatch, step.trigger))

	def _cancel_delayed (self, track: int) -> None:

		for handle in self._delayed.pop(track, []):
			handle.cancel()

	async def _send (self, trigger: trackplay.triggers.Trigger) -> None:

		try:
			loop = asyncio.get_running_loop()
			await loop.run_in_executor(None, self.emitter.emit, trigger)

		except Exception as exc:
			logger.warning(f"Dispatch for track {trigger.track} failed: {exc}")


async def run_until_stopped (
	engine: Engine,
	scope: trackplay.sequencer.PlaybackScope = trackplay.sequencer.PlaybackScope.SONG,
	track: typing.Optional[int] = None,
	from_top: bool = True
) -> None:

	"""
	Play until every track finishes or a stop signal is received.
	"""

	started = await engine.play(scope=scope, track=track, from_top=from_top)

	if not started:
		await engine.shutdown()
		return

	logger.info("Playing. Press Ctrl+C to stop.")

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:

		"""
		Signal handler to request a clean shutdown.
		"""

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	assert engine.task is not None, "Engine task should exist after play()"

	waiter = asyncio.create_task(stop_event.wait())

	try:
		await asyncio.wait(
			[waiter, engine.task],
			return_when = asyncio.FIRST_COMPLETED
		)

	finally:
		waiter.cancel()

		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.remove_signal_handler(sig)

		await engine.shutdown()
