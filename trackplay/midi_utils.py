import logging
import threading
import typing

import mido

import trackplay.triggers

logger = logging.getLogger(__name__)


def open_output_device(device_name: str) -> typing.Optional[typing.Any]:
    """
    Open a MIDI output port by name.

    An exact name match wins; otherwise the first port whose name starts with
    ``device_name`` is used, so a short name like ``"Scarlett"`` finds
    ``"Scarlett 2i4 USB:Scarlett 2i4 USB MIDI 1 16:0"``.

    Returns:
        The open port, or None when no port matches or opening fails.
    """
    try:
        outputs = mido.get_output_names()

        if device_name in outputs:
            selected_name = device_name
        else:
            matches = [name for name in outputs if name.startswith(device_name)]
            if not matches:
                logger.error(
                    f"MIDI output device '{device_name}' not found. "
                    f"Available devices: {outputs}"
                )
                return None
            selected_name = matches[0]

        midi_out = mido.open_output(selected_name)
        logger.info(f"Opened MIDI output: {selected_name}")
        return midi_out

    except Exception as e:
        logger.error(f"Failed to open MIDI output '{device_name}': {e}")
        return None


class MidiOutput:
    """
    Play Instrument triggers on MIDI ports named by the row's MIDI settings.

    Ports are opened on first use and kept open.  Each note gets a note-off
    after the trigger's duration, sent from a timer thread.
    """

    def __init__(self) -> None:
        self._ports: typing.Dict[str, typing.Optional[typing.Any]] = {}
        self._timers: typing.Set[threading.Timer] = set()
        self._lock = threading.Lock()

    def _port(self, device_name: str) -> typing.Optional[typing.Any]:
        with self._lock:
            if device_name not in self._ports:
                # A missing device is remembered so it is not re-probed every row.
                self._ports[device_name] = open_output_device(device_name)
            return self._ports[device_name]

    def play(self, trigger: trackplay.triggers.InstrumentTrigger) -> None:
        """Send note-ons now and schedule the matching note-offs."""
        settings = trigger.midi

        if settings is None or not settings.enabled:
            return

        port = self._port(settings.device)

        if port is None:
            return

        channel = max(0, min(15, settings.channel - 1))
        velocity = max(0, min(127, int(round(trigger.velocity * 127))))

        try:
            for note in trigger.notes:
                port.send(mido.Message("note_on", note=note, velocity=velocity, channel=channel))
        except Exception as e:
            logger.warning(f"MIDI send error on '{settings.device}': {e}")
            return

        timer = threading.Timer(max(trigger.duration, 0.0), self._release, args=(port, channel, list(trigger.notes)))
        timer.daemon = True

        with self._lock:
            self._timers.add(timer)

        timer.start()

    def _release(self, port: typing.Any, channel: int, notes: typing.List[int]) -> None:
        with self._lock:
            self._timers = {timer for timer in self._timers if timer.is_alive() and timer is not threading.current_thread()}

        try:
            for note in notes:
                port.send(mido.Message("note_off", note=note, velocity=0, channel=channel))
        except Exception as e:
            logger.warning(f"MIDI note-off error: {e}")

    def close(self) -> None:
        """Cancel pending note-offs, silence every port and close it."""
        with self._lock:
            timers, self._timers = self._timers, set()
            ports, self._ports = self._ports, {}

        for timer in timers:
            timer.cancel()

        for name, port in ports.items():
            if port is None:
                continue
            try:
                port.panic()
                port.close()
            except Exception as e:
                logger.warning(f"Failed to close MIDI output '{name}': {e}")
