"""Recording engine: session state machine and the background sampling loop."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from ..config import AppConfig
from ..errors import (
    AlreadyRecordingError,
    AlreadyStoppedRecordingError,
    BlankSinkTargetError,
    DatasourceClosedError,
    DeviceError,
    SerializationError,
)
from ..hardware.controller import DAQController, Reading
from ..sink.influx import ClientFactory, InfluxSink, open_sink
from .channel import FrameChannel, FrameStream
from .frames import DeliveryRecord, build_frame, to_delivery

log = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = 'idle'
    RECORDING = 'recording'
    STOPPING = 'stopping'


@dataclass(slots=True)
class RecordingStats:
    """Session counters; ``points`` only ever covers frames that were delivered."""

    sessions: int = 0
    frames: int = 0
    points: int = 0
    dropped_frames: int = 0
    last_session_started: Optional[datetime] = None
    last_frame_at: Optional[datetime] = None
    last_error: Optional[str] = None


@dataclass(slots=True)
class _Session:
    channel: FrameChannel[DeliveryRecord] = field(default_factory=FrameChannel)
    quit: threading.Event = field(default_factory=threading.Event)
    done: threading.Event = field(default_factory=threading.Event)
    sink: Optional[InfluxSink] = None
    thread: Optional[threading.Thread] = None
    delivered_at: float = 0.0


class FlukeDatasource:
    """Start/stop controlled frame source for one DAQ controller.

    At most one session records at a time. Session state lives behind a single
    lock; every transition is a compare-and-swap against it, and it is taken
    before the device is touched so concurrent starts never both reach the DAQ.
    """

    def __init__(
        self,
        config: AppConfig,
        controller: DAQController,
        *,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._config = config
        self._controller = controller
        self._client_factory = client_factory
        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._session: Optional[_Session] = None
        self._closed = False
        self._stats = RecordingStats()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def stats(self) -> RecordingStats:
        return self._stats

    @property
    def plugin_version(self) -> str:
        return self._config.plugin.version

    @property
    def version_constraint(self) -> str:
        return self._config.plugin.version_constraint

    def names(self) -> List[str]:
        return self._controller.names()

    def _claim(self, session: _Session) -> None:
        """Move IDLE -> RECORDING for *session*, waiting out a draining session."""

        while True:
            with self._lock:
                if self._closed:
                    raise DatasourceClosedError()
                if self._state is SessionState.IDLE:
                    self._state = SessionState.RECORDING
                    self._session = session
                    return
                if self._state is SessionState.RECORDING:
                    raise AlreadyRecordingError()
                previous = self._session
            if previous is not None:
                previous.done.wait()

    def _release(self, session: _Session) -> None:
        with self._lock:
            if self._session is session:
                self._state = SessionState.IDLE
        session.done.set()

    def start_record(self) -> FrameStream[DeliveryRecord]:
        session = _Session()
        self._claim(session)
        influx_cfg = self._config.influx
        try:
            if influx_cfg.enabled and (not influx_cfg.org or not influx_cfg.bucket):
                raise BlankSinkTargetError()
            self._controller.start_scanning()
            if influx_cfg.enabled:
                try:
                    session.sink = open_sink(influx_cfg, self._client_factory)
                except Exception:
                    self._stop_scanning_quietly()
                    raise
        except Exception:
            self._release(session)
            raise

        self._stats.sessions += 1
        self._stats.last_session_started = datetime.now(timezone.utc)
        self._stats.last_error = None
        session.thread = threading.Thread(target=self._run, args=(session,), name='fluke-recording', daemon=True)
        session.thread.start()
        log.info("Recording started (interval %.3fs)", self._config.recording.poll_interval_s)
        return FrameStream(session.channel)

    def stop_record(self) -> None:
        with self._lock:
            if self._state is not SessionState.RECORDING:
                raise AlreadyStoppedRecordingError()
            self._state = SessionState.STOPPING
            session = self._session
        assert session is not None
        session.quit.set()

    def stop(self) -> None:
        """Shut the datasource down, waiting for any running session to finish."""

        with self._lock:
            self._closed = True
            session = self._session
        if session is None:
            return
        session.quit.set()
        session.done.wait()
        if session.thread is not None and session.thread is not threading.current_thread():
            session.thread.join()

    def _run(self, session: _Session) -> None:
        recording_cfg = self._config.recording
        interval = recording_cfg.poll_interval_s
        started = time.monotonic()
        try:
            if session.quit.wait(recording_cfg.warmup_s):
                return
            next_tick = started + interval
            while not session.quit.wait(max(next_tick - time.monotonic(), 0.0)):
                if not self._tick(session):
                    break
                # gaps are measured between deliveries, not read starts
                next_tick = session.delivered_at + interval
        except SerializationError as exc:
            self._stats.last_error = str(exc)
            log.error("Stopping recording: %s", exc)
        except Exception as exc:  # pylint: disable=broad-except
            self._stats.last_error = str(exc)
            log.exception("Recording loop failed")
        finally:
            self._teardown(session)

    def _tick(self, session: _Session) -> bool:
        readings = self._controller.read_all()
        captured_at = datetime.now(timezone.utc)
        frame = build_frame(readings)
        record = to_delivery(frame, self._config.recording.source, captured_at)
        if not session.channel.send(record, cancel=session.quit):
            self._stats.dropped_frames += 1
            return False
        session.delivered_at = time.monotonic()
        self._stats.frames += 1
        self._stats.last_frame_at = captured_at
        if session.sink is not None:
            self._forward(session.sink, readings, captured_at)
        return True

    def _forward(self, sink: InfluxSink, readings: List[Reading], captured_at: datetime) -> None:
        for reading in readings:
            if reading.value is None or not reading.forwards_to_sink:
                continue
            sink.write(reading.type, reading.name, reading.value, captured_at)
            self._stats.points += 1

    def _teardown(self, session: _Session) -> None:
        try:
            self._stop_scanning_quietly()
            if session.sink is not None:
                try:
                    session.sink.flush()
                except Exception as exc:  # pylint: disable=broad-except
                    log.warning("Influx flush failed: %s", exc)
                finally:
                    try:
                        session.sink.close()
                    except Exception as exc:  # pylint: disable=broad-except
                        log.warning("Influx client close failed: %s", exc)
        finally:
            session.channel.close()
            self._release(session)
            log.info("Recording stopped")

    def _stop_scanning_quietly(self) -> None:
        try:
            self._controller.stop_scanning()
        except DeviceError as exc:
            log.warning("%s", exc)
