"""Session orchestration: device lifetime, streaming callback and monitoring loop."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from iqxfer.core.config import DEFAULT_LO_HZ, SessionDefaults, TransferConfig
from iqxfer.core.events import SESSION_STATE, STREAM_COMPLETE, THROUGHPUT, EventBus
from iqxfer.core.logger import get_logger
from iqxfer.core.types import Direction, ExitStatus, GainStage, ImageReject, SessionState, TransferSummary
from iqxfer.core.utils import ShutdownFlag, format_mhz, to_mib
from iqxfer.drivers import DeviceError, TransceiverBase, create_driver
from iqxfer.dsp.iqio import FileBackedStream
from iqxfer.dsp.wav import WavHeader, wav_filename
from iqxfer.services.callback import StreamingCallback
from iqxfer.services.limiter import TransferLimiter
from iqxfer.services.ring_buffer import RingBuffer
from iqxfer.services.rx_pipeline import ReceiveCallback
from iqxfer.services.tx_pipeline import ContinuousWaveCallback, TransmitCallback

LOGGER = get_logger(__name__)

DriverFactory = Callable[[TransferConfig], TransceiverBase]

_TRANSITIONS = {
    SessionState.IDLE: {SessionState.CONFIGURING},
    SessionState.CONFIGURING: {SessionState.STREAMING, SessionState.DRAINING},
    SessionState.STREAMING: {SessionState.DRAINING},
    SessionState.DRAINING: {SessionState.CLOSED},
    SessionState.CLOSED: set(),
}


@dataclass(slots=True)
class TransferSession:
    """Everything one run owns; released deterministically while draining."""

    config: TransferConfig
    device: Optional[TransceiverBase] = None
    stream: Optional[FileBackedStream] = None
    ring: Optional[RingBuffer] = None
    callback: Optional[StreamingCallback] = None
    wav_header: Optional[WavHeader] = None
    output_path: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def direction(self) -> Direction:
        return self.config.direction


class SessionController:
    """Runs one transfer from configuration to a single terminal status.

    The monitoring loop samples ``is_streaming()`` and the shutdown flag every
    ``poll_interval_s``; it does not wait on a notification primitive, so
    cancellation latency is one poll interval plus the in-flight buffer.
    """

    def __init__(
        self,
        driver_factory: Optional[DriverFactory] = None,
        *,
        settings: Optional[SessionDefaults] = None,
        events: Optional[EventBus] = None,
        shutdown: Optional[ShutdownFlag] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._settings = settings or SessionDefaults()
        self._driver_factory = driver_factory or self._default_driver
        self._events = events or EventBus()
        self._shutdown = shutdown or ShutdownFlag()
        self._clock = clock
        self._sleep = sleep
        self._now = now
        self._state = SessionState.IDLE
        self._summary: Optional[TransferSummary] = None

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def shutdown(self) -> ShutdownFlag:
        return self._shutdown

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def summary(self) -> Optional[TransferSummary]:
        return self._summary

    def run(self, config: TransferConfig) -> ExitStatus:
        """Configure, stream and drain; never raises for device or I/O failures."""

        if self._state not in (SessionState.IDLE, SessionState.CLOSED):
            raise RuntimeError(f"Session already active ({self._state.value})")
        self._state = SessionState.IDLE
        session = TransferSession(config=config)
        started = self._clock()
        status = ExitStatus.ERROR

        self._transition(SessionState.CONFIGURING)
        try:
            self._configure(session)
            self._transition(SessionState.STREAMING)
            status = self._monitor(session)
        except DeviceError as exc:
            LOGGER.error("%s", exc, extra={"code": exc.code, "error_name": exc.name})
            session.errors.append(str(exc))
        except OSError as exc:
            LOGGER.error("I/O error: %s", exc)
            session.errors.append(str(exc))
        except KeyboardInterrupt:
            LOGGER.info("Interrupted")
            status = ExitStatus.INTERRUPTED
        finally:
            self._transition(SessionState.DRAINING)
            status = self._drain(session, status)
            self._transition(SessionState.CLOSED)

        self._summary = self._summarise(session, status, self._clock() - started)
        return status

    # ------------------------------------------------------------------
    # Configuring
    # ------------------------------------------------------------------
    def _default_driver(self, config: TransferConfig) -> TransceiverBase:
        return create_driver(config.serial_number, self._settings.buffer_size)

    def _configure(self, session: TransferSession) -> None:
        config = session.config
        device = self._driver_factory(config)
        session.device = device
        device.open(config.serial_number)
        LOGGER.info("Opened device", extra={"driver": device.name, "serial_number": config.serial_number})

        sample_rate = config.corrected_sample_rate_hz
        LOGGER.info("call set_sample_rate(%d Hz / %.3f MHz)", sample_rate, sample_rate / 1e6)
        device.set_sample_rate(sample_rate)
        bandwidth = config.effective_baseband_filter_bw_hz
        LOGGER.info("call set_baseband_filter_bandwidth(%d Hz / %.3f MHz)", bandwidth, bandwidth / 1e6)
        device.set_baseband_filter_bandwidth(bandwidth)
        device.set_hw_sync_mode(config.hw_sync)

        if config.direction.is_transmit:
            device.set_gain(GainStage.TXVGA, config.txvga_gain_db)
        else:
            device.set_gain(GainStage.LNA, config.lna_gain_db)
            device.set_gain(GainStage.VGA, config.vga_gain_db)

        if config.explicit_tuning:
            lo_hz = config.lo_frequency_hz if config.lo_frequency_hz is not None else DEFAULT_LO_HZ
            image_reject = config.image_reject or ImageReject.BYPASS
            LOGGER.info(
                "call set_freq_explicit(if=%s, lo=%s, image_reject=%s)",
                format_mhz(config.if_frequency_hz or 0),
                format_mhz(lo_hz),
                image_reject.name,
            )
            device.set_frequency_explicit(int(config.if_frequency_hz or 0), lo_hz, image_reject)
        else:
            frequency = config.corrected_frequency_hz
            LOGGER.info("call set_freq(%s)", format_mhz(frequency))
            device.set_frequency(frequency)

        if config.amp_enable is not None:
            device.set_amp_enable(config.amp_enable)
        if config.antenna_enable is not None:
            device.set_antenna_enable(config.antenna_enable)

        limiter = TransferLimiter(config.byte_limit)
        if not limiter.unlimited:
            LOGGER.info("samples_to_xfer %d/%.3f Mio", config.num_samples, (config.num_samples or 0) / 1e6)
        session.callback = self._build_callback(session, limiter)
        device.start_transfer(config.direction, session.callback)
        LOGGER.info("Streaming started", extra={"direction": config.direction.value, "path": session.output_path})

    def _build_callback(self, session: TransferSession, limiter: TransferLimiter) -> StreamingCallback:
        config = session.config
        if config.direction is Direction.CONTINUOUS_WAVE:
            return ContinuousWaveCallback(int(config.amplitude or 0), limiter)

        if config.direction is Direction.TRANSMIT:
            session.output_path = str(config.path)
            session.stream = FileBackedStream.open_source(session.output_path, repeat=config.repeat)
            return TransmitCallback(session.stream, limiter)

        path = config.path or wav_filename(config.tuned_frequency_hz, self._now())
        session.output_path = path
        session.stream = FileBackedStream.open_sink(path)
        if config.wav:
            session.wav_header = WavHeader(sample_rate=config.corrected_sample_rate_hz)
            session.wav_header.write_placeholder(session.stream.handle)
        if config.stream_buffer_size is not None:
            session.ring = RingBuffer(config.stream_buffer_size)
            LOGGER.info("Receive streaming through a %d byte ring buffer", config.stream_buffer_size)
        return ReceiveCallback(session.stream, limiter, session.ring)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    def _monitor(self, session: TransferSession) -> ExitStatus:
        device = session.device
        callback = session.callback
        if device is None or callback is None:
            raise RuntimeError("Session has not been configured")
        interval = self._settings.poll_interval_s
        last_report = self._clock()
        last_bytes = 0

        while True:
            drained = 0
            if session.ring is not None and session.stream is not None:
                drained = session.ring.drain(session.stream)
            if not device.is_streaming():
                break
            if self._shutdown.is_set():
                LOGGER.info("User cancel, exiting")
                return ExitStatus.INTERRUPTED

            now = self._clock()
            if now - last_report >= self._settings.stats_interval_s:
                total = callback.byte_count
                self._report_throughput(session, total - last_bytes, now - last_report)
                last_report, last_bytes = now, total

            if drained == 0:
                self._sleep(interval)

        if callback.failed:
            LOGGER.error("Streaming stopped after an I/O error")
            return ExitStatus.ERROR
        if callback.finished:
            LOGGER.info("Transfer complete", extra={"bytes": callback.byte_count})
            return ExitStatus.COMPLETED
        LOGGER.error("Device stopped streaming unexpectedly")
        session.errors.append("device stopped streaming")
        return ExitStatus.ERROR

    def _report_throughput(self, session: TransferSession, byte_delta: int, seconds: float) -> None:
        rate = to_mib(byte_delta) / seconds if seconds > 0 else 0.0
        dropped = session.ring.dropped if session.ring is not None else 0
        if session.ring is not None:
            LOGGER.info(
                "%4.1f MiB / %5.3f sec = %4.1f MiB/second, ring %d/%d bytes, %d dropped",
                to_mib(byte_delta), seconds, rate, session.ring.size, session.ring.capacity, dropped,
            )
        else:
            LOGGER.info("%4.1f MiB / %5.3f sec = %4.1f MiB/second", to_mib(byte_delta), seconds, rate)
        self._events.emit(THROUGHPUT, bytes=byte_delta, seconds=seconds, rate_mib_s=rate, dropped_bytes=dropped)

    # ------------------------------------------------------------------
    # Draining
    # ------------------------------------------------------------------
    def _drain(self, session: TransferSession, status: ExitStatus) -> ExitStatus:
        failed = False
        device = session.device
        if device is not None:
            try:
                device.stop_transfer()
            except DeviceError as exc:
                LOGGER.error("%s", exc)
                session.errors.append(str(exc))
                failed = True
            try:
                device.close()
            except DeviceError as exc:
                LOGGER.error("%s", exc)
                session.errors.append(str(exc))
                failed = True

        stream = session.stream
        if stream is not None:
            if session.ring is not None:
                try:
                    session.ring.drain(stream)
                except OSError as exc:
                    LOGGER.error("Final drain failed: %s", exc)
                    session.errors.append(str(exc))
                    failed = True
                else:
                    if session.ring.size:
                        LOGGER.error("%d bytes were left in the ring buffer", session.ring.size)
                        session.errors.append("ring buffer not fully drained")
                        failed = True
                if session.ring.dropped:
                    LOGGER.warning("Ring buffer dropped %d bytes", session.ring.dropped)
            try:
                if session.wav_header is not None:
                    session.wav_header.finalize(stream.handle, stream.bytes_written)
            except OSError as exc:
                LOGGER.error("Finalising the WAV header of %s failed: %s", stream.name, exc)
                session.errors.append(str(exc))
                failed = True
            finally:
                try:
                    stream.close()
                except OSError as exc:
                    LOGGER.error("Closing %s failed: %s", stream.name, exc)
                    session.errors.append(str(exc))
                    failed = True

        if failed and status is not ExitStatus.INTERRUPTED:
            return ExitStatus.ERROR
        return status

    def _summarise(self, session: TransferSession, status: ExitStatus, elapsed_s: float) -> TransferSummary:
        callback = session.callback
        summary = TransferSummary(
            status=status,
            byte_count=callback.byte_count if callback is not None else 0,
            dropped_bytes=session.ring.dropped if session.ring is not None else 0,
            elapsed_s=elapsed_s,
            errors=list(session.errors),
        )
        LOGGER.info(
            "Total time: %5.5f s, %d bytes (%4.1f MiB/second)",
            elapsed_s, summary.byte_count, summary.average_rate_mib_s,
            extra={"status": status.value},
        )
        self._events.emit(
            STREAM_COMPLETE,
            status=status,
            byte_count=summary.byte_count,
            dropped_bytes=summary.dropped_bytes,
            elapsed_s=elapsed_s,
            path=session.output_path,
        )
        return summary

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid session transition {self._state.value} -> {new_state.value}")
        LOGGER.debug("Session state %s -> %s", self._state.value, new_state.value)
        self._state = new_state
        self._events.emit(SESSION_STATE, state=new_state)


__all__ = ["DriverFactory", "SessionController", "TransferSession"]
