"""Offline mock driver used for CI and demo workflows."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

import numpy as np

from iqxfer.core.config import DEFAULT_TRANSFER_BUFFER_SIZE
from iqxfer.core.logger import get_logger
from iqxfer.core.types import BYTES_PER_SAMPLE, CallbackResult, Direction, GainStage, ImageReject, TransferBuffer, TransferHandler

from .base import DeviceError, TransceiverBase

LOGGER = get_logger(__name__)

MOCK_PREFIX = "mock://"


class MockTransceiver(TransceiverBase):
    """Software-only transceiver that drives the callback from a worker thread.

    Received buffers carry a byte ramp (stream offset modulo 256) so tests can
    predict the captured content exactly. Transmitted buffers are appended to
    :attr:`transmitted`, truncated to the ``valid_length`` the callback left.
    """

    name = "mock"

    def __init__(
        self,
        buffer_size: int = DEFAULT_TRANSFER_BUFFER_SIZE,
        *,
        realtime: bool = False,
        fail_after: Optional[int] = None,
        fail_on: Optional[str] = None,
    ) -> None:
        self.buffer_size = buffer_size
        self.realtime = realtime
        self.fail_after = fail_after
        self.fail_on = fail_on
        self.settings: Dict[str, object] = {}
        self.calls: List[str] = []
        self.transmitted = bytearray()
        self.buffers_delivered = 0
        self.handler_error: Optional[BaseException] = None
        self._is_open = False
        self._streaming = False
        self._direction: Optional[Direction] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def open(self, serial_number: Optional[str] = None) -> None:
        self._record("open")
        if serial_number and not serial_number.startswith(MOCK_PREFIX):
            raise DeviceError("hackrf_open", -5, "HACKRF_ERROR_NOT_FOUND")
        self._is_open = True

    def close(self) -> None:
        self._record("close")
        self.stop_transfer()
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    # ------------------------------------------------------------------
    # One-shot configuration
    # ------------------------------------------------------------------
    def set_sample_rate(self, sample_rate_hz: float) -> None:
        self._configure("set_sample_rate", sample_rate_hz=float(sample_rate_hz))

    def set_baseband_filter_bandwidth(self, bandwidth_hz: int) -> None:
        self._configure("set_baseband_filter_bandwidth", baseband_filter_bw_hz=int(bandwidth_hz))

    def set_hw_sync_mode(self, enabled: bool) -> None:
        self._configure("set_hw_sync_mode", hw_sync=bool(enabled))

    def set_frequency(self, frequency_hz: int) -> None:
        self._configure("set_freq", frequency_hz=int(frequency_hz))

    def set_frequency_explicit(self, if_frequency_hz: int, lo_frequency_hz: int, image_reject: ImageReject) -> None:
        self._configure(
            "set_freq_explicit",
            if_frequency_hz=int(if_frequency_hz),
            lo_frequency_hz=int(lo_frequency_hz),
            image_reject=ImageReject(image_reject),
        )

    def set_gain(self, stage: GainStage, gain_db: int) -> None:
        self._configure(f"set_{stage.value}_gain", **{f"{stage.value}_gain_db": int(gain_db)})

    def set_amp_enable(self, enabled: bool) -> None:
        self._configure("set_amp_enable", amp_enable=bool(enabled))

    def set_antenna_enable(self, enabled: bool) -> None:
        self._configure("set_antenna_enable", antenna_enable=bool(enabled))

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    def start_transfer(self, direction: Direction, handler: TransferHandler) -> None:
        operation = "start_tx" if direction.is_transmit else "start_rx"
        self._record(operation)
        self._require_open(operation)
        self._maybe_fail(operation)
        if self._streaming:
            raise DeviceError(f"hackrf_{operation}", -1000, "HACKRF_ERROR_BUSY")
        self._direction = direction
        self._stop_event.clear()
        self._streaming = True
        self._thread = threading.Thread(
            target=self._run, args=(direction, handler), name="mock-transfer", daemon=True
        )
        self._thread.start()

    def stop_transfer(self) -> None:
        if self._thread is not None:
            self._record("stop")
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._thread = None
        self._streaming = False

    def is_streaming(self) -> bool:
        return self._streaming

    def _run(self, direction: Direction, handler: TransferHandler) -> None:
        buffer = TransferBuffer.allocate(self.buffer_size)
        offset = 0
        pace_s = self._pace_seconds()
        try:
            while not self._stop_event.is_set():
                if self.fail_after is not None and self.buffers_delivered >= self.fail_after:
                    LOGGER.warning("Mock device dropped the transfer", extra={"buffers": self.buffers_delivered})
                    break
                buffer.valid_length = self.buffer_size
                if direction is Direction.RECEIVE:
                    ramp = np.arange(offset, offset + self.buffer_size, dtype=np.uint64) % 256
                    buffer.data[:] = ramp.astype(np.uint8)
                    offset += self.buffer_size
                try:
                    result = handler.on_buffer(buffer)
                except Exception as exc:
                    LOGGER.exception("Transfer callback raised")
                    self.handler_error = exc
                    break
                if direction.is_transmit:
                    self.transmitted.extend(buffer.payload().tobytes())
                self.buffers_delivered += 1
                if result != CallbackResult.CONTINUE:
                    break
                if pace_s:
                    self._stop_event.wait(pace_s)
        finally:
            self._streaming = False

    def _pace_seconds(self) -> float:
        if not self.realtime:
            return 0.0
        rate = float(self.settings.get("sample_rate_hz", 10e6))  # type: ignore[arg-type]
        return self.buffer_size / (BYTES_PER_SAMPLE * rate)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _record(self, operation: str) -> None:
        self.calls.append(operation)

    def _require_open(self, operation: str) -> None:
        if not self._is_open:
            raise DeviceError(f"hackrf_{operation}", -2, "HACKRF_ERROR_INVALID_PARAM")

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_on == operation:
            raise DeviceError(f"hackrf_{operation}", -1000, "HACKRF_ERROR_OTHER")

    def _configure(self, operation: str, **values: object) -> None:
        self._record(operation)
        self._require_open(operation)
        self._maybe_fail(operation)
        self.settings.update(values)


__all__ = ["MOCK_PREFIX", "MockTransceiver"]
