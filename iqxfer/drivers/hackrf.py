"""Concrete HackRF driver using python_hackrf."""

from __future__ import annotations

from typing import Any, Callable, Optional

import numpy as np

from iqxfer.core.logger import get_logger
from iqxfer.core.types import Direction, GainStage, ImageReject, TransferBuffer, TransferHandler
from .base import DeviceError, TransceiverBase

LOGGER = get_logger(__name__)

try:  # pragma: no cover - optional dependency
    from python_hackrf import pyhackrf
except ImportError:  # pragma: no cover - handled at runtime
    pyhackrf = None


class HackRFTransceiver(TransceiverBase):
    """Driver that talks to HackRF One hardware via libhackrf."""

    name = "HackRF"

    def __init__(self) -> None:
        self._device: Any | None = None
        self._direction: Optional[Direction] = None
        self._library_initialised = False

    def open(self, serial_number: Optional[str] = None) -> None:  # pragma: no cover - hardware dependent
        if pyhackrf is None:
            raise DeviceError("hackrf_init", -1000, "python_hackrf is not installed")
        self._call("hackrf_init", pyhackrf.pyhackrf_init)
        self._library_initialised = True
        LOGGER.info("Opening HackRF", extra={"serial_number": serial_number})
        if serial_number:
            self._device = self._call("hackrf_open_by_serial", pyhackrf.pyhackrf_open_by_serial, serial_number)
        else:
            self._device = self._call("hackrf_open", pyhackrf.pyhackrf_open)

    def close(self) -> None:
        try:
            if self._device is not None:
                LOGGER.info("Closing HackRF")
                try:
                    self._call("hackrf_close", self._device.pyhackrf_close)
                finally:
                    self._device = None
        finally:
            if self._library_initialised and pyhackrf is not None:
                self._library_initialised = False
                pyhackrf.pyhackrf_exit()

    def set_sample_rate(self, sample_rate_hz: float) -> None:  # pragma: no cover - hardware dependent
        self._call("hackrf_set_sample_rate", self._handle().pyhackrf_set_sample_rate, float(sample_rate_hz))

    def set_baseband_filter_bandwidth(self, bandwidth_hz: int) -> None:  # pragma: no cover - hardware dependent
        self._call(
            "hackrf_set_baseband_filter_bandwidth",
            self._handle().pyhackrf_set_baseband_filter_bandwidth,
            int(bandwidth_hz),
        )

    def set_hw_sync_mode(self, enabled: bool) -> None:  # pragma: no cover - hardware dependent
        self._call("hackrf_set_hw_sync_mode", self._handle().pyhackrf_set_hw_sync_mode, 1 if enabled else 0)

    def set_frequency(self, frequency_hz: int) -> None:  # pragma: no cover - hardware dependent
        self._call("hackrf_set_freq", self._handle().pyhackrf_set_freq, int(frequency_hz))

    def set_frequency_explicit(
        self, if_frequency_hz: int, lo_frequency_hz: int, image_reject: ImageReject
    ) -> None:  # pragma: no cover - hardware dependent
        path = pyhackrf.py_rf_path_filter(int(image_reject))
        self._call(
            "hackrf_set_freq_explicit",
            self._handle().pyhackrf_set_freq_explicit,
            int(if_frequency_hz),
            int(lo_frequency_hz),
            path,
        )

    def set_gain(self, stage: GainStage, gain_db: int) -> None:  # pragma: no cover - hardware dependent
        device = self._handle()
        setter = {
            GainStage.LNA: device.pyhackrf_set_lna_gain,
            GainStage.VGA: device.pyhackrf_set_vga_gain,
            GainStage.TXVGA: device.pyhackrf_set_txvga_gain,
        }[stage]
        self._call(f"hackrf_set_{stage.value}_gain", setter, int(gain_db))

    def set_amp_enable(self, enabled: bool) -> None:  # pragma: no cover - hardware dependent
        self._call("hackrf_set_amp_enable", self._handle().pyhackrf_set_amp_enable, bool(enabled))

    def set_antenna_enable(self, enabled: bool) -> None:  # pragma: no cover - hardware dependent
        self._call("hackrf_set_antenna_enable", self._handle().pyhackrf_set_antenna_enable, bool(enabled))

    def start_transfer(self, direction: Direction, handler: TransferHandler) -> None:  # pragma: no cover
        device = self._handle()
        if direction is Direction.RECEIVE:

            def _rx(_device: Any, buffer: np.ndarray, _buffer_length: int, valid_length: int) -> int:
                return int(handler.on_buffer(TransferBuffer(data=buffer, valid_length=valid_length)))

            device.set_rx_callback(_rx)
            self._call("hackrf_start_rx", device.pyhackrf_start_rx)
        else:

            def _tx(_device: Any, buffer: np.ndarray, _buffer_length: int, valid_length: int):
                transfer = TransferBuffer(data=buffer, valid_length=valid_length)
                result = handler.on_buffer(transfer)
                # The binding resubmits the returned buffer with the returned valid length.
                return int(result), transfer.data, transfer.valid_length

            device.set_tx_callback(_tx)
            self._call("hackrf_start_tx", device.pyhackrf_start_tx)
        self._direction = direction
        LOGGER.info("Started transfer", extra={"direction": direction.value})

    def stop_transfer(self) -> None:  # pragma: no cover - hardware dependent
        if self._device is None or self._direction is None:
            return
        if self._direction is Direction.RECEIVE:
            self._call("hackrf_stop_rx", self._device.pyhackrf_stop_rx)
        else:
            self._call("hackrf_stop_tx", self._device.pyhackrf_stop_tx)
        LOGGER.info("Stopped transfer", extra={"direction": self._direction.value})
        self._direction = None

    def is_streaming(self) -> bool:  # pragma: no cover - hardware dependent
        if self._device is None:
            return False
        return bool(self._device.pyhackrf_is_streaming())

    def _handle(self) -> Any:
        if self._device is None:
            raise DeviceError("hackrf_device", -2, "HACKRF_ERROR_INVALID_PARAM")
        return self._device

    @staticmethod
    def _call(operation: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except RuntimeError as exc:
            raise DeviceError(operation, -1000, str(exc)) from exc


__all__ = ["HackRFTransceiver"]
