"""Hardware abstraction for HackRF-class transceivers."""

from __future__ import annotations

import abc
from typing import Optional

from iqxfer.core.types import Direction, GainStage, ImageReject, TransferHandler


class DeviceError(RuntimeError):
    """Raised when a device call fails.

    ``code`` and ``name`` carry the library's numeric result and its symbolic
    name as reported by libhackrf.
    """

    def __init__(self, operation: str, code: int = -1, name: str = "HACKRF_ERROR_OTHER") -> None:
        super().__init__(f"{operation}() failed: {name} ({code})")
        self.operation = operation
        self.code = code
        self.name = name


class TransceiverBase(abc.ABC):
    """Abstract base class shared by the real and mock drivers."""

    name: str = "transceiver-base"

    @abc.abstractmethod
    def open(self, serial_number: Optional[str] = None) -> None:
        """Open the device, optionally selecting it by serial number."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the device and release the library handle."""

    @abc.abstractmethod
    def set_sample_rate(self, sample_rate_hz: float) -> None:
        """Program the ADC/DAC sample rate."""

    @abc.abstractmethod
    def set_baseband_filter_bandwidth(self, bandwidth_hz: int) -> None:
        """Program the baseband anti-aliasing filter."""

    @abc.abstractmethod
    def set_hw_sync_mode(self, enabled: bool) -> None:
        """Synchronise USB transfers to the GPIO trigger input."""

    @abc.abstractmethod
    def set_frequency(self, frequency_hz: int) -> None:
        """Tune to ``frequency_hz`` and let the device pick IF/LO."""

    @abc.abstractmethod
    def set_frequency_explicit(self, if_frequency_hz: int, lo_frequency_hz: int, image_reject: ImageReject) -> None:
        """Tune with an explicit IF, front-end LO and image reject filter."""

    @abc.abstractmethod
    def set_gain(self, stage: GainStage, gain_db: int) -> None:
        """Set one of the RX LNA/VGA or TX VGA gain stages."""

    @abc.abstractmethod
    def set_amp_enable(self, enabled: bool) -> None:
        """Toggle the RF amplifier."""

    @abc.abstractmethod
    def set_antenna_enable(self, enabled: bool) -> None:
        """Toggle antenna port power."""

    @abc.abstractmethod
    def start_transfer(self, direction: Direction, handler: TransferHandler) -> None:
        """Begin streaming; ``handler.on_buffer`` is invoked once per device buffer."""

    @abc.abstractmethod
    def stop_transfer(self) -> None:
        """Stop the active transfer. Calling it when idle is a no-op."""

    @abc.abstractmethod
    def is_streaming(self) -> bool:
        """Return ``True`` while the device is still moving buffers."""


__all__ = ["DeviceError", "TransceiverBase"]
