"""Device drivers for HackRF-class transceivers."""

from __future__ import annotations

from typing import Optional

from .base import DeviceError, TransceiverBase
from .hackrf import HackRFTransceiver
from .mock import MOCK_PREFIX, MockTransceiver


def create_driver(serial_number: Optional[str] = None, buffer_size: Optional[int] = None) -> TransceiverBase:
    """Pick the mock driver for ``mock://`` serials and real hardware otherwise."""

    if serial_number and serial_number.startswith(MOCK_PREFIX):
        if buffer_size is None:
            return MockTransceiver(realtime=True)
        return MockTransceiver(buffer_size, realtime=True)
    return HackRFTransceiver()


__all__ = [
    "DeviceError",
    "HackRFTransceiver",
    "MOCK_PREFIX",
    "MockTransceiver",
    "TransceiverBase",
    "create_driver",
]
