"""Typed containers and enums shared by the drivers, pipelines and session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

#: One IQ sample is an interleaved pair of 8-bit I and Q values.
BYTES_PER_SAMPLE = 2


class Direction(str, enum.Enum):
    """Which way samples flow for a session."""

    TRANSMIT = "transmit"
    RECEIVE = "receive"
    CONTINUOUS_WAVE = "continuous_wave"

    @property
    def is_transmit(self) -> bool:
        return self is not Direction.RECEIVE


class CallbackResult(enum.IntEnum):
    """Return codes understood by the device transfer subsystem."""

    CONTINUE = 0
    STOP = -1


class ExitStatus(enum.Enum):
    """Terminal outcome of a session."""

    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    ERROR = "error"

    @property
    def exit_code(self) -> int:
        return 1 if self is ExitStatus.ERROR else 0


class SessionState(enum.Enum):
    IDLE = "idle"
    CONFIGURING = "configuring"
    STREAMING = "streaming"
    DRAINING = "draining"
    CLOSED = "closed"


class GainStage(enum.Enum):
    """Gain stages exposed by HackRF-class front ends."""

    LNA = "lna"
    VGA = "vga"
    TXVGA = "txvga"


class ImageReject(enum.IntEnum):
    """Image rejection filter selection used with explicit IF/LO tuning."""

    BYPASS = 0
    LOW_PASS = 1
    HIGH_PASS = 2


@dataclass(slots=True)
class TransferBuffer:
    """One device buffer handed to a streaming callback.

    ``data`` is a writable ``uint8`` array owned by the driver. Transmit
    callbacks fill it and may lower ``valid_length`` to the number of bytes
    actually delivered; receive callbacks consume the first ``valid_length``
    bytes.
    """

    data: np.ndarray
    valid_length: int

    @classmethod
    def allocate(cls, size: int) -> "TransferBuffer":
        return cls(data=np.zeros(size, dtype=np.uint8), valid_length=size)

    def payload(self) -> np.ndarray:
        return self.data[: self.valid_length]


class TransferHandler(Protocol):
    """Capability registered with a driver; invoked once per device buffer."""

    byte_count: int

    def on_buffer(self, buffer: TransferBuffer) -> CallbackResult:  # pragma: no cover - structural type only
        ...


class SupportsWrite(Protocol):
    def write(self, data: bytes | memoryview) -> int | None:  # pragma: no cover - structural type only
        ...


@dataclass(slots=True)
class TransferSummary:
    """Statistics reported once a session reaches ``CLOSED``."""

    status: ExitStatus
    byte_count: int = 0
    dropped_bytes: int = 0
    elapsed_s: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def average_rate_mib_s(self) -> float:
        if self.elapsed_s <= 0:
            return 0.0
        return self.byte_count / self.elapsed_s / (1024 * 1024)


__all__ = [
    "BYTES_PER_SAMPLE",
    "CallbackResult",
    "Direction",
    "ExitStatus",
    "GainStage",
    "ImageReject",
    "SessionState",
    "SupportsWrite",
    "TransferBuffer",
    "TransferHandler",
    "TransferSummary",
]
