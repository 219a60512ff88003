"""Streaming callbacks, ring buffer and session orchestration."""

from .callback import StreamingCallback
from .limiter import TransferLimiter
from .ring_buffer import RingBuffer
from .rx_pipeline import ReceiveCallback
from .session import SessionController, TransferSession
from .tx_pipeline import ContinuousWaveCallback, TransmitCallback

__all__ = [
    "ContinuousWaveCallback",
    "ReceiveCallback",
    "RingBuffer",
    "SessionController",
    "StreamingCallback",
    "TransferLimiter",
    "TransferSession",
    "TransmitCallback",
]
