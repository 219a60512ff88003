"""Base class for the handlers a driver invokes once per device buffer."""

from __future__ import annotations

from iqxfer.core.types import CallbackResult, TransferBuffer

from .limiter import TransferLimiter


class StreamingCallback:
    """State shared by every streaming callback.

    ``byte_count`` is read by the session loop for throughput statistics.
    Once a callback has returned ``STOP`` it keeps returning ``STOP``.
    """

    def __init__(self, limiter: TransferLimiter) -> None:
        self.limiter = limiter
        self.byte_count = 0
        self.buffers = 0
        self.finished = False
        self.failed = False

    def on_buffer(self, buffer: TransferBuffer) -> CallbackResult:
        raise NotImplementedError

    def _stop(self) -> CallbackResult:
        self.finished = True
        return CallbackResult.STOP

    def _fail(self) -> CallbackResult:
        self.failed = True
        return self._stop()


__all__ = ["StreamingCallback"]
