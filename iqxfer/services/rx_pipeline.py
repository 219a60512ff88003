"""Receive-side streaming callback writing straight to a sink or into a ring buffer."""

from __future__ import annotations

from typing import Optional

from iqxfer.core.logger import get_logger
from iqxfer.core.types import CallbackResult, TransferBuffer
from iqxfer.dsp.iqio import FileBackedStream

from .callback import StreamingCallback
from .limiter import TransferLimiter
from .ring_buffer import RingBuffer

LOGGER = get_logger(__name__)


class ReceiveCallback(StreamingCallback):
    """Consumes device buffers.

    Without a ring buffer the payload is written to ``sink`` inside the
    callback and a short or failed write ends the stream. With a ring buffer
    the payload is pushed and the session loop drains it to disk; overflow is
    dropped and counted by the ring.
    """

    def __init__(
        self,
        sink: FileBackedStream,
        limiter: TransferLimiter,
        ring: Optional[RingBuffer] = None,
    ) -> None:
        super().__init__(limiter)
        self.sink = sink
        self.ring = ring
        self.write_error: Optional[OSError] = None

    def on_buffer(self, buffer: TransferBuffer) -> CallbackResult:
        if self.finished:
            return CallbackResult.STOP
        self.buffers += 1
        if buffer.valid_length == 0:
            return CallbackResult.CONTINUE

        want = self.limiter.take(buffer.valid_length)
        payload = buffer.data[:want]
        self.byte_count += want
        if self.ring is not None:
            self.ring.push(payload)
        else:
            try:
                written = self.sink.write(payload)
            except OSError as exc:
                LOGGER.error("Write to %s failed: %s", self.sink.name, exc)
                self.write_error = exc
                return self._fail()
            if written != want:
                LOGGER.error("Short write to %s", self.sink.name, extra={"wanted": want, "written": written})
                return self._fail()

        if self.limiter.exhausted:
            LOGGER.info("Transfer limit reached", extra={"bytes": self.byte_count})
            return self._stop()
        return CallbackResult.CONTINUE


__all__ = ["ReceiveCallback"]
