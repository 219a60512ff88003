"""Transmit-side streaming callbacks: file playback and continuous wave."""

from __future__ import annotations

import numpy as np

from iqxfer.core.logger import get_logger
from iqxfer.core.types import CallbackResult, TransferBuffer
from iqxfer.dsp.iqio import FileBackedStream

from .callback import StreamingCallback
from .limiter import TransferLimiter

LOGGER = get_logger(__name__)


class TransmitCallback(StreamingCallback):
    """Fills device buffers from a file-backed stream.

    The file is read directly inside the device callback, so slow storage
    can stall the transfer.
    """

    def __init__(self, source: FileBackedStream, limiter: TransferLimiter) -> None:
        super().__init__(limiter)
        self.source = source

    def on_buffer(self, buffer: TransferBuffer) -> CallbackResult:
        if self.finished:
            buffer.valid_length = 0
            return CallbackResult.STOP
        self.buffers += 1
        if buffer.valid_length == 0:
            return CallbackResult.CONTINUE

        want = self.limiter.take(buffer.valid_length)
        target = buffer.data[:want]
        filled = self.source.read_into(target)
        if filled < want and self.source.repeat:
            filled = self._wrap(target, filled)
        if filled < want:
            buffer.valid_length = filled
            self.byte_count += filled
            if self.source.read_error is not None:
                return self._fail()
            LOGGER.info("Input file end reached", extra={"bytes": self.byte_count})
            return self._stop()

        buffer.valid_length = want
        self.byte_count += want
        if self.limiter.exhausted:
            LOGGER.info("Transfer limit reached", extra={"bytes": self.byte_count})
            return self._stop()
        return CallbackResult.CONTINUE

    def _wrap(self, target: np.ndarray, filled: int) -> int:
        """Rewind and keep reading until ``target`` is full.

        Loops so that files shorter than one buffer still repeat byte-exactly.
        Gives up if the stream cannot be rewound or yields nothing after a rewind.
        """

        while filled < len(target):
            LOGGER.debug("Input file end reached. Rewind to beginning.")
            if not self.source.rewind():
                return filled
            count = self.source.read_into(target[filled:])
            if count == 0:
                LOGGER.error("Input %s is empty; cannot repeat", self.source.name)
                return filled
            filled += count
        return filled


class ContinuousWaveCallback(StreamingCallback):
    """Fills device buffers with a constant DAC value (signal source mode)."""

    def __init__(self, amplitude: int, limiter: TransferLimiter) -> None:
        super().__init__(limiter)
        if not 0 <= amplitude <= 127:
            raise ValueError("amplitude must be within 0..127")
        self.amplitude = amplitude

    def on_buffer(self, buffer: TransferBuffer) -> CallbackResult:
        if self.finished:
            buffer.valid_length = 0
            return CallbackResult.STOP
        self.buffers += 1
        if buffer.valid_length == 0:
            return CallbackResult.CONTINUE

        want = self.limiter.take(buffer.valid_length)
        buffer.data[:want] = self.amplitude
        buffer.valid_length = want
        self.byte_count += want
        if self.limiter.exhausted:
            return self._stop()
        return CallbackResult.CONTINUE


__all__ = ["ContinuousWaveCallback", "TransmitCallback"]
