"""File, stdin and stdout backing stores for interleaved 8-bit IQ samples."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import BinaryIO, Union

import numpy as np

from iqxfer.core.logger import get_logger

LOGGER = get_logger(__name__)

#: Buffer size for file handles (8 KiB).
FD_BUFFER_SIZE = 8 * 1024

STDIO_PATH = "-"

Writable = Union[bytes, bytearray, memoryview, np.ndarray]


class FileBackedStream:
    """Binary sample stream with bounded reads, writes and rewind.

    The stream owns its handle unless it wraps stdin/stdout, in which case
    :meth:`close` only flushes. While a transfer is running the handle is
    confined to the streaming callback.
    """

    def __init__(self, handle: BinaryIO, *, name: str, repeat: bool = False, owns_handle: bool = True) -> None:
        self._handle = handle
        self.name = name
        self.repeat = repeat
        self._owns_handle = owns_handle
        self.eof = False
        self.read_error: OSError | None = None
        self.bytes_read = 0
        self.bytes_written = 0
        self.rewinds = 0
        self._closed = False

    @classmethod
    def open_source(cls, path: Union[str, Path], *, repeat: bool = False) -> "FileBackedStream":
        """Open ``path`` for reading; ``-`` selects stdin."""

        if str(path) == STDIO_PATH:
            return cls(sys.stdin.buffer, name="<stdin>", repeat=repeat, owns_handle=False)
        handle = open(path, "rb", buffering=FD_BUFFER_SIZE)
        LOGGER.debug("Opened sample source", extra={"path": str(path), "repeat": repeat})
        return cls(handle, name=str(path), repeat=repeat)

    @classmethod
    def open_sink(cls, path: Union[str, Path]) -> "FileBackedStream":
        """Open ``path`` for writing; ``-`` selects stdout."""

        if str(path) == STDIO_PATH:
            return cls(sys.stdout.buffer, name="<stdout>", owns_handle=False)
        handle = open(path, "wb", buffering=FD_BUFFER_SIZE)
        LOGGER.debug("Opened sample sink", extra={"path": str(path)})
        return cls(handle, name=str(path))

    @property
    def handle(self) -> BinaryIO:
        return self._handle

    @property
    def seekable(self) -> bool:
        try:
            return self._handle.seekable()
        except (OSError, ValueError):
            return False

    @property
    def closed(self) -> bool:
        return self._closed

    def read_into(self, target: np.ndarray) -> int:
        """Fill ``target`` from the stream and return the byte count.

        Short counts mean end of data. A read failure is logged, remembered in
        :attr:`read_error` and reported as end of data as well.
        """

        view = memoryview(target).cast("B")
        wanted = len(view)
        filled = 0
        while filled < wanted:
            try:
                count = self._handle.readinto(view[filled:])
            except OSError as exc:
                LOGGER.error("Read failed on %s: %s", self.name, exc)
                self.read_error = exc
                count = 0
            if not count:
                self.eof = True
                break
            filled += count
        self.bytes_read += filled
        return filled

    def rewind(self) -> bool:
        """Reposition to offset 0. Returns ``False`` for non-seekable streams."""

        if not self.seekable:
            LOGGER.error("Cannot rewind %s: stream is not seekable", self.name)
            return False
        try:
            self._handle.seek(0)
        except OSError as exc:
            LOGGER.error("Rewind failed on %s: %s", self.name, exc)
            return False
        self.eof = False
        self.rewinds += 1
        return True

    def write(self, data: Writable) -> int:
        """Write ``data`` and return the number of bytes accepted.

        Raises:
            OSError: when the underlying handle fails.
        """

        payload = memoryview(data).cast("B")
        written = self._handle.write(payload)
        count = len(payload) if written is None else int(written)
        self.bytes_written += count
        return count

    def flush(self) -> None:
        if not self._closed:
            self._handle.flush()

    def close(self) -> None:
        if self._closed:
            return
        try:
            self.flush()
        finally:
            self._closed = True
            if self._owns_handle:
                self._handle.close()


__all__ = ["FD_BUFFER_SIZE", "FileBackedStream", "STDIO_PATH"]
