"""Fixed-capacity byte ring bridging the device callback and the file writer."""

from __future__ import annotations

import numpy as np

from iqxfer.core.types import SupportsWrite


class RingBuffer:
    """Single-producer, single-consumer byte ring with drop-on-overflow.

    The producer (device callback) only calls :meth:`push` and only writes
    ``_written``; the consumer (session loop) only calls :meth:`drain` and
    only writes ``_read``. Each side publishes its counter with a single
    attribute store after the bytes are copied, so no lock is needed. Both
    counters grow monotonically; ``head`` and ``tail`` are their positions
    modulo the capacity.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._storage = np.zeros(capacity, dtype=np.uint8)
        self._capacity = capacity
        self._written = 0
        self._read = 0
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return self._written - self._read

    @property
    def free(self) -> int:
        return self._capacity - self.size

    @property
    def head(self) -> int:
        return self._written % self._capacity

    @property
    def tail(self) -> int:
        return self._read % self._capacity

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def pushed_total(self) -> int:
        """Bytes offered to :meth:`push`, stored or dropped."""

        return self._written + self._dropped

    @property
    def drained_total(self) -> int:
        return self._read

    def push(self, data: bytes | bytearray | memoryview | np.ndarray) -> int:
        """Store as much of ``data`` as fits and drop the rest. Returns bytes stored."""

        incoming = np.frombuffer(data, dtype=np.uint8) if not isinstance(data, np.ndarray) else data.view(np.uint8)
        written = self._written
        free = self._capacity - (written - self._read)
        count = min(len(incoming), free)
        if count < len(incoming):
            self._dropped += len(incoming) - count
        if count == 0:
            return 0
        start = written % self._capacity
        first = min(count, self._capacity - start)
        self._storage[start : start + first] = incoming[:first]
        if count > first:
            self._storage[: count - first] = incoming[first:count]
        self._written = written + count
        return count

    def drain(self, sink: SupportsWrite) -> int:
        """Write every available byte to ``sink`` and return the count.

        The tail is published after each segment the sink accepts, so bytes
        that reached the sink are never written twice. A short write stops
        the drain early.

        Raises:
            OSError: propagated from ``sink.write``. Segments written before
                the failure stay consumed.
        """

        read = self._read
        available = self._written - read
        drained = 0
        while drained < available:
            start = (read + drained) % self._capacity
            length = min(available - drained, self._capacity - start)
            written = sink.write(memoryview(self._storage[start : start + length]))
            count = length if written is None else int(written)
            drained += count
            self._read = read + drained
            if count < length:
                break
        return drained

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self._capacity}, size={self.size}, dropped={self._dropped})"


__all__ = ["RingBuffer"]
