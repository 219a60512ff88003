"""Byte budget for transfers bounded by a sample count."""

from __future__ import annotations

from typing import Optional


class TransferLimiter:
    """Tracks how many bytes may still be moved.

    ``remaining`` is ``None`` for unlimited transfers. Only the streaming
    callback mutates it; it only ever goes down and reaching zero is terminal.
    """

    __slots__ = ("remaining",)

    def __init__(self, limit_bytes: Optional[int] = None) -> None:
        if limit_bytes is not None and limit_bytes < 0:
            raise ValueError("limit_bytes must not be negative")
        self.remaining = limit_bytes

    @property
    def unlimited(self) -> bool:
        return self.remaining is None

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0

    def take(self, requested: int) -> int:
        """Grant up to ``requested`` bytes and charge them against the budget."""

        if self.remaining is None:
            return requested
        granted = min(requested, self.remaining)
        self.remaining -= granted
        return granted

    def __repr__(self) -> str:
        return f"TransferLimiter(remaining={self.remaining!r})"


__all__ = ["TransferLimiter"]
