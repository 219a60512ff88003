"""Common helpers for numeric argument parsing, unit formatting and shutdown."""

from __future__ import annotations

import signal
import sys
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator

from .logger import get_logger

LOGGER = get_logger(__name__)

FREQ_ONE_MHZ = 1_000_000
U64_MAX = (1 << 64) - 1
U32_MAX = (1 << 32) - 1

#: Signals that request a clean stop of the running transfer.
SHUTDOWN_SIGNALS: tuple[int, ...] = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGABRT") if hasattr(signal, name)
)


def parse_int(text: str, *, maximum: int = U64_MAX) -> int:
    """Parse an unsigned integer accepting ``0x`` (hex) and ``0b`` (binary) prefixes.

    Raises:
        ValueError: if ``text`` is not a complete unsigned number or exceeds ``maximum``.
    """

    value = text.strip()
    base = 10
    if len(value) > 2 and value[0] == "0" and value[1] in "xXbB":
        base = 16 if value[1] in "xX" else 2
        value = value[2:]
    if not value or value[0] in "+-":
        raise ValueError(f"invalid unsigned integer: {text!r}")
    number = int(value, base)
    if number > maximum:
        raise ValueError(f"value {text!r} exceeds {maximum}")
    return number


def parse_frequency(text: str) -> int:
    """Parse a frequency in Hz, allowing float notation such as ``2.4e9``."""

    try:
        return int(float(text))
    except (OverflowError, ValueError) as exc:
        raise ValueError(f"invalid frequency: {text!r}") from exc


def format_mhz(frequency_hz: float) -> str:
    return f"{frequency_hz / FREQ_ONE_MHZ:.6f} MHz"


def to_mib(num_bytes: int) -> float:
    return num_bytes / (1024 * 1024)


class ShutdownFlag:
    """Cooperative stop request observed by the session monitoring loop."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.signum: int | None = None

    def request(self, signum: int | None = None) -> None:
        self.signum = signum
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def clear(self) -> None:
        self.signum = None
        self._event.clear()


@contextmanager
def shutdown_on_signals(flag: ShutdownFlag, signals: Iterable[int] = SHUTDOWN_SIGNALS) -> Iterator[ShutdownFlag]:
    """Install handlers that set ``flag`` instead of terminating the process."""

    def _handler(signum: int, _frame: object) -> None:
        LOGGER.info("Caught signal %d", signum, extra={"signum": signum})
        flag.request(signum)

    previous = {sig: signal.getsignal(sig) for sig in signals}
    try:
        for sig in signals:
            signal.signal(sig, _handler)
        yield flag
    finally:  # pragma: no cover - OS specific
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def install_excepthook() -> None:
    """Install a verbose exception hook for debug sessions."""

    def _hook(exc_type, exc_value, exc_traceback):  # pragma: no cover - interactive behavior
        LOGGER.exception("Unhandled exception", exc_info=(exc_type, exc_value, exc_traceback))
        sys.__excepthook__(exc_type, exc_value, exc_traceback)

    sys.excepthook = _hook


__all__ = [
    "FREQ_ONE_MHZ",
    "SHUTDOWN_SIGNALS",
    "ShutdownFlag",
    "U32_MAX",
    "U64_MAX",
    "format_mhz",
    "install_excepthook",
    "parse_frequency",
    "parse_int",
    "shutdown_on_signals",
    "to_mib",
]
