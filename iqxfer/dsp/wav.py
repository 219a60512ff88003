"""RIFF/WAVE header for 2 x 8-bit IQ captures (SDR# compatible)."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Optional

from iqxfer.core.logger import get_logger

LOGGER = get_logger(__name__)

HEADER_SIZE = 44
RIFF_SIZE_OFFSET = 4
DATA_SIZE_OFFSET = 40
#: ``riff.size`` counts everything after the RIFF size field except the data payload.
RIFF_OVERHEAD = HEADER_SIZE - 8

_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")
_U32 = struct.Struct("<I")

PCM_FORMAT_TAG = 1
CHANNELS = 2
BITS_PER_SAMPLE = 8
BLOCK_ALIGN = CHANNELS * BITS_PER_SAMPLE // 8


@dataclass(slots=True)
class WavHeader:
    """Fixed 44-byte header; sizes are patched once the capture ends."""

    sample_rate: int
    data_size: int = 0

    @property
    def riff_size(self) -> int:
        return self.data_size + RIFF_OVERHEAD

    def pack(self) -> bytes:
        return _HEADER_STRUCT.pack(
            b"RIFF",
            self.riff_size & 0xFFFFFFFF,
            b"WAVE",
            b"fmt ",
            16,
            PCM_FORMAT_TAG,
            CHANNELS,
            self.sample_rate,
            self.sample_rate * BLOCK_ALIGN,
            BLOCK_ALIGN,
            BITS_PER_SAMPLE,
            b"data",
            self.data_size & 0xFFFFFFFF,
        )

    def write_placeholder(self, handle: BinaryIO) -> None:
        """Write the header with zero sizes at the current (start) position."""

        self.data_size = 0
        handle.write(self.pack())

    def finalize(self, handle: BinaryIO, data_size: int) -> None:
        """Patch the RIFF and data size fields in place.

        The handle is left positioned at the end of the file.
        """

        if data_size > 0xFFFFFFFF - RIFF_OVERHEAD:
            LOGGER.warning("Capture exceeds the 4 GiB WAV limit; size fields are truncated")
        self.data_size = data_size
        handle.flush()
        handle.seek(RIFF_SIZE_OFFSET)
        handle.write(_U32.pack(self.riff_size & 0xFFFFFFFF))
        handle.seek(DATA_SIZE_OFFSET)
        handle.write(_U32.pack(self.data_size & 0xFFFFFFFF))
        handle.seek(0, 2)
        handle.flush()
        LOGGER.debug("Finalised WAV header", extra={"data_size": data_size})


def wav_filename(frequency_hz: int, now: Optional[datetime] = None) -> str:
    """Automatic capture name, e.g. ``HackRF_20240102_030405Z_900000kHz_IQ.wav``."""

    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return f"HackRF_{stamp:%Y%m%d_%H%M%S}Z_{frequency_hz // 1000}kHz_IQ.wav"


__all__ = ["HEADER_SIZE", "WavHeader", "wav_filename"]
