import struct
from datetime import datetime, timedelta, timezone

import numpy as np
from scipy.io import wavfile

from iqxfer.dsp.wav import HEADER_SIZE, WavHeader, wav_filename


def test_placeholder_header_layout():
    raw = WavHeader(sample_rate=10_000_000).pack()
    assert len(raw) == HEADER_SIZE
    assert raw[:4] == b"RIFF"
    assert raw[8:16] == b"WAVEfmt "
    assert raw[36:40] == b"data"
    fmt_size, tag, channels, rate, byte_rate, align, bits = struct.unpack("<IHHIIHH", raw[16:36])
    assert (fmt_size, tag, channels, bits, align) == (16, 1, 2, 8, 2)
    assert rate == 10_000_000
    assert byte_rate == 20_000_000
    assert struct.unpack("<I", raw[4:8])[0] == 36
    assert struct.unpack("<I", raw[40:44])[0] == 0


def test_finalize_patches_sizes_readable_by_scipy(tmp_path):
    path = tmp_path / "capture.wav"
    samples = np.arange(2000, dtype=np.uint32) % 256
    header = WavHeader(sample_rate=2_000_000)
    with path.open("wb") as handle:
        header.write_placeholder(handle)
        handle.write(samples.astype(np.uint8).tobytes())
        header.finalize(handle, 2000)
        assert handle.tell() == HEADER_SIZE + 2000

    raw = path.read_bytes()
    assert struct.unpack("<I", raw[4:8])[0] == 2000 + 36
    assert struct.unpack("<I", raw[40:44])[0] == 2000

    rate, data = wavfile.read(path)
    assert rate == 2_000_000
    assert data.dtype == np.uint8
    assert data.shape == (1000, 2)
    assert data[1].tolist() == [2, 3]


def test_wav_filename_uses_utc_and_khz():
    stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert wav_filename(900_000_000, stamp) == "HackRF_20240102_030405Z_900000kHz_IQ.wav"
    local = stamp.astimezone(timezone(timedelta(hours=2)))
    assert wav_filename(2_450_000_000, local) == "HackRF_20240102_030405Z_2450000kHz_IQ.wav"
