import io

import numpy as np
import pytest

from iqxfer.core.types import CallbackResult, TransferBuffer
from iqxfer.dsp.iqio import FileBackedStream
from iqxfer.services.limiter import TransferLimiter
from iqxfer.services.tx_pipeline import ContinuousWaveCallback, TransmitCallback


class _Pipe(io.BytesIO):
    def seekable(self):
        return False


class _BrokenReader(io.RawIOBase):
    def readable(self):
        return True

    def readinto(self, _buffer):
        raise OSError(5, "Input/output error")


def _source(tmp_path, payload, repeat=False):
    path = tmp_path / "tx.iq"
    path.write_bytes(payload)
    return FileBackedStream.open_source(path, repeat=repeat)


def _step(callback, size):
    buffer = TransferBuffer.allocate(size)
    result = callback.on_buffer(buffer)
    return result, buffer.payload().tobytes()


def test_limit_truncates_final_buffer(tmp_path):
    callback = TransmitCallback(_source(tmp_path, bytes(4096)), TransferLimiter(1000))
    steps = [_step(callback, 256) for _ in range(4)]
    assert [len(data) for _, data in steps] == [256, 256, 256, 232]
    assert [result for result, _ in steps] == [CallbackResult.CONTINUE] * 3 + [CallbackResult.STOP]
    assert callback.byte_count == 1000


def test_repeat_cycles_through_file(tmp_path):
    callback = TransmitCallback(_source(tmp_path, bytes(range(10)), repeat=True), TransferLimiter())
    steps = [_step(callback, 4) for _ in range(5)]
    assert [list(data) for _, data in steps] == [
        [0, 1, 2, 3],
        [4, 5, 6, 7],
        [8, 9, 0, 1],
        [2, 3, 4, 5],
        [6, 7, 8, 9],
    ]
    assert all(result is CallbackResult.CONTINUE for result, _ in steps)


def test_repeat_fills_buffers_larger_than_file(tmp_path):
    callback = TransmitCallback(_source(tmp_path, b"\x01\x02\x03", repeat=True), TransferLimiter())
    result, data = _step(callback, 8)
    assert result is CallbackResult.CONTINUE
    assert data == b"\x01\x02\x03\x01\x02\x03\x01\x02"
    _, data = _step(callback, 4)
    assert data == b"\x03\x01\x02\x03"


@pytest.mark.parametrize("buffer_size", [1, 7, 256])
@pytest.mark.parametrize("file_length", [0, 5, 256, 1000])
@pytest.mark.parametrize("limit", [None, 3, 512])
def test_delivers_min_of_file_and_limit(tmp_path, buffer_size, file_length, limit):
    payload = bytes(i % 251 for i in range(file_length))
    callback = TransmitCallback(_source(tmp_path, payload), TransferLimiter(limit))
    delivered = bytearray()
    stops = 0
    for _ in range(2000):
        result, data = _step(callback, buffer_size)
        delivered.extend(data)
        if result is CallbackResult.STOP:
            stops += 1
            break
    expected = file_length if limit is None else min(file_length, limit)
    assert stops == 1
    assert bytes(delivered) == payload[:expected]


def test_repeat_without_limit_never_stops(tmp_path):
    payload = bytes(range(13))
    callback = TransmitCallback(_source(tmp_path, payload, repeat=True), TransferLimiter())
    delivered = bytearray()
    for _ in range(50):
        result, data = _step(callback, 6)
        assert result is CallbackResult.CONTINUE
        delivered.extend(data)
    assert bytes(delivered) == (payload * 30)[: len(delivered)]


def test_repeat_with_limit_stops_at_limit(tmp_path):
    callback = TransmitCallback(_source(tmp_path, bytes(range(10)), repeat=True), TransferLimiter(25))
    results = [_step(callback, 8)[0] for _ in range(4)]
    assert results[-1] is CallbackResult.STOP
    assert callback.byte_count == 25


def test_zero_length_buffer_continues(tmp_path):
    callback = TransmitCallback(_source(tmp_path, b"abc"), TransferLimiter(2))
    buffer = TransferBuffer(data=np.zeros(0, dtype=np.uint8), valid_length=0)
    assert callback.on_buffer(buffer) is CallbackResult.CONTINUE
    assert callback.limiter.remaining == 2


def test_repeat_on_pipe_stops_after_partial_buffer():
    source = FileBackedStream(_Pipe(b"abc"), name="pipe", repeat=True, owns_handle=False)
    callback = TransmitCallback(source, TransferLimiter())
    result, data = _step(callback, 8)
    assert result is CallbackResult.STOP
    assert data == b"abc"
    assert not callback.failed


def test_read_error_is_end_of_stream_and_flagged():
    source = FileBackedStream(_BrokenReader(), name="broken")
    callback = TransmitCallback(source, TransferLimiter())
    result, data = _step(callback, 8)
    assert result is CallbackResult.STOP
    assert data == b""
    assert callback.failed


def test_stopped_callback_keeps_stopping(tmp_path):
    callback = TransmitCallback(_source(tmp_path, b"ab"), TransferLimiter())
    assert _step(callback, 4)[0] is CallbackResult.STOP
    result, data = _step(callback, 4)
    assert result is CallbackResult.STOP
    assert data == b""


def test_continuous_wave_fills_amplitude_and_honours_limit():
    callback = ContinuousWaveCallback(127, TransferLimiter(10))
    result, data = _step(callback, 8)
    assert result is CallbackResult.CONTINUE
    assert data == bytes([127]) * 8
    result, data = _step(callback, 8)
    assert result is CallbackResult.STOP
    assert data == bytes([127]) * 2


def test_continuous_wave_rejects_out_of_range_amplitude():
    with pytest.raises(ValueError):
        ContinuousWaveCallback(128, TransferLimiter())
