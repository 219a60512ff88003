import io

import numpy as np

from iqxfer.dsp.iqio import FileBackedStream


class _Pipe(io.BytesIO):
    def seekable(self):
        return False


def test_read_into_fills_and_detects_eof(tmp_path):
    path = tmp_path / "samples.iq"
    path.write_bytes(bytes(range(10)))
    stream = FileBackedStream.open_source(path)
    target = np.zeros(6, dtype=np.uint8)
    assert stream.read_into(target) == 6
    assert target.tolist() == [0, 1, 2, 3, 4, 5]
    assert not stream.eof
    assert stream.read_into(target) == 4
    assert stream.eof
    assert stream.bytes_read == 10
    stream.close()
    assert stream.closed


def test_rewind_resets_position(tmp_path):
    path = tmp_path / "samples.iq"
    path.write_bytes(b"abcd")
    stream = FileBackedStream.open_source(path, repeat=True)
    target = np.zeros(4, dtype=np.uint8)
    stream.read_into(target)
    assert stream.rewind()
    assert stream.read_into(target[:2]) == 2
    assert target[:2].tobytes() == b"ab"
    assert stream.rewinds == 1
    stream.close()


def test_rewind_fails_on_pipe():
    stream = FileBackedStream(_Pipe(b"abc"), name="pipe", owns_handle=False)
    assert not stream.seekable
    assert not stream.rewind()


def test_sink_writes_and_does_not_close_borrowed_handle():
    handle = io.BytesIO()
    stream = FileBackedStream(handle, name="borrowed", owns_handle=False)
    assert stream.write(np.arange(5, dtype=np.uint8)) == 5
    assert stream.write(b"xyz") == 3
    stream.close()
    assert not handle.closed
    assert handle.getvalue() == bytes(range(5)) + b"xyz"
    assert stream.bytes_written == 8


def test_open_sink_dash_selects_stdout(monkeypatch):
    buffer = io.BytesIO()

    class _Stdout:
        pass

    fake = _Stdout()
    fake.buffer = buffer
    monkeypatch.setattr("sys.stdout", fake)
    stream = FileBackedStream.open_sink("-")
    stream.write(b"iq")
    stream.close()
    assert buffer.getvalue() == b"iq"
    assert not buffer.closed
