import logging

import pytest

from iqxfer.cli import build_overrides, build_parser, main
from iqxfer.core.config import ConfigurationError


@pytest.fixture(autouse=True)
def _restore_root_logger(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    logging.captureWarnings(False)


def _overrides(*argv):
    return build_overrides(build_parser().parse_args(list(argv)))


def test_receive_flags_map_to_transfer_settings():
    overrides = _overrides("-r", "out.iq", "-f", "2.4e9", "-l", "0x10", "-g", "20", "-a", "1", "-n", "1000", "-S", "65536")
    assert overrides["transfer"] == {
        "direction": "receive",
        "path": "out.iq",
        "frequency_hz": 2_400_000_000,
        "lna_gain_db": 16,
        "vga_gain_db": 20,
        "amp_enable": 1,
        "num_samples": 1000,
        "stream_buffer_size": 65536,
    }


def test_transmit_repeat_and_explicit_tuning():
    overrides = _overrides("-t", "in.iq", "-R", "-i", "2450000000", "-o", "1e9", "-m", "2", "-H", "1")
    transfer = overrides["transfer"]
    assert transfer["direction"] == "transmit"
    assert transfer["repeat"] is True
    assert transfer["image_reject"] == 2
    assert transfer["lo_frequency_hz"] == 1_000_000_000
    assert transfer["hw_sync"] == 1


def test_wav_and_continuous_wave_modes():
    assert _overrides("-w")["transfer"] == {"direction": "receive", "wav": True}
    assert _overrides("-c", "127")["transfer"] == {"direction": "continuous_wave", "amplitude": 127}
    with pytest.raises(ConfigurationError):
        _overrides("-c", "10", "-r", "out.iq")


def test_logging_flags():
    overrides = _overrides("-w", "--log-level", "DEBUG", "--log-dir", "logs")
    assert overrides["logging"] == {"level": "DEBUG", "directory": "logs"}


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["-h"])
    assert excinfo.value.code == 0
    assert "-r filename" in capsys.readouterr().out


@pytest.mark.parametrize(
    "argv",
    [
        ["-r", "a.iq", "-t", "b.iq"],
        ["-r", "a.iq", "-l", "-8"],
        ["-r", "a.iq", "-f", "often"],
    ],
)
def test_argument_errors_exit_one(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 1


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["-c", "10", "-w"],
        ["-r", "a.iq", "-f", "100e6", "-i", "2.4e9"],
        ["-r", "a.iq", "-R"],
        ["-r", "a.iq", "-l", "41"],
    ],
)
def test_invalid_combinations_return_one(argv, capsys):
    assert main(argv + ["--log-dir", "logs", "--no-console-log"]) == 1
    assert "argument error" in capsys.readouterr().err


def test_transmit_with_mock_device(tmp_path):
    source = tmp_path / "tx.iq"
    source.write_bytes(bytes(1000))
    argv = ["-t", str(source), "-d", "mock://sim", "--log-dir", str(tmp_path / "logs"), "--no-console-log"]
    assert main(argv) == 0
    assert (tmp_path / "logs" / "iqxfer.log").exists()


def test_receive_with_mock_device(tmp_path):
    target = tmp_path / "rx.iq"
    argv = ["-r", str(target), "-d", "mock://sim", "-n", "1000", "--log-dir", str(tmp_path / "logs"), "--no-console-log"]
    assert main(argv) == 0
    assert target.stat().st_size == 2000


def test_missing_file_exits_one(tmp_path):
    argv = ["-t", str(tmp_path / "missing.iq"), "-d", "mock://sim", "--log-dir", str(tmp_path / "logs"), "--no-console-log"]
    assert main(argv) == 1
