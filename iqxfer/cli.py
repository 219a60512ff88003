"""Command-line entry point mirroring the vendor ``hackrf_transfer`` flags."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

from iqxfer.core.config import (
    DEFAULT_SAMPLE_RATE_HZ,
    FREQ_MAX_HZ,
    FREQ_MIN_HZ,
    IF_MAX_HZ,
    IF_MIN_HZ,
    LO_MAX_HZ,
    LO_MIN_HZ,
    ConfigurationError,
    load_config,
)
from iqxfer.core.logger import LoggerConfig, configure_logging
from iqxfer.core.types import Direction
from iqxfer.core.utils import FREQ_ONE_MHZ, U32_MAX, install_excepthook, parse_frequency, parse_int, shutdown_on_signals
from iqxfer.services.session import SessionController


class _ArgumentParser(argparse.ArgumentParser):
    """Argument errors exit with status 1 like every other failure."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"argument error: {message}\n")


def unsigned(text: str) -> int:
    return parse_int(text)


def u32(text: str) -> int:
    return parse_int(text, maximum=U32_MAX)


def frequency(text: str) -> int:
    return parse_frequency(text)


def _mhz(value: int) -> str:
    return f"{value // FREQ_ONE_MHZ}MHz"


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="iqxfer", description="Stream IQ samples between a HackRF and a file")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-r", dest="receive", metavar="filename", help="Receive data into file (use '-' for stdout)")
    mode.add_argument("-t", dest="transmit", metavar="filename", help="Transmit data from file (use '-' for stdin)")
    mode.add_argument(
        "-w", dest="wav", action="store_true",
        help="Receive data into file with WAV header and automatic name (SDR# compatible)",
    )
    parser.add_argument("-d", dest="serial_number", metavar="serial_number", help="Serial number of desired HackRF (mock:// for the simulator)")
    parser.add_argument(
        "-f", dest="frequency_hz", type=frequency, metavar="freq_hz",
        help=f"Frequency in Hz [{_mhz(FREQ_MIN_HZ)} to {_mhz(FREQ_MAX_HZ)}]",
    )
    parser.add_argument(
        "-i", dest="if_frequency_hz", type=frequency, metavar="if_freq_hz",
        help=f"Intermediate Frequency (IF) in Hz [{_mhz(IF_MIN_HZ)} to {_mhz(IF_MAX_HZ)}]",
    )
    parser.add_argument(
        "-o", dest="lo_frequency_hz", type=frequency, metavar="lo_freq_hz",
        help=f"Front-end Local Oscillator (LO) frequency in Hz [{_mhz(LO_MIN_HZ)} to {_mhz(LO_MAX_HZ)}]",
    )
    parser.add_argument("-m", dest="image_reject", type=u32, metavar="image_reject", help="Image rejection filter, 0=bypass, 1=low pass, 2=high pass")
    parser.add_argument("-a", dest="amp_enable", type=u32, metavar="amp_enable", help="RX/TX RF amplifier 1=Enable, 0=Disable")
    parser.add_argument("-p", dest="antenna_enable", type=u32, metavar="antenna_enable", help="Antenna port power, 1=Enable, 0=Disable")
    parser.add_argument("-l", dest="lna_gain_db", type=u32, metavar="gain_db", help="RX LNA (IF) gain, 0-40dB, 8dB steps")
    parser.add_argument("-g", dest="vga_gain_db", type=u32, metavar="gain_db", help="RX VGA (baseband) gain, 0-62dB, 2dB steps")
    parser.add_argument("-x", dest="txvga_gain_db", type=u32, metavar="gain_db", help="TX VGA (IF) gain, 0-47dB, 1dB steps")
    parser.add_argument(
        "-s", dest="sample_rate_hz", type=frequency, metavar="sample_rate_hz",
        help=f"Sample rate in Hz (default {_mhz(DEFAULT_SAMPLE_RATE_HZ)})",
    )
    parser.add_argument("-n", dest="num_samples", type=unsigned, metavar="num_samples", help="Number of samples to transfer (default is unlimited)")
    parser.add_argument("-S", dest="stream_buffer_size", type=u32, metavar="buf_size", help="Enable receive streaming with buffer size buf_size")
    parser.add_argument("-c", dest="amplitude", type=u32, metavar="amplitude", help="CW signal source mode, amplitude 0-127 (DC value to DAC)")
    parser.add_argument("-R", dest="repeat", action="store_true", help="Repeat TX mode (default is off)")
    parser.add_argument("-b", dest="baseband_filter_bw_hz", type=frequency, metavar="baseband_filter_bw_hz", help="Baseband filter bandwidth in Hz (default <= 0.75 * sample_rate_hz)")
    parser.add_argument("-C", dest="crystal_ppm", type=int, metavar="ppm", help="Internal crystal clock error in ppm")
    parser.add_argument("-H", dest="hw_sync", type=u32, metavar="hw_sync_enable", help="Synchronise USB transfer using GPIO pins")

    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging verbosity")
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for the rotating log file")
    parser.add_argument("--no-console-log", action="store_true", help="Only log to the rotating file")
    return parser


_TRANSFER_FIELDS = (
    "serial_number",
    "frequency_hz",
    "if_frequency_hz",
    "lo_frequency_hz",
    "image_reject",
    "amp_enable",
    "antenna_enable",
    "lna_gain_db",
    "vga_gain_db",
    "txvga_gain_db",
    "sample_rate_hz",
    "num_samples",
    "stream_buffer_size",
    "amplitude",
    "baseband_filter_bw_hz",
    "crystal_ppm",
)


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate parsed flags into a configuration override tree."""

    transfer: Dict[str, Any] = {
        key: getattr(args, key) for key in _TRANSFER_FIELDS if getattr(args, key) is not None
    }
    if args.repeat:
        transfer["repeat"] = True
    if args.hw_sync is not None:
        transfer["hw_sync"] = args.hw_sync

    if args.amplitude is not None:
        if args.receive is not None or args.wav:
            raise ConfigurationError("-c cannot be combined with -r or -w")
        transfer["direction"] = Direction.CONTINUOUS_WAVE.value
        if args.transmit is not None:
            transfer["path"] = args.transmit
    elif args.transmit is not None:
        transfer["direction"] = Direction.TRANSMIT.value
        transfer["path"] = args.transmit
    elif args.receive is not None:
        transfer["direction"] = Direction.RECEIVE.value
        transfer["path"] = args.receive
    elif args.wav:
        transfer["direction"] = Direction.RECEIVE.value
        transfer["wav"] = True

    overrides: Dict[str, Any] = {}
    if transfer:
        overrides["transfer"] = transfer
    logging_overrides: Dict[str, Any] = {}
    if args.log_level:
        logging_overrides["level"] = args.log_level
    if args.log_dir is not None:
        logging_overrides["directory"] = str(args.log_dir)
    if logging_overrides:
        overrides["logging"] = logging_overrides
    return overrides


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config, overrides=build_overrides(args))
        if config.transfer is None:
            raise ConfigurationError("specify -r, -t, -w or -c")
    except ConfigurationError as exc:
        print(f"argument error: {exc}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    configure_logging(
        LoggerConfig(
            level=config.logging.level,
            directory=config.logging.directory,
            rotate_bytes=config.logging.rotate_bytes,
            backup_count=config.logging.backup_count,
        ),
        enable_console=not args.no_console_log,
    )
    if config.logging.level.upper() == "DEBUG":
        install_excepthook()

    controller = SessionController(settings=config.session)
    with shutdown_on_signals(controller.shutdown):
        status = controller.run(config.transfer)
    return status.exit_code


if __name__ == "__main__":  # pragma: no cover - manual execution
    raise SystemExit(main())
