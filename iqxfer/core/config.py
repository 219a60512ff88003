"""Configuration management for HackRF-class transfer sessions."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .logger import get_logger
from .types import BYTES_PER_SAMPLE, Direction, ImageReject

LOGGER = get_logger(__name__)

FREQ_MIN_HZ = 0
FREQ_MAX_HZ = 7_250_000_000
IF_MIN_HZ = 2_150_000_000
IF_MAX_HZ = 2_750_000_000
LO_MIN_HZ = 84_375_000
LO_MAX_HZ = 5_400_000_000
DEFAULT_FREQ_HZ = 900_000_000
DEFAULT_LO_HZ = 1_000_000_000

DEFAULT_SAMPLE_RATE_HZ = 10_000_000
SAMPLE_RATE_MIN_HZ = 2_000_000
SAMPLE_RATE_MAX_HZ = 20_000_000

BASEBAND_FILTER_BW_MIN = 1_750_000
BASEBAND_FILTER_BW_MAX = 28_000_000
BASEBAND_FILTER_BANDWIDTHS = (
    1_750_000, 2_500_000, 3_500_000, 5_000_000, 5_500_000, 6_000_000, 7_000_000, 8_000_000,
    9_000_000, 10_000_000, 12_000_000, 14_000_000, 15_000_000, 20_000_000, 24_000_000, 28_000_000,
)

SAMPLES_TO_XFER_MAX = 0x8000000000000000
DEFAULT_TRANSFER_BUFFER_SIZE = 262_144

_DEFAULT_STATE_DIR = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "iqxfer"


class ConfigurationError(ValueError):
    """Raised when options are out of range or mutually exclusive."""


def compute_baseband_filter_bw(bandwidth_hz: float) -> int:
    """Return the largest supported filter bandwidth not above ``bandwidth_hz``.

    Requests below the smallest supported value map to the smallest one.
    """

    chosen = BASEBAND_FILTER_BANDWIDTHS[0]
    for candidate in BASEBAND_FILTER_BANDWIDTHS:
        if candidate > bandwidth_hz:
            break
        chosen = candidate
    return chosen


def _round_down(value: int, step: int) -> int:
    return value - (value % step)


class TransferConfig(BaseModel):
    """Validated parameters for a single transmit, receive or CW session."""

    model_config = ConfigDict(extra="forbid")

    direction: Direction
    path: Optional[str] = Field(None, description="Sample file, or '-' for stdin/stdout")
    wav: bool = Field(False, description="Write a RIFF/WAVE header ahead of received samples")
    serial_number: Optional[str] = Field(None, description="Serial number (or mock:// URI) of the device")

    frequency_hz: Optional[int] = Field(None, ge=FREQ_MIN_HZ, le=FREQ_MAX_HZ)
    if_frequency_hz: Optional[int] = Field(None, ge=IF_MIN_HZ, le=IF_MAX_HZ)
    lo_frequency_hz: Optional[int] = Field(None, ge=LO_MIN_HZ, le=LO_MAX_HZ)
    image_reject: Optional[ImageReject] = None

    amp_enable: Optional[bool] = None
    antenna_enable: Optional[bool] = None
    lna_gain_db: int = Field(8, ge=0, le=40, description="RX LNA (IF) gain, 8 dB steps")
    vga_gain_db: int = Field(20, ge=0, le=62, description="RX VGA (baseband) gain, 2 dB steps")
    txvga_gain_db: int = Field(0, ge=0, le=47, description="TX VGA (IF) gain, 1 dB steps")

    sample_rate_hz: float = Field(DEFAULT_SAMPLE_RATE_HZ, ge=SAMPLE_RATE_MIN_HZ, le=SAMPLE_RATE_MAX_HZ)
    baseband_filter_bw_hz: Optional[int] = Field(None, ge=BASEBAND_FILTER_BW_MIN, le=BASEBAND_FILTER_BW_MAX)

    num_samples: Optional[int] = Field(None, ge=0, le=SAMPLES_TO_XFER_MAX)
    stream_buffer_size: Optional[int] = Field(None, gt=0, description="Receive ring buffer size in bytes")
    amplitude: Optional[int] = Field(None, ge=0, le=127, description="CW amplitude (DC value to DAC)")
    repeat: bool = False
    crystal_ppm: Optional[int] = Field(None, gt=-1_000_000, lt=1_000_000)
    hw_sync: bool = False

    @model_validator(mode="after")
    def _validate_combinations(self) -> "TransferConfig":
        explicit = (
            self.if_frequency_hz is not None
            or self.lo_frequency_hz is not None
            or self.image_reject is not None
        )
        if explicit:
            if self.frequency_hz is not None:
                raise ValueError("frequency_hz must not be combined with IF, LO or image reject settings")
            if self.if_frequency_hz is None:
                raise ValueError("if_frequency_hz is required for explicit tuning")
            if self.lo_frequency_hz is None and self.image_reject not in (None, ImageReject.BYPASS):
                raise ValueError("lo_frequency_hz is required with a low pass or high pass image reject filter")

        if self.direction is Direction.CONTINUOUS_WAVE:
            if self.amplitude is None:
                raise ValueError("continuous wave mode requires an amplitude")
        elif self.amplitude is not None:
            raise ValueError("amplitude is only valid in continuous wave mode")

        if self.direction is not Direction.CONTINUOUS_WAVE and not self.path and not self.wav:
            raise ValueError("specify a path to a file to transmit/receive")

        if self.wav:
            if self.direction is not Direction.RECEIVE:
                raise ValueError("WAV output is only available when receiving")
            if self.path == "-":
                raise ValueError("WAV output needs a seekable file, not stdout")

        if self.repeat and self.direction is not Direction.TRANSMIT:
            raise ValueError("repeat is only valid when transmitting from a file")

        if self.stream_buffer_size is not None and self.direction is not Direction.RECEIVE:
            raise ValueError("stream_buffer_size is only valid when receiving")

        lna = _round_down(self.lna_gain_db, 8)
        vga = _round_down(self.vga_gain_db, 2)
        if (lna, vga) != (self.lna_gain_db, self.vga_gain_db):
            LOGGER.debug("Rounded gains to supported steps", extra={"lna_gain_db": lna, "vga_gain_db": vga})
            self.lna_gain_db = lna
            self.vga_gain_db = vga
        return self

    @property
    def explicit_tuning(self) -> bool:
        return self.if_frequency_hz is not None

    @property
    def tuned_frequency_hz(self) -> int:
        """Center frequency the radio ends up on, before crystal correction."""

        if not self.explicit_tuning:
            return self.frequency_hz if self.frequency_hz is not None else DEFAULT_FREQ_HZ
        if_hz = int(self.if_frequency_hz or 0)
        lo_hz = self.lo_frequency_hz if self.lo_frequency_hz is not None else DEFAULT_LO_HZ
        selection = self.image_reject or ImageReject.BYPASS
        if selection is ImageReject.LOW_PASS:
            return abs(if_hz - lo_hz)
        if selection is ImageReject.HIGH_PASS:
            return if_hz + lo_hz
        return if_hz

    @property
    def byte_limit(self) -> Optional[int]:
        if self.num_samples is None:
            return None
        return self.num_samples * BYTES_PER_SAMPLE

    def _ppm_scale(self) -> float:
        if self.crystal_ppm is None:
            return 1.0
        return (1_000_000 - self.crystal_ppm) / 1_000_000

    @property
    def corrected_sample_rate_hz(self) -> int:
        return int(self.sample_rate_hz * self._ppm_scale() + 0.5)

    @property
    def corrected_frequency_hz(self) -> int:
        if self.crystal_ppm is None:
            return self.tuned_frequency_hz
        return self.tuned_frequency_hz * (1_000_000 - self.crystal_ppm) // 1_000_000

    @property
    def effective_baseband_filter_bw_hz(self) -> int:
        requested = self.baseband_filter_bw_hz
        if requested is None:
            requested = 0.75 * self.sample_rate_hz
        return compute_baseband_filter_bw(requested)


class SessionDefaults(BaseModel):
    """Timing behaviour of the session monitoring loop."""

    poll_interval_s: float = Field(0.1, gt=0.0, le=5.0, description="Sleep between streaming status polls")
    stats_interval_s: float = Field(1.0, gt=0.0, description="Interval between throughput log lines")
    buffer_size: int = Field(DEFAULT_TRANSFER_BUFFER_SIZE, gt=0, description="Transfer size used by the mock driver")


class LoggingDefaults(BaseModel):
    """Logging behaviour for the CLI entry point."""

    level: str = Field("INFO", description="Root logger level")
    directory: Path = Field(_DEFAULT_STATE_DIR / "logs", description="Where rotating logs are stored")
    rotate_bytes: int = Field(5 * 1024 * 1024, ge=1024, description="Maximum log size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of rotated archives to keep")


class AppConfig(BaseModel):
    """Top-level configuration tree."""

    transfer: Optional[TransferConfig] = None
    session: SessionDefaults = Field(default_factory=SessionDefaults)
    logging: LoggingDefaults = Field(default_factory=LoggingDefaults)


def _merge_dicts(base: MutableMapping[str, Any], overrides: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            _merge_dicts(base[key], value)  # type: ignore[index]
        else:
            base[key] = value  # type: ignore[index]
    return base


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        content = yaml.safe_load(handle) or {}
    if not isinstance(content, dict):
        raise ConfigurationError("Configuration file must contain a mapping at the root level")
    return content


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def load_config(path: Optional[Path] = None, overrides: Optional[Mapping[str, Any]] = None) -> AppConfig:
    """Load, merge, and validate the configuration tree.

    Raises:
        ConfigurationError: if the merged tree fails validation.
    """

    if path is None:
        path = Path("configs/default.yaml")

    LOGGER.debug("Loading configuration", extra={"path": str(path)})

    config_map: MutableMapping[str, Any] = {}
    if path.exists():
        config_map = _load_yaml(path)
    else:
        LOGGER.debug("Configuration file not found, using defaults", extra={"path": str(path)})

    env_log_dir = os.getenv("IQXFER_LOG_DIR")
    if env_log_dir:
        config_map.setdefault("logging", {})["directory"] = env_log_dir

    if overrides:
        _merge_dicts(config_map, dict(overrides))

    try:
        return AppConfig.model_validate(config_map)
    except ValidationError as exc:
        message = _describe(exc)
        LOGGER.error("Invalid configuration: %s", message)
        raise ConfigurationError(message) from exc


__all__ = [
    "AppConfig",
    "BASEBAND_FILTER_BANDWIDTHS",
    "ConfigurationError",
    "DEFAULT_FREQ_HZ",
    "DEFAULT_LO_HZ",
    "DEFAULT_SAMPLE_RATE_HZ",
    "FREQ_MAX_HZ",
    "FREQ_MIN_HZ",
    "IF_MAX_HZ",
    "IF_MIN_HZ",
    "LO_MAX_HZ",
    "LO_MIN_HZ",
    "LoggingDefaults",
    "SAMPLES_TO_XFER_MAX",
    "SessionDefaults",
    "TransferConfig",
    "compute_baseband_filter_bw",
    "load_config",
]
