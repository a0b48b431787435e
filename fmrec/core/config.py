"""
Core configuration utilities for fmrec.

- Resolves the per-user configuration directory (platformdirs).
- Exposes project path constants (ROOT_DIR, RECORDINGS_DIR, LOGS_DIR)
  as well as user-scoped paths (USER_CONFIG_DIR, USER_CONFIG_FILE).
- Configures logging.
- Loads, validates and initializes config.toml.

User config lives in the platform-standard location:
  - Linux: ${XDG_CONFIG_HOME:-~/.config}/fmrec
  - macOS: ~/Library/Application Support/fmrec
  - Windows: %LOCALAPPDATA%/fmrec

It is read with stdlib `tomllib` and written with `toml`.

This module aims to remain small and import-safe.
"""

from __future__ import annotations

import logging
import os
import sys
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Final

import platformdirs
import toml

from fmrec.core import (
    DEFAULT_BIT_RATE,
    DEFAULT_CHANNELS,
    DEFAULT_SAMPLE_RATE,
    AudioEncoder,
    InputDevice,
    RecordConfig,
)
from fmrec.core.parser import DEFAULT_NOT_FOUND_PATTERNS

# Project paths (relative to current working directory)
ROOT_DIR: Final[Path] = Path.cwd()
RECORDINGS_DIR: Final[Path] = ROOT_DIR / "recordings"
LOGS_DIR: Final[Path] = ROOT_DIR / "logs"

USER_CONFIG_DIR: Final[Path] = Path(platformdirs.user_config_dir("fmrec"))
USER_CONFIG_FILE: Final[Path] = USER_CONFIG_DIR / "config.toml"

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _get_log_level(level: str) -> int:
    """
    Convert a string log level to logging module constant, defaulting to INFO.
    """
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else logging.INFO


def setup_environment(log_level: str = "INFO") -> None:
    """
    Configure root logging with a stdout stream handler.

    Resets existing handlers to avoid duplicate logs if called multiple times.
    """
    log_level_int = _get_log_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_int)
    while root_logger.handlers:
        root_logger.handlers.pop()
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level_int)
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stream_handler)


def add_file_logging(logs_dir: Path, level: str) -> Path:
    """
    Add a FileHandler writing to `logs_dir`/app.log, unless one already writes there.
    """
    log_file = logs_dir / "app.log"
    root_logger = logging.getLogger()
    target = os.path.abspath(log_file)
    if any(getattr(h, "baseFilename", None) == target for h in root_logger.handlers):
        return log_file
    logs_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(_get_log_level(level))
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)
    logging.info("File logging enabled: %s", log_file)
    return log_file


def _read_toml(path: Path) -> dict[str, Any]:
    """
    Read a TOML file and return its contents as a dict using stdlib tomllib.
    If reading/parsing fails, return an empty dict.
    """
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        logging.warning("Failed to read config %s: %s", path, e)
        return {}


def load_user_config(path: Path | None = None) -> dict[str, Any]:
    """
    Load the user's configuration (USER_CONFIG_FILE unless `path` is given).

    If the file does not exist or cannot be parsed, returns an empty dict.

    Expected layout (example):

    [recorder]
    backend = "fmedia"
    binary = "fmedia"
    pipe_prefix = "fmrec"
    not_found_patterns = ["No such file or directory"]

    [defaults]
    encoder = "aacLc"
    rate = 44100
    channels = 2
    bit_rate = 128000
    device = ""
    keep_log_files = false
    log_level = "INFO"
    """
    path = path or USER_CONFIG_FILE
    if not path.exists():
        logging.debug("No user config file found at %s, using defaults", path)
        return {}
    return _read_toml(path)


@dataclass
class RecorderSettings:
    backend: str = "fmedia"
    # shlex-split by the invoker; may include leading arguments
    binary: str = "fmedia"
    pipe_prefix: str = "fmrec"
    not_found_patterns: list[str] = field(
        default_factory=lambda: list(DEFAULT_NOT_FOUND_PATTERNS)
    )


@dataclass
class DefaultsConfig:
    encoder: str = AudioEncoder.AAC_LC.value
    rate: int = DEFAULT_SAMPLE_RATE
    channels: int = DEFAULT_CHANNELS
    bit_rate: int = DEFAULT_BIT_RATE
    device: str | None = None
    keep_log_files: bool = False
    log_level: str = "INFO"


def init_user_config(force: bool = False, path: Path | None = None) -> Path:
    """
    Write config.toml with the default settings.

    Does not overwrite an existing file unless force=True.
    """
    path = path or USER_CONFIG_FILE
    if path.exists() and not force:
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    defaults = asdict(DefaultsConfig())
    # TOML has no null
    defaults["device"] = ""
    data = {"recorder": asdict(RecorderSettings()), "defaults": defaults}
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(data, f)
    logging.info("Wrote user config: %s", path)
    return path


@dataclass
class Config:
    recorder: RecorderSettings = field(default_factory=RecorderSettings)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    recordings_dir: Path = RECORDINGS_DIR
    logs_dir: Path = LOGS_DIR
    user_config_file: Path = USER_CONFIG_FILE

    @classmethod
    def load(cls, log_level: str = "INFO", path: Path | None = None) -> Config:
        setup_environment(log_level)
        config_file = path or USER_CONFIG_FILE
        user_config = load_user_config(config_file)

        recorder_raw = user_config.get("recorder", {})
        if not isinstance(recorder_raw, dict):
            recorder_raw = {}
        patterns_raw = recorder_raw.get("not_found_patterns")
        if isinstance(patterns_raw, list):
            patterns = [str(p) for p in patterns_raw if str(p)]
        else:
            patterns = list(DEFAULT_NOT_FOUND_PATTERNS)
        recorder = RecorderSettings(
            backend=str(recorder_raw.get("backend", "fmedia")),
            binary=str(recorder_raw.get("binary", "fmedia")),
            pipe_prefix=str(recorder_raw.get("pipe_prefix", "fmrec")),
            not_found_patterns=patterns,
        )

        defaults_raw = user_config.get("defaults", {})
        if not isinstance(defaults_raw, dict):
            defaults_raw = {}
        # Coerce defaults
        defaults_data = {
            "encoder": str(defaults_raw.get("encoder", AudioEncoder.AAC_LC.value)),
            "rate": int(defaults_raw.get("rate", DEFAULT_SAMPLE_RATE)),
            "channels": int(defaults_raw.get("channels", DEFAULT_CHANNELS)),
            "bit_rate": int(defaults_raw.get("bit_rate", DEFAULT_BIT_RATE)),
            "device": str(defaults_raw.get("device") or "") or None,
            "keep_log_files": bool(defaults_raw.get("keep_log_files", False)),
            "log_level": str(defaults_raw.get("log_level", log_level)),
        }
        if defaults_data["channels"] not in (1, 2):
            raise ValueError("channels must be 1 or 2")
        if defaults_data["rate"] <= 0:
            raise ValueError("rate must be > 0")
        if defaults_data["bit_rate"] <= 0:
            raise ValueError("bit_rate must be > 0")
        known = {e.value for e in AudioEncoder}
        if defaults_data["encoder"] not in known:
            raise ValueError(f"encoder must be one of {'|'.join(sorted(known))}")
        defaults = DefaultsConfig(**defaults_data)

        # Update logging level to effective (user or CLI fallback)
        logging.getLogger().setLevel(_get_log_level(defaults.log_level))
        if defaults.keep_log_files:
            add_file_logging(LOGS_DIR, defaults.log_level)

        return cls(
            recorder=recorder,
            defaults=defaults,
            recordings_dir=RECORDINGS_DIR,
            logs_dir=LOGS_DIR,
            user_config_file=config_file,
        )

    def record_config(
        self,
        encoder: str | None = None,
        rate: int | None = None,
        channels: int | None = None,
        bit_rate: int | None = None,
        device: str | None = None,
    ) -> RecordConfig:
        """
        Build a RecordConfig from [defaults], with optional per-run overrides.

        Raises:
            ValueError: if `encoder` is not a known encoder name.
        """
        device_id = device or self.defaults.device
        return RecordConfig(
            encoder=AudioEncoder(encoder or self.defaults.encoder),
            bit_rate=bit_rate or self.defaults.bit_rate,
            sample_rate=rate or self.defaults.rate,
            num_channels=channels or self.defaults.channels,
            device=InputDevice(id=device_id, label=device_id) if device_id else None,
        )


__all__ = [
    "ROOT_DIR",
    "RECORDINGS_DIR",
    "LOGS_DIR",
    "USER_CONFIG_DIR",
    "USER_CONFIG_FILE",
    "setup_environment",
    "add_file_logging",
    "load_user_config",
    "init_user_config",
    "Config",
    "RecorderSettings",
    "DefaultsConfig",
]
