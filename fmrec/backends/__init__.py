"""
Recorder backends for fmrec.

Each backend is registered as a BackendInfo: a factory that builds a
Recorder from the user Config, plus what the backend can record
(its encoder capability table). The CLI picks the backend named by
`[recorder] backend` in config.toml through recorder_from_config().

fmedia is registered when this package is imported.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from fmrec.core import AudioEncoder
from fmrec.core.config import Config

from .base import (
    Recorder,
    RecorderError,
    RecorderProcessError,
    SpawnError,
    TargetNotFoundError,
    UnsupportedChannelLayoutError,
    UnsupportedEncoderError,
)
from .fmedia import SUPPORTED_ENCODERS, FMediaRecorder

__all__ = [
    "Recorder",
    "RecorderError",
    "RecorderProcessError",
    "SpawnError",
    "TargetNotFoundError",
    "UnsupportedChannelLayoutError",
    "UnsupportedEncoderError",
    "BackendInfo",
    "register_recorder",
    "backend_info",
    "get_recorder",
    "recorder_from_config",
    "available_recorders",
]

RecorderFactory = Callable[[Config | None], Recorder]


@dataclass(frozen=True)
class BackendInfo:
    """A registered recorder backend."""

    name: str
    factory: RecorderFactory
    description: str = ""
    encoders: frozenset[AudioEncoder] = frozenset()

    def supports(self, encoder: AudioEncoder) -> bool:
        return encoder in self.encoders


_registry: dict[str, BackendInfo] = {}


def _key(name: str) -> str:
    return name.strip().lower()


def register_recorder(
    name: str,
    factory: RecorderFactory,
    description: str = "",
    encoders: Iterable[AudioEncoder] = (),
) -> BackendInfo:
    """
    Register (or replace) the backend `name`.

    Raises:
        ValueError: if `name` is blank.
    """
    key = _key(name)
    if not key:
        raise ValueError("Recorder name cannot be empty.")
    info = BackendInfo(key, factory, description, frozenset(encoders))
    _registry[key] = info
    return info


def backend_info(name: str) -> BackendInfo:
    """
    Raises:
        KeyError: naming the registered backends when `name` is unknown.
    """
    try:
        return _registry[_key(name)]
    except KeyError:
        known = ", ".join(sorted(_registry)) or "none registered"
        raise KeyError(f"No recorder backend '{name}' (known: {known})") from None


def get_recorder(name: str, cfg: Config | None = None) -> Recorder:
    """
    Build the recorder registered as `name`.

    Raises:
        KeyError: if `name` is not registered.
        TypeError: if the factory returns something that is not a Recorder.
    """
    info = backend_info(name)
    recorder = info.factory(cfg)
    if not isinstance(recorder, Recorder):
        raise TypeError(
            f"Backend '{info.name}' built a {type(recorder).__name__}, which is not a Recorder"
        )
    return recorder


def recorder_from_config(cfg: Config) -> Recorder:
    """Build the backend selected by `[recorder] backend`."""
    return get_recorder(cfg.recorder.backend, cfg)


def available_recorders() -> list[BackendInfo]:
    """Registered backends, sorted by name."""
    return [_registry[key] for key in sorted(_registry)]


register_recorder(
    FMediaRecorder.name,
    FMediaRecorder.from_config,
    description="fmedia command-line recorder, controlled through --globcmd pipes",
    encoders=SUPPORTED_ENCODERS,
)
