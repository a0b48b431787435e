"""
Base recorder backend interface for fmrec.

This module defines:
- Recorder: a Protocol describing the operations a recorder backend offers
- RecorderError and the validation errors raised before anything is spawned
- Re-exports of the process-level errors raised by the command invoker

All concrete backends should implement the `Recorder` protocol.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fmrec.core import Amplitude, AudioEncoder, InputDevice, RecordConfig, RecordState
from fmrec.core.invoker import (
    InvokerError,
    RecorderProcessError,
    SpawnError,
    TargetNotFoundError,
)
from fmrec.core.state import StateSubscription

__all__ = [
    "Recorder",
    "RecorderError",
    "UnsupportedEncoderError",
    "UnsupportedChannelLayoutError",
    "InvokerError",
    "SpawnError",
    "TargetNotFoundError",
    "RecorderProcessError",
]


class RecorderError(RuntimeError):
    """
    Generic recorder exception for failures detected by the backend itself.
    """


class UnsupportedEncoderError(RecorderError, ValueError):
    """Raised by start() when the requested encoder is not supported."""

    def __init__(self, encoder: AudioEncoder) -> None:
        self.encoder = encoder
        super().__init__(f"{encoder.value} is not supported.")


class UnsupportedChannelLayoutError(RecorderError, ValueError):
    """Raised by start() when the channel count has no known layout."""

    def __init__(self, num_channels: int) -> None:
        self.num_channels = num_channels
        super().__init__(f"{num_channels} channels are not supported.")


@runtime_checkable
class Recorder(Protocol):
    """
    Recorder backend interface.

    Every operation takes an opaque `recorder_id`; each id is an independent
    session. Callers must await one state-changing call (start, pause,
    resume, stop, cancel) before issuing the next one for the same id.

    Required attributes:
        name: A short, lowercase, unique identifier for the backend (e.g. "fmedia").
    """

    name: str

    async def create(self, recorder_id: str) -> None: ...

    async def dispose(self, recorder_id: str) -> None: ...

    async def start(self, recorder_id: str, config: RecordConfig, path: str) -> None:
        """
        Start recording to `path`, stopping any previous recording of this id first.

        Raises:
            UnsupportedEncoderError: if config.encoder is not supported.
            UnsupportedChannelLayoutError: if config.num_channels has no layout.
            SpawnError: if the recorder cannot be launched.
        """
        ...

    async def pause(self, recorder_id: str) -> None: ...

    async def resume(self, recorder_id: str) -> None: ...

    async def stop(self, recorder_id: str) -> str | None:
        """
        Stop recording.

        Returns:
            The output path of the stopped recording, or None if nothing was recording.
        """
        ...

    async def cancel(self, recorder_id: str) -> None: ...

    async def is_recording(self, recorder_id: str) -> bool: ...

    async def is_paused(self, recorder_id: str) -> bool: ...

    async def has_permission(self, recorder_id: str) -> bool: ...

    async def get_amplitude(self, recorder_id: str) -> Amplitude: ...

    async def is_encoder_supported(self, recorder_id: str, encoder: AudioEncoder) -> bool: ...

    async def list_input_devices(self, recorder_id: str) -> list[InputDevice]: ...

    def get_state(self, recorder_id: str) -> RecordState: ...

    def on_state_changed(self, recorder_id: str) -> StateSubscription: ...
