"""
fmedia recorder backend for fmrec.

Drives the `fmedia` command-line tool as a background recorder:
- start launches `fmedia --record ... --globcmd=listen` and does not wait for it
- pause/resume/stop reach that instance through `--globcmd=<command>`,
  addressed by a pipe name derived from the recorder id
- list_input_devices parses `fmedia --list-dev`

Each recorder id owns one RecorderHandle (pipe name, session state, process),
kept in an explicit mapping on the FMediaRecorder instance.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from fmrec.core import Amplitude, AudioEncoder, InputDevice, RecordConfig, RecordState
from fmrec.core.config import Config, RecorderSettings
from fmrec.core.invoker import CommandInvoker, ProcessHandle, TargetNotFoundError
from fmrec.core.parser import parse_input_devices
from fmrec.core.state import SessionState, StateSubscription
from fmrec.core.storage import delete_if_exists, unique_component

from .base import UnsupportedChannelLayoutError, UnsupportedEncoderError

__all__ = [
    "SUPPORTED_ENCODERS",
    "CHANNEL_LAYOUTS",
    "RecorderHandle",
    "FMediaRecorder",
    "encoder_flags",
    "channel_layout",
]

SUPPORTED_ENCODERS: Final[frozenset[AudioEncoder]] = frozenset(
    {
        AudioEncoder.AAC_LC,
        AudioEncoder.AAC_HE,
        AudioEncoder.FLAC,
        AudioEncoder.OPUS,
        AudioEncoder.WAV,
    }
)

CHANNEL_LAYOUTS: Final[dict[int, str]] = {1: "mono", 2: "stereo"}


def encoder_flags(encoder: AudioEncoder, bit_rate: int) -> list[str]:
    """
    Return the fmedia flags selecting `encoder`.

    Raises:
        UnsupportedEncoderError: if fmedia cannot produce `encoder`.
    """
    kbps = bit_rate // 1000
    if encoder is AudioEncoder.AAC_LC:
        return ["--aac-profile=LC", f"--aac-quality={kbps}"]
    if encoder is AudioEncoder.AAC_HE:
        return ["--aac-profile=HE", f"--aac-quality={kbps}"]
    if encoder is AudioEncoder.FLAC:
        return ["--flac-compression=6", "--format=int16"]
    if encoder is AudioEncoder.OPUS:
        return [f"--opus.bitrate={kbps}"]
    if encoder is AudioEncoder.WAV:
        return ["--format=int16"]
    raise UnsupportedEncoderError(encoder)


def channel_layout(num_channels: int) -> str:
    """
    Map a channel count to fmedia's --channels value.

    Raises:
        UnsupportedChannelLayoutError: for counts other than 1 or 2.
    """
    try:
        return CHANNEL_LAYOUTS[num_channels]
    except KeyError:
        raise UnsupportedChannelLayoutError(num_channels) from None


@dataclass
class RecorderHandle:
    """Everything fmrec knows about one recorder id."""

    recorder_id: str
    pipe_name: str
    session: SessionState
    # Launched recording process; never waited on
    process: ProcessHandle | None = None


class FMediaRecorder:
    """
    Recorder backend driving fmedia.

    Args:
        invoker: Runs the fmedia binary.
        pipe_prefix: Prefix of the per-session pipe names.
    """

    name = "fmedia"

    def __init__(
        self, invoker: CommandInvoker | None = None, pipe_prefix: str = "fmrec"
    ) -> None:
        self.invoker = invoker or CommandInvoker("fmedia")
        self.pipe_prefix = pipe_prefix
        self._handles: dict[str, RecorderHandle] = {}

    @classmethod
    def from_config(cls, cfg: Config | None = None) -> FMediaRecorder:
        settings = cfg.recorder if cfg is not None else RecorderSettings()
        invoker = CommandInvoker(settings.binary, settings.not_found_patterns)
        return cls(invoker=invoker, pipe_prefix=settings.pipe_prefix)

    # --- Sessions ---

    def pipe_name(self, recorder_id: str) -> str:
        return f"{self.pipe_prefix}_{unique_component(recorder_id)}"

    def _handle(self, recorder_id: str) -> RecorderHandle:
        handle = self._handles.get(recorder_id)
        if handle is None:
            handle = RecorderHandle(
                recorder_id=recorder_id,
                pipe_name=self.pipe_name(recorder_id),
                session=SessionState(recorder_id),
            )
            self._handles[recorder_id] = handle
        return handle

    async def create(self, recorder_id: str) -> None:
        self._handle(recorder_id)

    async def dispose(self, recorder_id: str) -> None:
        """Close all state subscriptions, stop any recording and forget the session."""
        handle = self._handle(recorder_id)
        handle.session.close()
        await self.stop(recorder_id)
        self._handles.pop(recorder_id, None)

    def get_state(self, recorder_id: str) -> RecordState:
        return self._handle(recorder_id).session.state

    def on_state_changed(self, recorder_id: str) -> StateSubscription:
        """
        Subscribe to future state transitions of `recorder_id`.

        The subscription does not replay the current state. Close it when done.
        """
        return self._handle(recorder_id).session.subscribe()

    # --- Queries ---

    async def is_recording(self, recorder_id: str) -> bool:
        return self.get_state(recorder_id) == RecordState.RECORD

    async def is_paused(self, recorder_id: str) -> bool:
        return self.get_state(recorder_id) == RecordState.PAUSE

    async def has_permission(self, recorder_id: str) -> bool:
        return True

    async def get_amplitude(self, recorder_id: str) -> Amplitude:
        # fmedia does not report input levels to other processes
        return Amplitude()

    async def is_encoder_supported(self, recorder_id: str, encoder: AudioEncoder) -> bool:
        return encoder in SUPPORTED_ENCODERS

    async def list_input_devices(self, recorder_id: str) -> list[InputDevice]:
        """
        Run `fmedia --list-dev` and return the capture devices it reports.

        Never cached: every call launches a new process.
        """
        lines: list[str] = []
        await self.invoker.invoke(["--list-dev"], capture_stdout=True, sink=lines.append)
        devices = parse_input_devices(lines)
        logging.debug("Found %d capture device(s)", len(devices))
        return devices

    # --- Recording ---

    def _record_args(
        self, handle: RecorderHandle, config: RecordConfig, path: str, layout: str
    ) -> list[str]:
        args = [
            "--notui",
            "--background",
            "--record",
            f"--out={path}",
            f"--rate={config.sample_rate}",
            f"--channels={layout}",
            "--globcmd=listen",
            f"--globcmd.pipe-name={handle.pipe_name}",
        ]
        if config.device is not None:
            args.append(f"--dev-capture={config.device.id}")
        args.extend(encoder_flags(config.encoder, config.bit_rate))
        return args

    async def _send(self, handle: RecorderHandle, command: str) -> None:
        """Send a --globcmd control command to the instance listening on the session pipe."""
        args: Sequence[str] = [
            f"--globcmd.pipe-name={handle.pipe_name}",
            f"--globcmd={command}",
        ]
        await self.invoker.invoke(args, capture_stdout=True, expects_target=True)

    async def start(self, recorder_id: str, config: RecordConfig, path: str) -> None:
        """
        Start recording `recorder_id` into `path`.

        Validates the config, stops any previous recording of this id, deletes
        an existing file at `path`, then launches fmedia in the background.
        The session enters RECORD as soon as the process is spawned.
        """
        if not await self.is_encoder_supported(recorder_id, config.encoder):
            raise UnsupportedEncoderError(config.encoder)
        layout = channel_layout(config.num_channels)

        handle = self._handle(recorder_id)
        await self.stop(recorder_id)
        path = str(path)
        delete_if_exists(path)

        args = self._record_args(handle, config, path, layout)
        result = await self.invoker.invoke(
            args,
            capture_stdout=False,
            on_started=lambda: handle.session.begin(path),
        )
        handle.process = result.handle
        logging.info("Recording %s to %s", recorder_id, path)

    async def pause(self, recorder_id: str) -> None:
        handle = self._handle(recorder_id)
        if handle.session.state != RecordState.RECORD:
            return
        await self._send(handle, "pause")
        handle.session.set_state(RecordState.PAUSE)

    async def resume(self, recorder_id: str) -> None:
        handle = self._handle(recorder_id)
        if handle.session.state != RecordState.PAUSE:
            return
        await self._send(handle, "unpause")
        handle.session.set_state(RecordState.RECORD)

    async def stop(self, recorder_id: str) -> str | None:
        """
        Stop the recording of `recorder_id` and shut its fmedia instance down.

        Returns:
            The output path of the stopped recording, or None when no
            instance was listening on the session pipe.
        """
        handle = self._handle(recorder_id)
        try:
            await self._send(handle, "stop")
        except TargetNotFoundError:
            logging.debug("Recorder %s: nothing to stop", recorder_id)
            handle.session.end()
            handle.process = None
            return None
        try:
            await self._send(handle, "quit")
        except TargetNotFoundError:
            # Instance already exited after stopping
            logging.debug("Recorder %s: instance gone before quit", recorder_id)

        path = handle.session.end()
        handle.process = None
        return path

    async def cancel(self, recorder_id: str) -> None:
        """Stop recording and delete the output file."""
        path = await self.stop(recorder_id)
        if path is not None:
            delete_if_exists(path)
