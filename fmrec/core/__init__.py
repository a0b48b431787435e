"""
Core package for recorder process orchestration, output parsing and session state.

This module holds the shared types and constants that the other modules
(invoker, parser, state, config, storage) and the recorder backends import.

Submodules:
- invoker.py: spawn the recorder binary, drain its output, classify failures
- parser.py: device listing parser and error-output classifier (pure functions)
- state.py: per-session state machine and broadcast of state transitions
- config.py: user configuration, defaults, validation and logging setup
- storage.py: output paths, file existence/deletion helpers
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Defaults and shared constants
DEFAULT_SAMPLE_RATE: int = 44100
DEFAULT_CHANNELS: int = 2
DEFAULT_BIT_RATE: int = 128000
# dBFS reported when no level meter is available
SILENCE_DB: float = -160.0


class RecordState(str, Enum):
    """State of a recording session."""

    STOP = "stop"
    RECORD = "record"
    PAUSE = "pause"


class AudioEncoder(str, Enum):
    """Audio encoders a caller may request. Backends support a subset."""

    AAC_LC = "aacLc"
    AAC_ELD = "aacEld"
    AAC_HE = "aacHe"
    AMR_NB = "amrNb"
    AMR_WB = "amrWb"
    OPUS = "opus"
    FLAC = "flac"
    WAV = "wav"
    PCM16BITS = "pcm16bits"


# File extension conventionally used for each encoder's output
ENCODER_EXTENSIONS: dict[AudioEncoder, str] = {
    AudioEncoder.AAC_LC: "m4a",
    AudioEncoder.AAC_ELD: "m4a",
    AudioEncoder.AAC_HE: "m4a",
    AudioEncoder.AMR_NB: "3gp",
    AudioEncoder.AMR_WB: "3gp",
    AudioEncoder.OPUS: "opus",
    AudioEncoder.FLAC: "flac",
    AudioEncoder.WAV: "wav",
    AudioEncoder.PCM16BITS: "pcm",
}


@dataclass(frozen=True, slots=True)
class InputDevice:
    """A capture device as reported by the recorder binary."""

    id: str
    label: str


@dataclass(frozen=True, slots=True)
class Amplitude:
    """Current and max input level, in dBFS."""

    current: float = SILENCE_DB
    max: float = SILENCE_DB


@dataclass(slots=True)
class RecordConfig:
    """Parameters for a single recording."""

    encoder: AudioEncoder = AudioEncoder.AAC_LC
    # Bits per second; only used by lossy encoders
    bit_rate: int = DEFAULT_BIT_RATE
    sample_rate: int = DEFAULT_SAMPLE_RATE
    num_channels: int = DEFAULT_CHANNELS
    # None records from the system default capture device
    device: InputDevice | None = None


__all__ = [
    "DEFAULT_SAMPLE_RATE",
    "DEFAULT_CHANNELS",
    "DEFAULT_BIT_RATE",
    "SILENCE_DB",
    "ENCODER_EXTENSIONS",
    "RecordState",
    "AudioEncoder",
    "InputDevice",
    "Amplitude",
    "RecordConfig",
]
