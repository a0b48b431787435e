"""
Output parsing for the recorder binary.

Two pure functions over text produced by the recorder:
- parse_input_devices: extract capture devices from `--list-dev` output
- classify_error_output: recognize the "no running instance" condition in
  the output of a control command

Neither function raises on malformed input: unknown lines are skipped and
unrecognized error text is reported as ErrorKind.UNKNOWN.

Listing format (UTF-8, one record per line):

    Playback/Loopback:
    device #1: Speakers - Default
    Capture:
    device #1: Built-in Microphone - Default
      Default Format: 2 channel, 48000 Hz
    device #2: USB Headset
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Final

from fmrec.core import InputDevice

__all__ = [
    "CAPTURE_HEADER",
    "DEFAULT_MARKER",
    "DEFAULT_NOT_FOUND_PATTERNS",
    "ErrorKind",
    "parse_input_devices",
    "classify_error_output",
]

CAPTURE_HEADER: Final[str] = "Capture:"
DEFAULT_MARKER: Final[str] = " - Default"

# Printed by the recorder when a --globcmd addresses a pipe nobody listens on.
# Linux wording first, then the Windows named-pipe wording.
DEFAULT_NOT_FOUND_PATTERNS: Final[tuple[str, ...]] = (
    "No such file or directory",
    "The system cannot find the file specified",
)

_DEVICE_RE: Final[re.Pattern[str]] = re.compile(r"^device #(\d+): (.+)$")
_DETAIL_RE: Final[re.Pattern[str]] = re.compile(r"^Default Format:")
# Any other top-level section, e.g. "Playback:" or "Playback/Loopback:"
_SECTION_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z][A-Za-z /]*:$")


class ErrorKind(Enum):
    """Classification of a control command's output."""

    NONE = "none"
    TARGET_NOT_FOUND = "target_not_found"
    UNKNOWN = "unknown"


@dataclass
class _DeviceEntry:
    id: str
    label: str
    details: list[str] = field(default_factory=list)

    def to_device(self) -> InputDevice:
        return InputDevice(id=self.id, label=self.label)


def _normalize_label(label: str) -> str:
    label = label.strip()
    if label.endswith(DEFAULT_MARKER):
        label = label[: -len(DEFAULT_MARKER)].rstrip()
    return label


def parse_input_devices(lines: Iterable[str]) -> list[InputDevice]:
    """
    Parse `--list-dev` output lines into capture devices, in listing order.

    Lines before the `Capture:` header are ignored. After it, each
    `device #<N>: <label>` line opens a new device; `Default Format:` lines
    belong to the current device. Another section header closes the
    capture section. Lines matching nothing are skipped.

    Args:
        lines: Decoded output lines, with or without line terminators.

    Returns:
        The devices found; empty if the header or device lines are missing.
    """
    devices: list[InputDevice] = []
    in_capture = False
    current: _DeviceEntry | None = None

    for raw in lines:
        line = raw.strip()
        if not in_capture:
            if line == CAPTURE_HEADER:
                in_capture = True
            continue

        match = _DEVICE_RE.match(line)
        if match:
            if current is not None:
                devices.append(current.to_device())
            label = _normalize_label(match.group(2))
            current = _DeviceEntry(id=match.group(1), label=label) if label else None
            continue

        if _DETAIL_RE.match(line):
            if current is not None:
                current.details.append(line)
            continue

        if _SECTION_RE.match(line):
            break

    if current is not None:
        devices.append(current.to_device())
    return devices


def classify_error_output(
    text: str | None,
    patterns: Iterable[str] = DEFAULT_NOT_FOUND_PATTERNS,
) -> ErrorKind:
    """
    Classify the combined stdout/stderr text of a control command.

    Args:
        text: Output to inspect. Empty or None means nothing was reported.
        patterns: Substrings that mark a "no such target" condition.

    Returns:
        ErrorKind.TARGET_NOT_FOUND when any pattern occurs in `text`,
        ErrorKind.NONE for empty output, ErrorKind.UNKNOWN otherwise.
    """
    if not text or not text.strip():
        return ErrorKind.NONE
    for pattern in patterns:
        if pattern and pattern in text:
            return ErrorKind.TARGET_NOT_FOUND
    return ErrorKind.UNKNOWN
