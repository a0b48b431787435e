"""
Command invoker for the external recorder binary.

Launching a command is split in two phases:
- spawn(): start the process and return a ProcessHandle (fails fast)
- ProcessHandle.drain(): read stdout line by line and stderr in full,
  concurrently, until both streams close and the process exits

invoke() chains both phases, fires an optional `on_started` callback between
them, and skips the drain entirely for fire-and-forget commands such as a
long-running recording.

Usage:
    from fmrec.core.invoker import CommandInvoker

    invoker = CommandInvoker("fmedia")
    result = await invoker.invoke(["--list-dev"], sink=print)
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import shlex
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from fmrec.core.parser import DEFAULT_NOT_FOUND_PATTERNS, ErrorKind, classify_error_output

__all__ = [
    "InvokerError",
    "SpawnError",
    "TargetNotFoundError",
    "RecorderProcessError",
    "CommandInvocation",
    "InvocationResult",
    "ProcessHandle",
    "CommandInvoker",
]

LineSink = Callable[[str], None]


class InvokerError(RuntimeError):
    """Base class for failures running the recorder binary."""


class SpawnError(InvokerError):
    """Raised when the recorder binary cannot be started (missing, not executable)."""


class TargetNotFoundError(InvokerError):
    """Raised when a control command addresses a recorder instance that is not running."""


class RecorderProcessError(InvokerError):
    """Raised when the recorder exits with a non-zero code for an unrecognized reason."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no error output"
        super().__init__(f"{argv[0]} exited with code {returncode}: {detail}")


@dataclass(frozen=True)
class CommandInvocation:
    """One run of the recorder binary. Not persisted."""

    binary: tuple[str, ...]
    args: tuple[str, ...]
    capture_stdout: bool = True

    @property
    def argv(self) -> list[str]:
        return [*self.binary, *self.args]


@dataclass
class InvocationResult:
    """Outcome of a drained (or fire-and-forget) invocation."""

    invocation: CommandInvocation
    # None when the process was not waited on
    returncode: int | None = None
    stdout: list[str] = field(default_factory=list)
    stderr: str = ""
    # Process that produced this result
    handle: ProcessHandle | None = None

    @property
    def output(self) -> str:
        """Combined stdout and stderr text, for error classification."""
        return "\n".join([*self.stdout, self.stderr])


# Bytes per stdout read; lines may be longer than one chunk
_READ_CHUNK = 64 * 1024


def _split_lines(text: str) -> tuple[list[str], str]:
    """
    Split `text` into complete lines (terminators removed) and the unterminated rest.

    "\n", "\r\n" and a bare "\r" all end a line. A trailing "\r" is kept in the
    rest because the "\n" of a "\r\n" pair may arrive with the next chunk.
    """
    pieces = text.splitlines(keepends=True)
    rest = ""
    if pieces and (pieces[-1].endswith("\r") or pieces[-1].splitlines() == [pieces[-1]]):
        rest = pieces.pop()
    return [(piece.splitlines() or [""])[0] for piece in pieces], rest


class ProcessHandle:
    """
    A spawned recorder process.

    Created by CommandInvoker.spawn(). When the invocation captures output,
    drain() must be awaited to consume the pipes; otherwise both streams are
    redirected to the null device and the handle only serves to track the
    process.
    """

    def __init__(self, invocation: CommandInvocation, process: asyncio.subprocess.Process):
        self.invocation = invocation
        self.process = process

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    async def drain(self, sink: LineSink | None = None) -> InvocationResult:
        """
        Read stdout line by line into `sink` and stderr in full, concurrently,
        then wait for the process to exit.

        Returns:
            InvocationResult with the exit code, stdout lines and stderr text.
        """
        result = InvocationResult(invocation=self.invocation, handle=self)
        if not self.invocation.capture_stdout:
            return result

        def _emit(lines: list[str]) -> None:
            for line in lines:
                result.stdout.append(line)
                if sink is not None:
                    sink(line)

        async def _read_stdout() -> None:
            assert self.process.stdout is not None
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            pending = ""
            while chunk := await self.process.stdout.read(_READ_CHUNK):
                lines, pending = _split_lines(pending + decoder.decode(chunk))
                _emit(lines)
            _emit((pending + decoder.decode(b"", final=True)).splitlines())

        async def _read_stderr() -> None:
            assert self.process.stderr is not None
            data = await self.process.stderr.read()
            result.stderr = data.decode("utf-8", errors="replace")

        readers = [asyncio.create_task(_read_stdout()), asyncio.create_task(_read_stderr())]
        try:
            await asyncio.gather(*readers)
        finally:
            # Stop the other reader if one failed
            for task in readers:
                task.cancel()
            result.returncode = await self.process.wait()
        return result


class CommandInvoker:
    """
    Runs the recorder binary with argument vectors.

    Args:
        binary: Command used to launch the recorder. A string is split with
            shlex, so it may carry extra leading arguments.
        not_found_patterns: Output substrings meaning "no such target"; see
            fmrec.core.parser.classify_error_output.
    """

    def __init__(
        self,
        binary: str | Sequence[str] = "fmedia",
        not_found_patterns: Iterable[str] = DEFAULT_NOT_FOUND_PATTERNS,
    ) -> None:
        argv = shlex.split(binary) if isinstance(binary, str) else list(binary)
        if not argv:
            raise ValueError("Recorder binary cannot be empty.")
        self.binary: tuple[str, ...] = tuple(argv)
        self.not_found_patterns: tuple[str, ...] = tuple(not_found_patterns)

    async def spawn(self, args: Sequence[str], capture_stdout: bool = True) -> ProcessHandle:
        """
        Start the recorder with `args` and return its handle.

        Raises:
            SpawnError: if the binary is missing or cannot be executed.
        """
        invocation = CommandInvocation(
            binary=self.binary, args=tuple(args), capture_stdout=capture_stdout
        )
        pipe = asyncio.subprocess.PIPE if capture_stdout else asyncio.subprocess.DEVNULL
        logging.debug("Running recorder: %s", shlex.join(invocation.argv))
        try:
            process = await asyncio.create_subprocess_exec(
                *invocation.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=pipe,
                stderr=pipe,
            )
        except OSError as e:
            raise SpawnError(f"Cannot start recorder '{self.binary[0]}': {e}") from e
        return ProcessHandle(invocation, process)

    async def invoke(
        self,
        args: Sequence[str],
        capture_stdout: bool = True,
        on_started: Callable[[], None] | None = None,
        sink: LineSink | None = None,
        expects_target: bool = False,
    ) -> InvocationResult:
        """
        Run the recorder once.

        Args:
            args: Arguments passed after the binary.
            capture_stdout: When False, return as soon as the process is
                spawned and never read its output (long-running recordings).
            on_started: Called synchronously right after the spawn succeeds.
            sink: Receives each decoded stdout line.
            expects_target: The command addresses a running instance, so a
                "not found" message in its output means nothing is running.

        Returns:
            InvocationResult; `returncode` is None when not captured.

        Raises:
            SpawnError: if the binary cannot be started.
            TargetNotFoundError: if `expects_target` and the output says no
                instance answered.
            RecorderProcessError: on any other non-zero exit.
        """
        handle = await self.spawn(args, capture_stdout=capture_stdout)
        if on_started is not None:
            on_started()
        if not capture_stdout:
            return InvocationResult(invocation=handle.invocation, handle=handle)

        result = await handle.drain(sink)
        if expects_target:
            kind = classify_error_output(result.output, self.not_found_patterns)
            if kind is ErrorKind.TARGET_NOT_FOUND:
                raise TargetNotFoundError(
                    f"No running recorder answered: {shlex.join(handle.invocation.args)}"
                )
        if result.returncode:
            raise RecorderProcessError(handle.invocation.argv, result.returncode, result.stderr)
        return result
