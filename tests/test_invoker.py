"""Tests for CommandInvoker, using the Python interpreter as the external binary."""

from __future__ import annotations

import shlex
import sys

import pytest

from fmrec.core import InputDevice
from fmrec.core.invoker import (
    CommandInvoker,
    RecorderProcessError,
    SpawnError,
    TargetNotFoundError,
    _split_lines,
)
from fmrec.core.parser import parse_input_devices


@pytest.fixture
def python() -> CommandInvoker:
    return CommandInvoker([sys.executable])


class TestCommandInvoker:
    async def test_stdout_lines_reach_sink(self, python: CommandInvoker) -> None:
        lines: list[str] = []
        result = await python.invoke(["-c", "print('a'); print('b')"], sink=lines.append)
        assert lines == ["a", "b"]
        assert result.stdout == ["a", "b"]
        assert result.returncode == 0

    async def test_stderr_is_drained_but_not_forwarded(self, python: CommandInvoker) -> None:
        lines: list[str] = []
        code = "import sys; sys.stderr.write('oops'); print('x')"
        result = await python.invoke(["-c", code], sink=lines.append)
        assert lines == ["x"]
        assert result.stderr == "oops"

    async def test_large_output_on_both_streams(self, python: CommandInvoker) -> None:
        code = (
            "import sys\n"
            "for i in range(5000):\n"
            "    sys.stderr.write('e' * 80 + '\\n')\n"
            "    sys.stdout.write(f'line {i}\\n')\n"
        )
        result = await python.invoke(["-c", code])
        assert len(result.stdout) == 5000
        assert result.stdout[-1] == "line 4999"
        assert result.stderr.count("\n") == 5000

    async def test_utf8_decoding(self, python: CommandInvoker) -> None:
        code = "import sys; sys.stdout.buffer.write('Micro \u00e9t\u00e9\\r\\n'.encode('utf-8'))"
        result = await python.invoke(["-c", code])
        assert result.stdout == ["Micro \u00e9t\u00e9"]

    async def test_line_longer_than_read_chunk(self, python: CommandInvoker) -> None:
        code = "print('Capture:'); print('x' * 70000); print('device #1: Mic')"
        lines: list[str] = []
        await python.invoke(["-c", code], sink=lines.append)
        assert [len(line) for line in lines] == [8, 70000, 14]
        assert parse_input_devices(lines) == [InputDevice(id="1", label="Mic")]

    async def test_carriage_return_ends_lines(self, python: CommandInvoker) -> None:
        code = (
            "import sys\n"
            "sys.stdout.buffer.write(b'Capture:\\rdevice #1: Mic\\rdevice #2: Head\\r')\n"
            "sys.stdout.buffer.write(b'a\\r\\nb\\r\\n\\nc')\n"
        )
        result = await python.invoke(["-c", code])
        assert result.stdout == [
            "Capture:",
            "device #1: Mic",
            "device #2: Head",
            "a",
            "b",
            "",
            "c",
        ]
        assert parse_input_devices(result.stdout) == [
            InputDevice(id="1", label="Mic"),
            InputDevice(id="2", label="Head"),
        ]

    async def test_failing_sink_still_reaps_process(self, python: CommandInvoker) -> None:
        def sink(line: str) -> None:
            raise RuntimeError(f"rejected {line}")

        handle = await python.spawn(["-c", "print('one'); print('two')"])
        with pytest.raises(RuntimeError, match="rejected one"):
            await handle.drain(sink)
        assert handle.returncode == 0

    async def test_on_started_fires_before_output(self, python: CommandInvoker) -> None:
        events: list[str] = []
        await python.invoke(
            ["-c", "print('out')"],
            on_started=lambda: events.append("started"),
            sink=events.append,
        )
        assert events == ["started", "out"]

    async def test_fire_and_forget_returns_after_spawn(self, python: CommandInvoker) -> None:
        started: list[bool] = []
        result = await python.invoke(
            ["-c", "import time; time.sleep(0.2); print('late')"],
            capture_stdout=False,
            on_started=lambda: started.append(True),
        )
        assert started == [True]
        assert result.returncode is None
        assert result.stdout == []
        assert result.handle is not None
        assert result.handle.returncode is None
        assert await result.handle.process.wait() == 0

    async def test_missing_binary_raises_spawn_error(self) -> None:
        invoker = CommandInvoker("/nonexistent/dir/fmedia-missing")
        started: list[bool] = []
        with pytest.raises(SpawnError):
            await invoker.invoke(["--list-dev"], on_started=lambda: started.append(True))
        assert started == []

    async def test_non_zero_exit_raises_process_error(self, python: CommandInvoker) -> None:
        code = "import sys; sys.stderr.write('bad things'); sys.exit(3)"
        with pytest.raises(RecorderProcessError) as excinfo:
            await python.invoke(["-c", code])
        assert excinfo.value.returncode == 3
        assert excinfo.value.stderr == "bad things"
        assert "bad things" in str(excinfo.value)

    async def test_not_found_with_target_expected(self, python: CommandInvoker) -> None:
        code = "import sys; sys.stderr.write('pipe: No such file or directory'); sys.exit(1)"
        with pytest.raises(TargetNotFoundError):
            await python.invoke(["-c", code], expects_target=True)

    async def test_not_found_without_target_is_process_error(
        self, python: CommandInvoker
    ) -> None:
        code = "import sys; sys.stderr.write('out.wav: No such file or directory'); sys.exit(1)"
        with pytest.raises(RecorderProcessError):
            await python.invoke(["-c", code])

    async def test_not_found_on_stdout_with_zero_exit(self, python: CommandInvoker) -> None:
        code = "print('error: No such file or directory')"
        with pytest.raises(TargetNotFoundError):
            await python.invoke(["-c", code], expects_target=True)

    async def test_custom_not_found_patterns(self) -> None:
        invoker = CommandInvoker([sys.executable], not_found_patterns=["no listener"])
        code = "import sys; sys.stderr.write('no listener on pipe'); sys.exit(1)"
        with pytest.raises(TargetNotFoundError):
            await invoker.invoke(["-c", code], expects_target=True)

        code = "import sys; sys.stderr.write('No such file or directory'); sys.exit(1)"
        with pytest.raises(RecorderProcessError):
            await invoker.invoke(["-c", code], expects_target=True)

    async def test_binary_string_is_shlex_split(self) -> None:
        binary = shlex.join([sys.executable, "-c", "import sys; print(' '.join(sys.argv[1:]))"])
        invoker = CommandInvoker(binary)
        result = await invoker.invoke(["--globcmd=stop", "two words"])
        assert result.stdout == ["--globcmd=stop two words"]
        assert result.invocation.args == ("--globcmd=stop", "two words")

    async def test_spawn_and_drain_phases(self, python: CommandInvoker) -> None:
        handle = await python.spawn(["-c", "print('one')"])
        assert handle.pid > 0
        assert handle.invocation.argv == [sys.executable, "-c", "print('one')"]
        result = await handle.drain()
        assert result.stdout == ["one"]
        assert result.returncode == 0
        assert result.handle is handle

    def test_empty_binary_rejected(self) -> None:
        with pytest.raises(ValueError):
            CommandInvoker("")
        with pytest.raises(ValueError):
            CommandInvoker([])


@pytest.mark.parametrize(
    ("text", "lines", "rest"),
    [
        ("a\nb", ["a"], "b"),
        ("a\r", [], "a\r"),
        ("a\r\nb\rc\r", ["a", "b"], "c\r"),
        ("\n\n", ["", ""], ""),
        ("", [], ""),
    ],
)
def test_split_lines_keeps_partial_tail(text: str, lines: list[str], rest: str) -> None:
    assert _split_lines(text) == (lines, rest)


def test_split_lines_rejoins_crlf_across_chunks() -> None:
    lines, rest = _split_lines("one\r")
    assert lines == []
    lines, rest = _split_lines(rest + "\ntwo\n")
    assert (lines, rest) == (["one", "two"], "")
