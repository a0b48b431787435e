"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
import shlex
import sys
from collections.abc import Callable, Coroutine, Sequence
from pathlib import Path
from typing import Any

import pytest

from fmrec.backends.fmedia import FMediaRecorder
from fmrec.core.invoker import CommandInvocation, InvocationResult

FAKE_FMEDIA = Path(__file__).parent / "fake_fmedia.py"


class FakeInvoker:
    """Records invocations instead of running fmedia.

    `errors` maps an argument (e.g. ``"--globcmd=stop"``) to the exception
    raised when a call contains it. `listing` is fed to the sink of captured
    calls.
    """

    def __init__(self, listing: Sequence[str] = ()) -> None:
        self.binary = ("fmedia",)
        self.listing = list(listing)
        self.errors: dict[str, Exception] = {}
        self.calls: list[CommandInvocation] = []

    async def invoke(
        self,
        args: Sequence[str],
        capture_stdout: bool = True,
        on_started: Callable[[], None] | None = None,
        sink: Callable[[str], None] | None = None,
        expects_target: bool = False,
    ) -> InvocationResult:
        invocation = CommandInvocation(self.binary, tuple(args), capture_stdout)
        self.calls.append(invocation)
        for arg in args:
            if arg in self.errors:
                raise self.errors[arg]
        if on_started is not None:
            on_started()
        if not capture_stdout:
            return InvocationResult(invocation=invocation)
        if sink is not None:
            for line in self.listing:
                sink(line)
        return InvocationResult(invocation=invocation, returncode=0, stdout=list(self.listing))

    def globcmds(self) -> list[str]:
        """The --globcmd values sent so far, in order ('record' for launches)."""
        sent: list[str] = []
        for call in self.calls:
            if "--record" in call.args:
                sent.append("record")
                continue
            for arg in call.args:
                if arg.startswith("--globcmd="):
                    sent.append(arg.split("=", 1)[1])
        return sent


@pytest.fixture
def fake_invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def recorder(fake_invoker: FakeInvoker) -> FMediaRecorder:
    return FMediaRecorder(invoker=fake_invoker)  # type: ignore[arg-type]


@pytest.fixture
def fake_fmedia(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Command line running tests/fake_fmedia.py, with its state dir set up."""
    state_dir = tmp_path / "fmedia-state"
    state_dir.mkdir()
    monkeypatch.setenv("FAKE_FMEDIA_DIR", str(state_dir))
    return shlex.join([sys.executable, str(FAKE_FMEDIA)])


@pytest.fixture
def wait_for_file() -> Callable[[Path], Coroutine[Any, Any, None]]:
    """Poll until a path exists; background recorder launches are not awaited."""

    async def _wait(path: Path, timeout: float = 10.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not path.exists():
            if loop.time() > deadline:
                raise AssertionError(f"{path} was not created within {timeout}s")
            await asyncio.sleep(0.02)

    return _wait
