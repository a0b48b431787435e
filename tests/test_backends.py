"""Tests for the recorder backend registry."""

from __future__ import annotations

import pytest

from fmrec import backends
from fmrec.backends import (
    Recorder,
    available_recorders,
    backend_info,
    get_recorder,
    recorder_from_config,
    register_recorder,
)
from fmrec.backends.fmedia import SUPPORTED_ENCODERS, FMediaRecorder
from fmrec.core import AudioEncoder
from fmrec.core.config import Config, RecorderSettings


@pytest.fixture(autouse=True)
def _isolated_registry(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(backends, "_registry", dict(backends._registry))


def test_fmedia_is_registered() -> None:
    info = backend_info("FMedia ")
    assert info.name == "fmedia"
    assert info.encoders == SUPPORTED_ENCODERS
    assert info.supports(AudioEncoder.OPUS)
    assert not info.supports(AudioEncoder.AMR_NB)

    recorder = get_recorder("fmedia")
    assert isinstance(recorder, FMediaRecorder)
    assert isinstance(recorder, Recorder)
    assert recorder.invoker.binary == ("fmedia",)


async def test_capability_table_matches_backend() -> None:
    info = backend_info("fmedia")
    recorder = get_recorder("fmedia")
    for encoder in AudioEncoder:
        assert info.supports(encoder) == await recorder.is_encoder_supported("r1", encoder)


def test_recorder_from_config() -> None:
    cfg = Config(
        recorder=RecorderSettings(
            binary="/usr/local/bin/fmedia --debug",
            pipe_prefix="app",
            not_found_patterns=["gone"],
        )
    )
    recorder = recorder_from_config(cfg)
    assert recorder.invoker.binary == ("/usr/local/bin/fmedia", "--debug")
    assert recorder.invoker.not_found_patterns == ("gone",)
    assert recorder.pipe_name("x") == "app_x"


def test_config_selects_backend() -> None:
    instance = FMediaRecorder(pipe_prefix="custom")
    register_recorder("Custom", lambda cfg: instance, description="test backend")
    cfg = Config(recorder=RecorderSettings(backend="custom"))
    assert recorder_from_config(cfg) is instance
    assert [info.name for info in available_recorders()] == ["custom", "fmedia"]


def test_unknown_backend_lists_known() -> None:
    with pytest.raises(KeyError, match="fmedia"):
        get_recorder("arecord")
    cfg = Config(recorder=RecorderSettings(backend="arecord"))
    with pytest.raises(KeyError):
        recorder_from_config(cfg)


def test_factory_must_build_a_recorder() -> None:
    register_recorder("broken", lambda cfg: object())  # type: ignore[arg-type,return-value]
    with pytest.raises(TypeError, match="not a Recorder"):
        get_recorder("broken")


def test_register_rejects_empty_name() -> None:
    with pytest.raises(ValueError):
        register_recorder("  ", FMediaRecorder.from_config)
