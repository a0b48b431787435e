from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

import fmrec.core.config as config
from fmrec.backends import Recorder, available_recorders, recorder_from_config
from fmrec.core import ENCODER_EXTENSIONS, AudioEncoder, RecordState
from fmrec.core.config import Config
from fmrec.core.storage import file_exists, recording_path

app = typer.Typer(help="fmrec CLI: record audio in the background with fmedia.")
console = Console()

# Config subcommands (open/show/init user configuration)
config_app = typer.Typer(help="Config utilities (open/show/init user configuration)")
app.add_typer(config_app, name="config")

# Session id used by the CLI; one interactive recording at a time
CLI_RECORDER_ID = "cli"

_STATE_STYLES = {
    RecordState.RECORD: "[bold red]● recording[/bold red]",
    RecordState.PAUSE: "[bold yellow]❚❚ paused[/bold yellow]",
    RecordState.STOP: "[bold green]■ stopped[/bold green]",
}


@config_app.command("open")
def config_open() -> None:
    """
    Open the user configuration directory in the platform's file manager.
    """
    path = config.USER_CONFIG_DIR
    if not path.exists():
        console.print(f"[yellow]User config directory does not exist:[/yellow] {path}")
        console.print("Run `fmrec config init` to create it.")
        return
    typer.launch(str(path))
    console.print(f"Opened config directory: {path}")


@config_app.command("show")
def config_show() -> None:
    """
    Display the effective configuration and relevant paths.
    """
    cfg = Config.load()
    user_config_file = cfg.user_config_file

    console.print("[bold underline]fmrec - Configuration (effective)[/bold underline]")
    console.print(
        f"[cyan]User config file:[/cyan] {user_config_file} (exists={user_config_file.exists()})"
    )
    console.print(f"[cyan]Recordings dir:[/cyan] {cfg.recordings_dir}")
    console.print()
    console.print(f"  recorder: {asdict(cfg.recorder)}")
    console.print(f"  defaults: {asdict(cfg.defaults)}")


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing file"),
) -> None:
    """
    Write config.toml with the default settings.
    Does not overwrite an existing file unless --force is specified.
    """
    cfg_path = config.init_user_config(force=force)
    console.print(f"Ensured user config: {cfg_path}")


def _load_recorder(log_level: str) -> tuple[Config, Recorder]:
    cfg = Config.load(log_level=log_level)
    return cfg, recorder_from_config(cfg)


@app.command()
def devices(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """
    List the capture devices reported by the recorder.
    """
    try:
        _, recorder = _load_recorder(log_level)
        found = asyncio.run(recorder.list_input_devices(CLI_RECORDER_ID))
    except Exception as e:
        logging.debug("Error in devices command", exc_info=True)
        typer.secho(f"Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if not found:
        console.print("[yellow]No capture devices found.[/yellow]")
        return
    table = Table(title="Capture devices")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Label")
    for device in found:
        table.add_row(device.id, device.label)
    console.print(table)


@app.command()
def backends() -> None:
    """
    List the registered recorder backends and the encoders each can produce.
    """
    table = Table(title="Recorder backends")
    table.add_column("Name", style="cyan")
    table.add_column("Encoders")
    table.add_column("Description")
    for info in available_recorders():
        supported = ", ".join(e.value for e in AudioEncoder if info.supports(e))
        table.add_row(info.name, supported or "-", info.description)
    console.print(table)


@app.command()
def encoders(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """
    Show which encoders the configured recorder supports.
    """
    _, recorder = _load_recorder(log_level)

    async def _query() -> list[tuple[AudioEncoder, bool]]:
        return [
            (encoder, await recorder.is_encoder_supported(CLI_RECORDER_ID, encoder))
            for encoder in AudioEncoder
        ]

    for encoder, supported in asyncio.run(_query()):
        mark = "[green]yes[/green]" if supported else "[dim]no[/dim]"
        console.print(f"  {encoder.value:<10} {mark}")


async def _watch_states(recorder: Recorder) -> None:
    with recorder.on_state_changed(CLI_RECORDER_ID) as states:
        async for state in states:
            console.print(_STATE_STYLES[state])
            if state == RecordState.STOP:
                return


async def _interactive_record(
    recorder: Recorder, cfg: Config, out: Path, **overrides: Any
) -> str:
    record_config = cfg.record_config(**overrides)
    watcher = asyncio.create_task(_watch_states(recorder))
    # Let the watcher subscribe before the first transition
    await asyncio.sleep(0)
    try:
        await recorder.start(CLI_RECORDER_ID, record_config, str(out))
        console.print(
            Panel.fit(
                "Enter: stop   p + Enter: pause/resume   c + Enter: cancel",
                title=f"Recording to {out}",
            )
        )
        while True:
            try:
                answer = await asyncio.to_thread(
                    Prompt.ask, "fmrec", default="", show_default=False
                )
            except (KeyboardInterrupt, EOFError):
                answer = ""
            answer = answer.strip().lower()
            if answer == "p":
                if await recorder.is_paused(CLI_RECORDER_ID):
                    await recorder.resume(CLI_RECORDER_ID)
                else:
                    await recorder.pause(CLI_RECORDER_ID)
            elif answer == "c":
                await recorder.cancel(CLI_RECORDER_ID)
                return "cancelled"
            elif answer == "":
                path = await recorder.stop(CLI_RECORDER_ID)
                return path or ""
    finally:
        await recorder.dispose(CLI_RECORDER_ID)
        await watcher


@app.command()
def record(
    out: Path | None = typer.Option(
        None, "--out", "-o", help="Output file (default: recordings/rec_<timestamp>.<ext>)."
    ),
    encoder: str | None = typer.Option(None, "--encoder", help="Encoder, e.g. aacLc, opus, flac."),
    rate: int | None = typer.Option(None, "--rate", help="Sample rate in Hz."),
    channels: int | None = typer.Option(None, "--channels", help="1 (mono) or 2 (stereo)."),
    bit_rate: int | None = typer.Option(None, "--bit-rate", help="Bit rate in bits/s."),
    device: str | None = typer.Option(None, "--device", help="Capture device id."),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
):
    """
    Record from a capture device until you press Enter.

    Defaults (encoder, sample rate, channels, bit rate, device) come from
    [defaults] in the user's config.toml; options given here override them
    for this run.
    """
    try:
        cfg, recorder = _load_recorder(log_level)
        enc = AudioEncoder(encoder or cfg.defaults.encoder)
        target = out or recording_path(cfg.recordings_dir, ENCODER_EXTENSIONS[enc])
        result = asyncio.run(
            _interactive_record(
                recorder,
                cfg,
                target,
                encoder=enc.value,
                rate=rate,
                channels=channels,
                bit_rate=bit_rate,
                device=device,
            )
        )
    except Exception as e:
        logging.debug("Error in record command", exc_info=True)
        typer.secho(f"Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if result == "cancelled":
        console.print("Recording cancelled, file deleted.")
    elif result and file_exists(result):
        console.print(f"Audio saved to {result}")
    else:
        console.print("[yellow]Recorder was not running; nothing saved.[/yellow]")


if __name__ == "__main__":
    app()
