"""CLI — Scenario playback command."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from sequencer_bridge.cli.runtime import open_helper, open_scenarios
from sequencer_bridge.config import Settings
from sequencer_bridge.exceptions import ConditionNotMetError, SequencerError
from sequencer_bridge.playback.player import ExecutionProgress, PlaybackStatus, ScenarioPlayer

console = Console()

_STYLES = {
    PlaybackStatus.RUNNING: "cyan",
    PlaybackStatus.WAITING: "yellow",
    PlaybackStatus.COMPLETED: "green",
    PlaybackStatus.ABORTED: "yellow",
    PlaybackStatus.ERROR: "red",
    PlaybackStatus.CONDITION_NOT_MET: "magenta",
}


def _print_progress(progress: ExecutionProgress) -> None:
    style = _STYLES[progress.status]
    counter = f"[{progress.current_step}/{progress.total_steps}]"
    text = progress.description or progress.error or ""
    console.print(f"[{style}]{counter} {progress.status.value}[/{style}] {text}")


def play(
    scenario_id: str = typer.Argument(help="Scenario ID to play."),
    wait_timeout_ms: int | None = typer.Option(
        None, "--wait-timeout-ms", help="Budget of each pixel wait (default: helper default)."
    ),
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """Play a recorded scenario."""
    settings = Settings.load(config_file=config)
    timeout = wait_timeout_ms if wait_timeout_ms is not None else settings.playback.wait_timeout_ms

    async def _play() -> None:
        async with open_scenarios(settings) as store, open_helper(settings) as client:
            player = ScenarioPlayer(client, store, wait_timeout_ms=timeout)
            await player.play(scenario_id, on_progress=_print_progress)

    try:
        asyncio.run(_play())
    except ConditionNotMetError:
        raise typer.Exit(2)
    except SequencerError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Aborted.[/yellow]")
        raise typer.Exit(130)
