"""CLI — Recording command.

Spawns the helper, shows its recorder overlay and turns the helper's events
into steps until the overlay is closed, the helper exits or the user presses
Ctrl+C.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from sequencer_bridge.cli.commands.scenarios import steps_table
from sequencer_bridge.cli.runtime import open_helper, open_scenarios, open_settings
from sequencer_bridge.config import Settings
from sequencer_bridge.exceptions import SequencerError
from sequencer_bridge.ipc.client import HelperClient
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.models import Scenario
from sequencer_bridge.recorder.controller import NEW_SCENARIO_NAME, RecordingController

log = get_logger(__name__)
console = Console()

STOP_POLL_S = 0.1


async def wait_for_stop(controller: RecordingController, client: HelperClient) -> None:
    """Return once recording has stopped or the helper is gone."""
    while controller.session.is_recording and client.bridge.running:
        await asyncio.sleep(STOP_POLL_S)


def record(
    scenario_id: str | None = typer.Argument(None, help="Record into this scenario (default: a new one)."),
    name: str | None = typer.Option(None, "--name", "-n", help="Name of the new scenario."),
    after: int | None = typer.Option(
        None, "--after", min=0, help="Insert new steps after this step number (0: at the start)."
    ),
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """Record steps through the helper overlay until it is closed."""
    settings = Settings.load(config_file=config)
    if scenario_id is None and name is None:
        name = typer.prompt("Scenario name", default=NEW_SCENARIO_NAME)

    async def _record() -> tuple[Scenario, dict[str, str]] | None:
        async with (
            open_scenarios(settings) as scenarios,
            open_settings(settings) as prefs,
            open_helper(settings) as client,
        ):
            controller = RecordingController(client, scenarios, prefs)
            controller.attach()
            try:
                if scenario_id is None:
                    recording_id = await controller.record_new_scenario(name or NEW_SCENARIO_NAME)
                else:
                    await controller.start_recording(scenario_id, None if after is None else after - 1)
                    recording_id = controller.session.scenario_id
                if recording_id is None:
                    return None
                console.print("[cyan]Recording. Close the overlay (or press Ctrl+C) to finish.[/cyan]")
                try:
                    await wait_for_stop(controller, client)
                finally:
                    if controller.session.is_recording and client.bridge.running:
                        await controller.stop_recording()
            finally:
                controller.detach()

            scenario = await scenarios.require(recording_id)
            names = {s.id: s.name for s in await scenarios.list_all()}
            return scenario, names

    try:
        recorded = asyncio.run(_record())
    except SequencerError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Recording interrupted.[/yellow]")
        raise typer.Exit(130)

    if recorded is None:
        console.print("[red]Recording did not start.[/red]")
        raise typer.Exit(1)
    scenario, names = recorded
    log.info("recording_finished", scenario_id=scenario.id, steps=len(scenario.steps))
    console.print(f"[bold]{scenario.name}[/bold] ({scenario.id})")
    console.print(steps_table(scenario, names))
