"""CLI — Scenario inspection and editing commands."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from sequencer_bridge.cli.runtime import open_scenarios
from sequencer_bridge.config import Settings
from sequencer_bridge.exceptions import SequencerError, StepIndexError
from sequencer_bridge.protocol.models import Scenario
from sequencer_bridge.scenarios.describe import describe_step
from sequencer_bridge.scenarios.history import HistoryStore
from sequencer_bridge.scenarios.store import ScenarioStore

app = typer.Typer(help="List, inspect, edit, rename and delete recorded scenarios.")
console = Console()

ConfigOption = Annotated[Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")]


def _fmt_ms(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d %H:%M")


def steps_table(scenario: Scenario, names: dict[str, str]) -> Table:
    table = Table(title="Steps")
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Description")
    for index, step in enumerate(scenario.steps, start=1):
        table.add_row(str(index), step.type, describe_step(step, names))
    return table


@app.command("list")
def list_scenarios(config: ConfigOption = None) -> None:
    """List scenarios, most recently used first."""
    settings = Settings.load(config_file=config)

    async def _list() -> list[Scenario]:
        async with open_scenarios(settings) as store:
            return await store.list_all()

    scenarios = asyncio.run(_list())
    if not scenarios:
        console.print("[dim]No scenarios recorded yet.[/dim]")
        return

    table = Table(title="Scenarios")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Steps", justify="right")
    table.add_column("Last used")
    for s in scenarios:
        table.add_row(s.id, s.name, str(len(s.steps)), _fmt_ms(s.last_used_at))
    console.print(table)


@app.command("show")
def show_scenario(
    scenario_id: str = typer.Argument(help="Scenario ID."),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON."),
    config: ConfigOption = None,
) -> None:
    """Show the steps of a scenario."""
    settings = Settings.load(config_file=config)

    async def _show() -> tuple[Scenario, dict[str, str]]:
        async with open_scenarios(settings) as store:
            scenario = await store.require(scenario_id)
            names = {s.id: s.name for s in await store.list_all()}
            return scenario, names

    try:
        scenario, names = asyncio.run(_show())
    except SequencerError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)

    if json_output:
        console.print(Syntax(json.dumps(scenario.to_wire(), indent=2), "json"))
        return

    console.print(f"[bold]{scenario.name}[/bold] ({scenario.id})")
    console.print(steps_table(scenario, names))


@app.command("rename")
def rename_scenario(
    scenario_id: str = typer.Argument(help="Scenario ID."),
    name: str = typer.Argument(help="New name."),
    config: ConfigOption = None,
) -> None:
    """Rename a scenario."""
    settings = Settings.load(config_file=config)

    async def _rename() -> Scenario:
        async with open_scenarios(settings) as store:
            return await store.rename(scenario_id, name)

    try:
        scenario = asyncio.run(_rename())
    except SequencerError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Renamed to {scenario.name}[/green]")


@app.command("delete")
def delete_scenario(
    scenario_id: str = typer.Argument(help="Scenario ID."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
    config: ConfigOption = None,
) -> None:
    """Delete a scenario."""
    if not yes:
        typer.confirm(f"Delete scenario {scenario_id}?", abort=True)
    settings = Settings.load(config_file=config)

    async def _delete() -> bool:
        async with open_scenarios(settings) as store:
            return await store.delete(scenario_id)

    if not asyncio.run(_delete()):
        console.print(f"[red]Scenario not found: {scenario_id}[/red]")
        raise typer.Exit(1)
    console.print("[green]Deleted.[/green]")


EDIT_HELP = "d N: delete step N   s A B: swap steps A and B   u: undo last delete   q: quit"


@app.command("edit")
def edit_scenario(
    scenario_id: str = typer.Argument(help="Scenario ID."),
    config: ConfigOption = None,
) -> None:
    """Delete, reorder and restore steps interactively."""
    settings = Settings.load(config_file=config)

    async def _edit() -> None:
        async with open_scenarios(settings) as store:
            history = HistoryStore(store)
            names = {s.id: s.name for s in await store.list_all()}
            while True:
                scenario = await store.require(scenario_id)
                console.print(steps_table(scenario, names))
                console.print(f"[dim]{EDIT_HELP}[/dim]")
                command = await asyncio.to_thread(typer.prompt, ">", default="q", show_default=False)
                if not await _apply_edit(command, scenario_id, store, history):
                    return

    try:
        asyncio.run(_edit())
    except SequencerError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)


async def _apply_edit(command: str, scenario_id: str, store: ScenarioStore, history: HistoryStore) -> bool:
    """Run one edit command.  Returns False when the user quits."""
    verb, *args = command.split() or ["q"]
    if verb == "q":
        return False
    try:
        indices = [int(arg) - 1 for arg in args]
    except ValueError:
        console.print(f"[red]Not a step number: {' '.join(args)}[/red]")
        return True

    try:
        if verb == "d" and len(indices) == 1:
            step = await history.delete_step(scenario_id, indices[0])
            console.print(f"[green]Deleted {describe_step(step)}[/green]")
        elif verb == "s" and len(indices) == 2:
            await store.swap_steps(scenario_id, indices[0], indices[1])
        elif verb == "u" and not indices:
            description = history.undo_description()
            if await history.undo():
                console.print(f"[green]{description}[/green]")
            else:
                console.print("[yellow]Nothing to undo.[/yellow]")
        else:
            console.print(f"[red]Unknown command: {command}[/red]")
    except StepIndexError as exc:
        console.print(f"[red]{exc.message}[/red]")
    return True
