"""CLI — Helper process commands."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from sequencer_bridge.exceptions import SequencerError

console = Console(stderr=True)


def helper(
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
    no_input_monitor: bool = typer.Option(
        False, "--no-input-monitor", help="Do not hook global mouse/keyboard input."
    ),
    no_overlay: bool = typer.Option(
        False, "--no-overlay", help="Do not draw the recorder overlay (headless helper)."
    ),
) -> None:
    """Run the automation helper over stdin/stdout (started by the orchestrator)."""
    from sequencer_bridge.config import Settings
    from sequencer_bridge.helper.service import run_helper
    from sequencer_bridge.logging import configure_logging

    settings = Settings.load(config_file=config)
    log_file = str(settings.logging.file) if settings.logging.file else None
    configure_logging(settings.logging.level, settings.logging.format, log_file)
    helper_config = settings.helper
    updates: dict[str, bool] = {}
    if no_input_monitor:
        updates["input_monitor"] = False
    if no_overlay:
        updates["overlay_surface"] = False
    if updates:
        helper_config = helper_config.model_copy(update=updates)

    run_helper(helper_config)


def permissions(
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """Ask a fresh helper which OS permissions it holds."""
    from sequencer_bridge.cli.runtime import open_helper
    from sequencer_bridge.config import Settings
    from sequencer_bridge.protocol.params import PermissionStatus

    settings = Settings.load(config_file=config)

    async def _check() -> PermissionStatus:
        async with open_helper(settings) as client:
            return await client.check_permissions()

    try:
        status = asyncio.run(_check())
    except SequencerError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)

    table = Table(title="Helper Permissions")
    table.add_column("Permission", style="cyan")
    table.add_column("Granted")
    for name, granted in (
        ("Accessibility (input synthesis)", status.accessibility),
        ("Screen Recording (pixel sampling)", status.screen_recording),
    ):
        table.add_row(name, "[green]yes[/green]" if granted else "[red]no[/red]")
    Console().print(table)
