"""Sequencer Bridge CLI — Entry point.

Usage:
    sequencer helper
    sequencer permissions
    sequencer scenarios list
    sequencer scenarios show <scenario_id>
    sequencer scenarios rename <scenario_id> <name>
    sequencer scenarios delete <scenario_id>
    sequencer scenarios edit <scenario_id>
    sequencer record [scenario_id]
    sequencer play <scenario_id>
"""

from __future__ import annotations

import typer
from rich.console import Console

from sequencer_bridge.cli.commands import helper, play, record, scenarios

app = typer.Typer(
    name="sequencer",
    help="Sequencer Bridge — record and replay desktop GUI sequences.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

console = Console()

app.command("helper")(helper.helper)
app.command("permissions")(helper.permissions)
app.command("record")(record.record)
app.command("play")(play.play)
app.add_typer(scenarios.app, name="scenarios")


@app.callback()
def main_callback() -> None:
    pass


if __name__ == "__main__":
    app()
