"""One-line, human-readable descriptions of steps."""

from __future__ import annotations

from sequencer_bridge.protocol.models import (
    ClickStep,
    DelayStep,
    KeypressStep,
    PixelStateStep,
    PixelZoneStep,
    ScenarioRefStep,
    Step,
)


def _xy(x: float, y: float) -> str:
    return f"({x:g}, {y:g})"


def describe_step(step: Step, scenario_names: dict[str, str] | None = None) -> str:
    if isinstance(step, ClickStep):
        return f"{step.button.value} click at {_xy(step.position.x, step.position.y)}"
    if isinstance(step, KeypressStep):
        mods = "".join(f"{m.value}+" for m in step.modifiers)
        return f"keypress {mods}{step.key}"
    if isinstance(step, DelayStep):
        return f"delay {step.ms}ms"
    if isinstance(step, PixelStateStep):
        c = step.color
        return f"wait for rgb({c.r}, {c.g}, {c.b}) at {_xy(step.position.x, step.position.y)}"
    if isinstance(step, PixelZoneStep):
        c, r = step.color, step.rect
        return f"wait for rgb({c.r}, {c.g}, {c.b}) in {r.width:g}x{r.height:g} zone at {_xy(r.x, r.y)}"
    if isinstance(step, ScenarioRefStep):
        name = (scenario_names or {}).get(step.scenario_id, step.scenario_id)
        return f"run scenario {name}"
    return "unknown step"
