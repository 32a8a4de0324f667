"""Unit tests — Step descriptions."""

from __future__ import annotations

import pytest

from sequencer_bridge.protocol.models import (
    RGB,
    ClickStep,
    KeypressStep,
    Modifier,
    MouseButton,
    PixelZoneStep,
    Point,
    Rect,
    ScenarioRefStep,
)
from sequencer_bridge.scenarios.describe import describe_step


@pytest.mark.unit
class TestDescribeStep:
    def test_click(self) -> None:
        step = ClickStep(position=Point(x=100, y=400), button=MouseButton.RIGHT)
        assert describe_step(step) == "right click at (100, 400)"

    def test_keypress_with_modifiers(self) -> None:
        step = KeypressStep(key="s", modifiers=[Modifier.CMD, Modifier.SHIFT])
        assert describe_step(step) == "keypress cmd+shift+s"

    def test_zone(self) -> None:
        step = PixelZoneStep(rect=Rect(x=1, y=2, width=30, height=40), color=RGB(r=1, g=2, b=3), threshold=15)
        assert describe_step(step) == "wait for rgb(1, 2, 3) in 30x40 zone at (1, 2)"

    def test_reference_uses_name(self) -> None:
        step = ScenarioRefStep(scenario_id="abc")
        assert describe_step(step, {"abc": "Login"}) == "run scenario Login"
        assert describe_step(step) == "run scenario abc"
