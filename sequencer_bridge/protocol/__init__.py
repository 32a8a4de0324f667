"""Wire protocol — models, typed params and the line codec."""

from sequencer_bridge.protocol.codec import decode, encode
from sequencer_bridge.protocol.models import (
    RGB,
    ClickStep,
    DelayStep,
    Event,
    KeypressStep,
    Message,
    Modifier,
    MouseButton,
    OverlayIcon,
    PixelStateStep,
    PixelZoneStep,
    Point,
    RecorderState,
    RecorderSubState,
    Rect,
    Request,
    Response,
    Scenario,
    ScenarioRefStep,
    Step,
)

__all__ = [
    "decode",
    "encode",
    "RGB",
    "Point",
    "Rect",
    "MouseButton",
    "Modifier",
    "OverlayIcon",
    "RecorderState",
    "RecorderSubState",
    "Step",
    "ClickStep",
    "KeypressStep",
    "DelayStep",
    "PixelStateStep",
    "PixelZoneStep",
    "ScenarioRefStep",
    "Scenario",
    "Request",
    "Response",
    "Event",
    "Message",
]
