"""Wire protocol — Canonical data models.

Geometry, colours, scenario steps and the three message envelopes are
defined here and validated through Pydantic v2.  Field names on the wire are
camelCase; Python attributes are snake_case and every model accepts both.
Do not add business logic here; only data shapes and their invariants.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class WireModel(BaseModel):
    """Base for everything that travels on the wire or into the store."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class MouseButton(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class Modifier(str, Enum):
    CTRL = "ctrl"
    ALT = "alt"
    SHIFT = "shift"
    CMD = "cmd"


class RecorderState(str, Enum):
    IDLE = "idle"
    ACTION = "action"
    TRANSITION = "transition"


class RecorderSubState(str, Enum):
    MOUSE = "mouse"
    KEYBOARD = "keyboard"
    TIME = "time"
    PIXEL = "pixel"


class OverlayIcon(str, Enum):
    ACTION = "action"
    TRANSITION = "transition"
    MOUSE = "mouse"
    KEYBOARD = "keyboard"
    TIME = "time"


# ---------------------------------------------------------------------------
# Colour / geometry
# ---------------------------------------------------------------------------


_Channel = Annotated[int, Field(ge=0, le=255)]


class RGB(WireModel):
    r: _Channel
    g: _Channel
    b: _Channel

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


class Point(WireModel):
    """Top-left origin, same coordinate space as the OS display."""

    x: float
    y: float


class Rect(WireModel):
    x: float
    y: float
    width: Annotated[float, Field(ge=0)]
    height: Annotated[float, Field(ge=0)]


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


class ClickStep(WireModel):
    type: Literal["click"] = "click"
    position: Point
    button: MouseButton = MouseButton.LEFT


class KeypressStep(WireModel):
    type: Literal["keypress"] = "keypress"
    key: str = Field(min_length=1)
    modifiers: list[Modifier] = Field(default_factory=list)

    @field_validator("modifiers")
    @classmethod
    def dedupe_modifiers(cls, v: list[Modifier]) -> list[Modifier]:
        return list(dict.fromkeys(v))


class DelayStep(WireModel):
    type: Literal["delay"] = "delay"
    ms: Annotated[int, Field(ge=0)]


class PixelStateStep(WireModel):
    type: Literal["pixel-state"] = "pixel-state"
    position: Point
    color: RGB
    threshold: Annotated[float, Field(ge=0)]


class PixelZoneStep(WireModel):
    type: Literal["pixel-zone"] = "pixel-zone"
    rect: Rect
    color: RGB
    threshold: Annotated[float, Field(ge=0)]


class ScenarioRefStep(WireModel):
    type: Literal["scenario-ref"] = "scenario-ref"
    scenario_id: str = Field(alias="scenarioId", min_length=1)


Step = Annotated[
    Union[ClickStep, KeypressStep, DelayStep, PixelStateStep, PixelZoneStep, ScenarioRefStep],
    Field(discriminator="type"),
]

STEP_ADAPTER: TypeAdapter[Step] = TypeAdapter(Step)
STEP_LIST_ADAPTER: TypeAdapter[list[Step]] = TypeAdapter(list[Step])


def parse_step(data: Any) -> Step:
    """Validate a step dict; an unknown ``type`` raises ``ValidationError``."""
    return STEP_ADAPTER.validate_python(data)


def now_ms() -> int:
    return int(time.time() * 1000)


class Scenario(WireModel):
    """A named, ordered sequence of steps.  Playback order is list order."""

    model_config = ConfigDict(populate_by_name=True, frozen=False)

    id: str
    name: str
    steps: list[Step] = Field(default_factory=list)
    created_at: int = Field(alias="createdAt", default_factory=now_ms)
    last_used_at: int = Field(alias="lastUsedAt", default_factory=now_ms)

    @classmethod
    def create(cls, name: str) -> "Scenario":
        ts = now_ms()
        return cls(id=uuid.uuid4().hex, name=name, steps=[], created_at=ts, last_used_at=ts)


# ---------------------------------------------------------------------------
# Message envelopes
# ---------------------------------------------------------------------------


class Request(WireModel):
    """``{id, method, params?}``; params omitted for zero-argument methods."""

    id: str
    method: str
    params: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"id": self.id, "method": self.method}
        if self.params is not None:
            wire["params"] = self.params
        return wire


class Response(WireModel):
    """``{id, success:true, result?}`` or ``{id, success:false, error}``.

    A success without ``result`` is a *void* success.
    """

    id: str
    success: bool
    result: Any = None
    error: str | None = None

    @model_validator(mode="after")
    def check_shape(self) -> "Response":
        if self.success and self.error is not None:
            raise ValueError("a successful Response carries no error")
        if not self.success:
            if self.error is None:
                raise ValueError("a failed Response requires an error message")
            if self.result is not None:
                raise ValueError("a failed Response carries no result")
        return self

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"id": self.id, "success": self.success}
        if self.success:
            if self.result is not None:
                wire["result"] = self.result
        else:
            wire["error"] = self.error
        return wire

    @classmethod
    def ok(cls, request_id: str, result: Any = None) -> "Response":
        return cls(id=request_id, success=True, result=result)

    @classmethod
    def fail(cls, request_id: str, error: str) -> "Response":
        return cls(id=request_id, success=False, error=error)


class Event(WireModel):
    """``{event, data}``: unsolicited, no id, never answered."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"event": self.event, "data": self.data}


Message = Union[Request, Response, Event]
