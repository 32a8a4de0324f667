"""Sequencer Bridge — Exception hierarchy.

All exceptions raised by either process inherit from SequencerError so that
callers can catch the full family with a single except clause when needed.
The helper's request router turns any SequencerError into a correlated error
Response carrying ``message``.

Hierarchy:
    SequencerError
    ├── ProtocolError
    │   ├── DecodeError
    │   └── UnknownMethodError
    ├── ExecutorError
    │   ├── ActionError
    │   ├── CaptureError
    │   └── OutOfBoundsError
    ├── TransportError
    │   └── TransportClosedError
    ├── BridgeError
    │   ├── BridgeNotRunningError
    │   ├── HelperExitedError
    │   ├── RequestFailedError
    │   └── RequestTimeoutError
    ├── ScenarioError
    │   ├── ScenarioNotFoundError
    │   ├── StepIndexError
    │   └── CircularReferenceError
    └── PlaybackError
        └── ConditionNotMetError
"""

from __future__ import annotations

from typing import Any


class SequencerError(Exception):
    """Base exception for all Sequencer Bridge errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Protocol layer
# ---------------------------------------------------------------------------


class ProtocolError(SequencerError):
    """Base for all wire protocol errors."""


class DecodeError(ProtocolError):
    """A line could not be decoded into a Request, Response or Event.

    ``request_id`` is set whenever the id could still be recovered from the
    payload, so the receiver can answer with a correlated error Response.
    """

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        raw_line: str | None = None,
    ) -> None:
        super().__init__(message, context={"request_id": request_id, "raw_line": raw_line})
        self.request_id = request_id
        self.raw_line = raw_line


class UnknownMethodError(ProtocolError):
    def __init__(self, method: str) -> None:
        super().__init__(f"Unknown method: {method}", context={"method": method})
        self.method = method


# ---------------------------------------------------------------------------
# Executor layer
# ---------------------------------------------------------------------------


class ExecutorError(SequencerError):
    """Base for failures of the helper's OS-facing primitives."""


class ActionError(ExecutorError):
    """Input synthesis could not be constructed or posted."""


class CaptureError(ExecutorError):
    """Screen sampling is denied or unavailable."""

    def __init__(self, message: str = "Failed to capture screen - check Screen Recording permission") -> None:
        super().__init__(message)


class OutOfBoundsError(ExecutorError):
    """A position or zone lies outside every display."""

    def __init__(self, x: float, y: float) -> None:
        super().__init__(
            f"Position ({x:g}, {y:g}) is out of screen bounds",
            context={"x": x, "y": y},
        )
        self.x = x
        self.y = y


# ---------------------------------------------------------------------------
# Transport / bridge layer
# ---------------------------------------------------------------------------


class TransportError(SequencerError):
    """Base for line transport failures."""


class TransportClosedError(TransportError):
    """The peer closed its end of the stream."""

    def __init__(self, message: str = "Transport is closed") -> None:
        super().__init__(message)


class BridgeError(SequencerError):
    """Base for orchestrator-side bridge failures."""


class BridgeNotRunningError(BridgeError):
    def __init__(self) -> None:
        super().__init__("Helper process is not running")


class HelperExitedError(BridgeError):
    """The helper went away while a Request was in flight."""

    def __init__(self, exit_code: int | None = None) -> None:
        super().__init__(
            f"Helper exited (code {exit_code})" if exit_code is not None else "Helper exited",
            context={"exit_code": exit_code},
        )
        self.exit_code = exit_code


class RequestFailedError(BridgeError):
    """The helper answered a Request with an error Response."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"{method} failed: {error}", context={"method": method, "error": error})
        self.method = method
        self.error = error


class RequestTimeoutError(BridgeError):
    """No Response arrived within the orchestrator-side IPC timeout."""

    def __init__(self, method: str, timeout_ms: int) -> None:
        super().__init__(
            f"Request timeout: {method} (no response after {timeout_ms}ms)",
            context={"method": method, "timeout_ms": timeout_ms},
        )
        self.method = method
        self.timeout_ms = timeout_ms


# ---------------------------------------------------------------------------
# Scenario layer
# ---------------------------------------------------------------------------


class ScenarioError(SequencerError):
    """Base for scenario store errors."""


class ScenarioNotFoundError(ScenarioError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(f"Scenario not found: {scenario_id}", context={"scenario_id": scenario_id})
        self.scenario_id = scenario_id


class StepIndexError(ScenarioError):
    def __init__(self, scenario_id: str, index: int) -> None:
        super().__init__(
            f"Step index {index} out of range for scenario {scenario_id}",
            context={"scenario_id": scenario_id, "index": index},
        )
        self.scenario_id = scenario_id
        self.index = index


class CircularReferenceError(ScenarioError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(
            f"Circular scenario reference detected: {scenario_id}",
            context={"scenario_id": scenario_id},
        )
        self.scenario_id = scenario_id


# ---------------------------------------------------------------------------
# Playback layer
# ---------------------------------------------------------------------------


class PlaybackError(SequencerError):
    """Base for scenario playback failures."""


class ConditionNotMetError(PlaybackError):
    """A pixel wait step timed out without its condition holding."""

    def __init__(self, step_index: int, description: str) -> None:
        super().__init__(
            f"Condition not met at step {step_index + 1}: {description}",
            context={"step_index": step_index, "description": description},
        )
        self.step_index = step_index
        self.description = description
