"""Wire protocol — Line codec.

One message per line: a single-line UTF-8 JSON object.  Decoding is
two-pass: the discriminant is read first (``method`` → Request,
``success`` → Response, ``event`` → Event, in that order of precedence),
then the whole payload is validated against that variant.

A payload that fails the second pass still yields its ``id`` on the raised
:class:`DecodeError` when one can be read, so the receiver can answer with
a correlated error Response instead of silently dropping the Request.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from sequencer_bridge.exceptions import DecodeError
from sequencer_bridge.protocol.models import Event, Message, Request, Response


def encode(message: Message) -> str:
    """Serialise *message* to one line (without the trailing newline).

    ``json.dumps`` escapes control characters, so the result never contains
    a raw newline.
    """
    return json.dumps(message.to_wire(), separators=(",", ":"), ensure_ascii=False)


def decode(line: str | bytes) -> Message:
    """Parse one line into a Request, Response or Event.

    Raises:
        DecodeError: the line is not JSON, not an object, carries no known
            discriminant, or fails validation for its variant.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Invalid UTF-8: {exc}") from exc

    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Invalid JSON: {exc.msg}", raw_line=line[:500]) from exc

    if not isinstance(payload, dict):
        raise DecodeError(
            f"Expected a JSON object, got {type(payload).__name__}",
            raw_line=line[:500],
        )

    request_id = recover_id(payload)
    model = _variant_for(payload)
    if model is None:
        raise DecodeError(
            "Message has none of the fields method, success, event",
            request_id=request_id,
            raw_line=line[:500],
        )

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(
            describe_validation_error(exc),
            request_id=request_id,
            raw_line=line[:500],
        ) from exc


def recover_id(payload: dict[str, Any]) -> str | None:
    """Return the payload's ``id`` if it is a usable string."""
    value = payload.get("id")
    return value if isinstance(value, str) else None


def describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors(include_url=False):
        loc = ".".join(str(p) for p in error.get("loc", ()))
        msg = error.get("msg", "")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def _variant_for(payload: dict[str, Any]) -> type[Request] | type[Response] | type[Event] | None:
    if "method" in payload:
        return Request
    if "success" in payload:
        return Response
    if "event" in payload:
        return Event
    return None
