"""JSON envelopes carried on the room and system channels: ``{"event": ..., "data": {...}}``."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

ROW_INSERTED = "INSERT"
SYSTEM_EVENT = "system_event"


def _encode(o: object) -> Any:
    if isinstance(o, UUID):
        return str(o)
    if isinstance(o, datetime):
        return o.isoformat()
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    return json.dumps({"event": event_type, "data": payload}, default=_encode)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Raises ValueError for anything that is not a well-formed envelope."""
    envelope = json.loads(raw)
    if not isinstance(envelope, dict):
        raise ValueError("envelope must be a JSON object")
    event_type = envelope.get("event")
    data = envelope.get("data")
    if not isinstance(event_type, str) or not isinstance(data, dict):
        raise ValueError(f"malformed envelope: {sorted(envelope)}")
    return event_type, data
