"""
Typed events exchanged between a sync run and the connected user.

Wire format is a JSON object with a type and a data payload::

    {"type": "sync_progress", "data": {"progress": 42.0, "syncCount": 3, ...}}

Binary values (photos) travel as base64 strings.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Event types understood by the sync channel."""

    # Outbound (sync run -> user)
    CONTACT_COMPARE = "contact_compare"
    SYNC_PROGRESS = "sync_progress"

    # Inbound (user -> sync run)
    CONTACT_PHOTO_APPLY = "contact_photo_apply"
    CONTACT_PHOTO_SKIP = "contact_photo_skip"


class EventDecodeError(ValueError):
    """Raised when a wire message cannot be decoded into an Event."""

    pass


@dataclass(frozen=True)
class Event:
    """
    A single typed event.

    Attributes:
        type: Event type
        data: Event payload; bytes values are base64-encoded on the wire
    """

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


def _encode_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    return value


def encode_event(event: Event) -> str:
    """
    Serialize an event to its JSON wire form.

    Args:
        event: Event to serialize

    Returns:
        JSON string
    """
    data = {key: _encode_value(value) for key, value in event.data.items()}
    return json.dumps({"type": event.type.value, "data": data})


def decode_event(message: str | bytes) -> Event:
    """
    Parse a JSON wire message into an Event.

    Args:
        message: JSON text (str or UTF-8 bytes)

    Returns:
        Decoded Event. Payload values are left as they appear on the wire.

    Raises:
        EventDecodeError: If the message is not valid JSON, not an object,
            or carries an unknown event type
    """
    try:
        raw = json.loads(message)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise EventDecodeError(f"Invalid event message: {e}") from e

    if not isinstance(raw, dict):
        raise EventDecodeError(
            f"Event message must be a JSON object, got {type(raw).__name__}"
        )

    try:
        event_type = EventType(raw.get("type"))
    except ValueError as e:
        raise EventDecodeError(f"Unknown event type: {raw.get('type')!r}") from e

    data = raw.get("data") or {}
    if not isinstance(data, dict):
        raise EventDecodeError("Event data must be a JSON object")

    return Event(type=event_type, data=data)
