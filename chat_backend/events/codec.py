"""
Chat domain events and their wire codec.

An event lives only in transit: the API server builds it after a successful
write, the publisher encodes it, and the notification consumer decodes it.

Wire format:
    A UTF-8 JSON object. `event_type` sits next to the event fields, e.g.

        {"event_type": "user.registered", "user_id": 1, "username": "alice",
         "email": "alice@example.com", "timestamp": "2024-01-01T00:00:00Z"}

Non-responsibilities:
- Schema validation. Consumers apply per-field defaults instead.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

EVENT_TYPE_KEY = "event_type"

JSONPrimitive = str | int | float | bool | None


class EventType(str, enum.Enum):
    """Event types that the notification queue is bound to."""

    USER_REGISTERED = "user.registered"
    MESSAGE_CREATED = "message.created"
    USER_JOINED_ROOM = "user.joined_room"


class EventDecodeError(ValueError):
    """Raised when a payload cannot be turned into an Event."""


@dataclass(frozen=True)
class Event:
    """
    Immutable domain event.

    Attributes:
        event_type: Event type string; usually equal to the routing key.
        fields: JSON-compatible payload values.
    """

    event_type: str
    fields: Mapping[str, JSONPrimitive] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # `event_type` shares the wire object with the fields.
        if EVENT_TYPE_KEY in self.fields:
            raise ValueError(f"{EVENT_TYPE_KEY!r} is reserved and cannot be an event field")

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


def encode(event: Event) -> bytes:
    """
    Serialize an event for message transport.

    Returns:
        UTF-8 encoded JSON bytes.
    """
    body: dict[str, Any] = {EVENT_TYPE_KEY: event.event_type}
    body.update(event.fields)
    return json.dumps(body, ensure_ascii=False).encode("utf-8")


def decode(payload: bytes | str, default_event_type: str | None = None) -> Event:
    """
    Parse a wire payload back into an Event.

    Args:
        payload: Raw message body.
        default_event_type: Used when the payload carries no usable
            `event_type` (missing, empty or not a string). The consumer passes
            the routing key.

    Raises:
        EventDecodeError: Body is not UTF-8 JSON, is not an object, or no
            event type can be determined.
    """
    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise EventDecodeError(str(exc)) from exc

    if not isinstance(data, dict):
        raise EventDecodeError(f"expected a JSON object, got {type(data).__name__}")

    raw_type = data.pop(EVENT_TYPE_KEY, None)
    event_type = raw_type if isinstance(raw_type, str) and raw_type else default_event_type
    if not event_type:
        raise EventDecodeError("payload has no event_type")

    return Event(event_type=event_type, fields=data)


def _timestamp(value: datetime | str | None) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return value or ""


def user_registered(
    user_id: int, username: str, email: str, timestamp: datetime | str | None
) -> Event:
    return Event(
        EventType.USER_REGISTERED.value,
        {
            "user_id": user_id,
            "username": username,
            "email": email,
            "timestamp": _timestamp(timestamp),
        },
    )


def message_created(
    *,
    message_id: int,
    room_id: int,
    user_id: int,
    sender_username: str,
    sender_email: str,
    room_name: str,
    content: str,
    message_type: str,
    timestamp: datetime | str | None,
) -> Event:
    return Event(
        EventType.MESSAGE_CREATED.value,
        {
            "message_id": message_id,
            "room_id": room_id,
            "user_id": user_id,
            "sender_username": sender_username,
            "sender_email": sender_email,
            "room_name": room_name,
            "content": content,
            "message_type": message_type,
            "timestamp": _timestamp(timestamp),
        },
    )


def user_joined_room(
    *,
    room_id: int,
    user_id: int,
    room_name: str,
    username: str,
    user_email: str,
    role: str,
) -> Event:
    # Room joins carry no timestamp on the wire.
    return Event(
        EventType.USER_JOINED_ROOM.value,
        {
            "room_id": room_id,
            "user_id": user_id,
            "room_name": room_name,
            "username": username,
            "user_email": user_email,
            "role": role,
        },
    )
