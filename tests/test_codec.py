"""Tests for the event wire codec."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from chat_backend.events.codec import (
    Event,
    EventDecodeError,
    EventType,
    decode,
    encode,
    message_created,
    user_joined_room,
    user_registered,
)


def test_encode_puts_event_type_next_to_fields() -> None:
    event = user_registered(1, "alice", "alice@example.com", "2024-01-01T00:00:00Z")

    body = json.loads(encode(event))

    assert body == {
        "event_type": "user.registered",
        "user_id": 1,
        "username": "alice",
        "email": "alice@example.com",
        "timestamp": "2024-01-01T00:00:00Z",
    }


def test_encode_keeps_non_ascii_readable() -> None:
    event = Event("message.created", {"content": "Привет"})
    assert "Привет".encode() in encode(event)


def test_decode_roundtrip() -> None:
    event = user_joined_room(
        room_id=3,
        user_id=7,
        room_name="General",
        username="bob",
        user_email="bob@example.com",
        role="member",
    )

    decoded = decode(encode(event))

    assert decoded == event
    assert decoded.get("role") == "member"
    assert "timestamp" not in decoded.fields


def test_decode_uses_default_type_when_missing() -> None:
    decoded = decode(b'{"user_id": 1}', default_event_type="user.registered")
    assert decoded.event_type == "user.registered"
    assert decoded.fields == {"user_id": 1}


@pytest.mark.parametrize(
    "payload",
    [b"not json", b"[1, 2, 3]", b'"text"', b'{"user_id": 1}', b"\xff\xfe"],
)
def test_decode_rejects_bad_payloads(payload: bytes) -> None:
    with pytest.raises(EventDecodeError):
        decode(payload)


def test_builders_format_datetimes() -> None:
    ts = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)

    event = message_created(
        message_id=10,
        room_id=2,
        user_id=1,
        sender_username="alice",
        sender_email="alice@example.com",
        room_name="General",
        content="hi",
        message_type="text",
        timestamp=ts,
    )

    assert event.event_type == EventType.MESSAGE_CREATED.value
    assert event.get("timestamp") == "2024-05-01T12:30:00+00:00"
    assert user_registered(1, "a", "a@x.io", None).get("timestamp") == ""


def test_event_type_cannot_be_a_field() -> None:
    with pytest.raises(ValueError):
        Event("user.registered", {"event_type": "legacy", "username": "a"})


@pytest.mark.parametrize("raw_type", [7, "", None, ["user.registered"]])
def test_decode_ignores_unusable_payload_type(raw_type: object) -> None:
    payload = json.dumps({"event_type": raw_type, "username": "a"}).encode()

    decoded = decode(payload, default_event_type="user.registered")

    assert decoded == Event("user.registered", {"username": "a"})


@pytest.mark.parametrize(
    "event",
    [
        user_registered(1, "alice", "alice@example.com", "2024-01-01T00:00:00Z"),
        Event("message.created", {"content": "", "room_id": 0, "flag": None}),
        Event("custom.key", {}),
    ],
)
def test_roundtrip_preserves_event(event: Event) -> None:
    assert decode(encode(event)) == event
