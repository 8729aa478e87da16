"""
Notification dispatcher: turns a received event into (at most) one email.

Flow per message:
1. Decode the payload (drop on failure).
2. Parse it into one of the notification variants by routing key, applying
   per-field defaults for anything missing.
3. Resolve and validate the recipient (drop when unusable).
4. Render subject/body and hand them to the mail transport.

The dispatcher never raises: every per-message failure is logged and the
message is considered handled.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, assert_never

from chat_backend.events.codec import Event, EventDecodeError, EventType, decode
from chat_backend.notifications.mail import MailTransport

logger = logging.getLogger(__name__)

MISSING_EMAIL = "unknown@example.com"
RULE = "─" * 37


class DispatchOutcome(str, enum.Enum):
    """What happened to one message."""

    DELIVERED = "delivered"
    FAILED = "failed"
    DROPPED = "dropped"


def _int_field(fields: Mapping[str, Any], key: str, default: int = 0) -> int:
    value = fields.get(key, default)
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value))
    except ValueError:
        logger.warning("Field %s=%r is not an integer, using %s", key, value, default)
        return default


def _str_field(fields: Mapping[str, Any], key: str, default: str) -> str:
    value = fields.get(key)
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class UserRegistered:
    user_id: int
    username: str
    email: str
    timestamp: str

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> UserRegistered:
        return cls(
            user_id=_int_field(fields, "user_id"),
            username=_str_field(fields, "username", "User"),
            email=_str_field(fields, "email", MISSING_EMAIL),
            timestamp=_str_field(fields, "timestamp", "N/A"),
        )


@dataclass(frozen=True)
class MessageCreated:
    message_id: int
    room_id: int
    sender_username: str
    sender_email: str
    room_name: str
    content: str
    message_type: str
    timestamp: str

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> MessageCreated:
        return cls(
            message_id=_int_field(fields, "message_id"),
            room_id=_int_field(fields, "room_id"),
            sender_username=_str_field(fields, "sender_username", "Unknown User"),
            sender_email=_str_field(fields, "sender_email", ""),
            room_name=_str_field(fields, "room_name", "Unknown Room"),
            content=_str_field(fields, "content", ""),
            message_type=_str_field(fields, "message_type", "text"),
            timestamp=_str_field(fields, "timestamp", "N/A"),
        )


@dataclass(frozen=True)
class UserJoinedRoom:
    room_id: int
    user_id: int
    room_name: str
    username: str
    user_email: str
    role: str

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> UserJoinedRoom:
        return cls(
            room_id=_int_field(fields, "room_id"),
            user_id=_int_field(fields, "user_id"),
            room_name=_str_field(fields, "room_name", "Unknown Room"),
            username=_str_field(fields, "username", "User"),
            user_email=_str_field(fields, "user_email", ""),
            role=_str_field(fields, "role", "member"),
        )


@dataclass(frozen=True)
class UnknownEvent:
    routing_key: str


Notification = UserRegistered | MessageCreated | UserJoinedRoom | UnknownEvent


def parse_notification(routing_key: str, event: Event) -> Notification:
    """Map a routing key (exact match) and decoded event to a notification variant."""
    if routing_key == EventType.USER_REGISTERED.value:
        return UserRegistered.from_fields(event.fields)
    if routing_key == EventType.MESSAGE_CREATED.value:
        return MessageCreated.from_fields(event.fields)
    if routing_key == EventType.USER_JOINED_ROOM.value:
        return UserJoinedRoom.from_fields(event.fields)
    return UnknownEvent(routing_key=routing_key)


def is_valid_recipient(address: str) -> bool:
    return bool(address) and "@" in address


@dataclass(frozen=True)
class Email:
    to: str
    subject: str
    body: str


def render_welcome(n: UserRegistered) -> Email:
    return Email(
        to=n.email,
        subject=f"Welcome to Chat System, {n.username}!",
        body=(
            f"Hello {n.username}!\n\n"
            f"Your account (ID: {n.user_id}) has been successfully created.\n\n"
            "---\n"
            f"Your email: {n.email}"
        ),
    )


def render_new_message(n: MessageCreated, recipient: str) -> Email:
    return Email(
        to=recipient,
        subject=f'New message in "{n.room_name}"',
        body=(
            "Hello!\n\n"
            "You have a new message in one of your chat rooms.\n\n"
            f"Room: {n.room_name} (ID: {n.room_id})\n"
            f"From: {n.sender_username}\n"
            f"Message Type: {n.message_type}\n\n"
            "Message:\n"
            f"{RULE}\n"
            f'"{n.content}"\n'
            f"{RULE}\n\n"
            "---\n"
            f"Message ID: {n.message_id}\n"
            f"Timestamp: {n.timestamp}"
        ),
    )


def render_room_join(n: UserJoinedRoom) -> Email:
    return Email(
        to=n.user_email,
        subject=f'You\'ve been added to "{n.room_name}"!',
        body=(
            f"Hello {n.username}!\n\n"
            "You have been added to a new chat room.\n\n"
            "Room Details:\n"
            f"{RULE}\n"
            f"Name: {n.room_name}\n"
            f"Room ID: {n.room_id}\n"
            f"Your Role: {n.role}\n"
            f"{RULE}\n\n"
            "---\n"
            f"User ID: {n.user_id}\n"
            f"Email: {n.user_email}"
        ),
    )


class NotificationDispatcher:
    """
    Routes decoded events to email templates and the mail transport.

    Args:
        transport: Mail transport selected at startup (SMTP or simulation).
        test_recipient: When set, new-message notifications go here instead
            of to the sender.
    """

    def __init__(self, transport: MailTransport, test_recipient: str | None = None) -> None:
        self._transport = transport
        self._test_recipient = test_recipient or None

    async def dispatch(self, routing_key: str, payload: bytes | str) -> DispatchOutcome:
        """
        Handle one message. Never raises.

        Returns:
            DispatchOutcome describing whether mail was delivered, failed or
            the message was dropped.
        """
        logger.info("New event: routing_key=%s payload=%r", routing_key, payload)
        try:
            event = decode(payload, default_event_type=routing_key)
        except EventDecodeError as exc:
            logger.error("Dropping undecodable payload %r: %s", payload, exc)
            return DispatchOutcome.DROPPED

        try:
            return await self._handle(parse_notification(routing_key, event))
        except Exception:
            logger.exception("Error handling %s event", routing_key)
            return DispatchOutcome.DROPPED

    async def _handle(self, notification: Notification) -> DispatchOutcome:
        match notification:
            case UserRegistered():
                return await self._on_user_registered(notification)
            case MessageCreated():
                return await self._on_message_created(notification)
            case UserJoinedRoom():
                return await self._on_user_joined_room(notification)
            case UnknownEvent():
                logger.warning(
                    "Unknown event type: %s. Skipping notification.", notification.routing_key
                )
                return DispatchOutcome.DROPPED
            case _:
                assert_never(notification)

    async def _on_user_registered(self, n: UserRegistered) -> DispatchOutcome:
        logger.info("Sending welcome email to user %s (ID: %s)", n.username, n.user_id)
        # A missing `email` field decodes to MISSING_EMAIL.
        if n.email == MISSING_EMAIL or not is_valid_recipient(n.email):
            logger.error("No valid email in user.registered payload, skipping email")
            return DispatchOutcome.DROPPED
        return await self._send(render_welcome(n), "welcome email")

    async def _on_message_created(self, n: MessageCreated) -> DispatchOutcome:
        logger.info(
            "Sending new message notification: message %s in %s (ID: %s) from %s",
            n.message_id,
            n.room_name,
            n.room_id,
            n.sender_username,
        )
        recipient = n.sender_email
        if self._test_recipient:
            recipient = self._test_recipient
            logger.info("Using test recipient from env: %s", recipient)
        if not is_valid_recipient(recipient):
            logger.error("Invalid recipient email %r, skipping", recipient)
            return DispatchOutcome.DROPPED
        return await self._send(render_new_message(n, recipient), "message notification")

    async def _on_user_joined_room(self, n: UserJoinedRoom) -> DispatchOutcome:
        logger.info(
            "Sending room join notification: %s (ID: %s) joined %s (ID: %s) as %s",
            n.username,
            n.user_id,
            n.room_name,
            n.room_id,
            n.role,
        )
        if not is_valid_recipient(n.user_email):
            logger.error("No valid email in user.joined_room payload, skipping")
            return DispatchOutcome.DROPPED
        return await self._send(render_room_join(n), "room join notification")

    async def _send(self, email: Email, kind: str) -> DispatchOutcome:
        if await self._transport.send_email(email.to, email.subject, email.body):
            logger.info("%s sent to %s", kind.capitalize(), email.to)
            return DispatchOutcome.DELIVERED
        logger.error("Failed to send %s to %s", kind, email.to)
        return DispatchOutcome.FAILED
