"""Tests for services and repositories, including the events they publish."""

from __future__ import annotations

import pytest
from faker import Faker
from passlib.hash import pbkdf2_sha256
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.db.models import User
from chat_backend.repositories.messages import MessagesRepository
from chat_backend.repositories.rooms import RoomsRepository
from chat_backend.repositories.users import UsersRepository
from chat_backend.schemas.auth import LoginRequest, UserCreate
from chat_backend.schemas.messages import MessageCreate
from chat_backend.schemas.rooms import MemberAdd, RoomCreate
from chat_backend.services.auth import AuthService
from chat_backend.services.messages import MessagesService
from chat_backend.services.rooms import RoomsService
from tests.conftest import FakePublisher, FakeRedis


async def _user(session: AsyncSession, name: str) -> User:
    return await UsersRepository(session).create(
        username=name, email=f"{name}@example.com", password_hash="hash"
    )


async def test_users_repo_create_and_lookup(db_session: AsyncSession, faker: Faker) -> None:
    repo = UsersRepository(db_session)

    email = faker.unique.email()
    user = await repo.create(username="alice", email=email, password_hash="hash")
    assert user.id is not None

    by_email = await repo.get_by_email(email)
    assert by_email is not None and by_email.id == user.id

    by_name = await repo.get_by_username("alice")
    assert by_name is not None and by_name.email == email

    assert await repo.get_by_id(user.id + 100) is None
    assert [u.id for u in await repo.list_all()] == [user.id]


async def test_auth_service_register_publishes_and_login(
    db_session: AsyncSession, fake_publisher: FakePublisher, password: str
) -> None:
    svc = AuthService(UsersRepository(db_session), fake_publisher)

    created = await svc.register(
        UserCreate(username="alice", email="alice@example.com", password=password)
    )

    routing_key, event = fake_publisher.published[0]
    assert routing_key == "user.registered"
    assert event.fields["user_id"] == created.id
    assert event.fields["username"] == "alice"
    assert event.fields["email"] == "alice@example.com"
    assert event.fields["timestamp"]

    token = await svc.login(LoginRequest(username="alice", password=password))
    assert token.access_token
    assert (await svc.get_user(created.id)).last_login is not None

    with pytest.raises(PermissionError):
        await svc.login(LoginRequest(username="alice", password="Wrong1234"))


@pytest.mark.parametrize(
    ("username", "email", "error"),
    [
        ("alice", "other@example.com", "username_exists"),
        ("other", "alice@example.com", "email_exists"),
    ],
)
async def test_auth_service_rejects_duplicates(
    db_session: AsyncSession,
    fake_publisher: FakePublisher,
    password: str,
    username: str,
    email: str,
    error: str,
) -> None:
    svc = AuthService(UsersRepository(db_session), fake_publisher)
    await svc.register(UserCreate(username="alice", email="alice@example.com", password=password))

    with pytest.raises(ValueError, match=error):
        await svc.register(UserCreate(username=username, email=email, password=password))
    assert fake_publisher.keys() == ["user.registered"]


async def test_rooms_repo_cache_aside(db_session: AsyncSession, fake_redis: FakeRedis) -> None:
    owner = await _user(db_session, "owner")
    repo = RoomsRepository(session=db_session, redis=fake_redis)  # type: ignore[arg-type]

    created = await repo.create(name="General", description="", created_by=owner.id)
    assert fake_redis.setex_calls == 1

    fake_redis._data.clear()
    r1 = await repo.get(created.id)
    assert r1 == created
    assert fake_redis.setex_calls == 2

    fake_redis.get_calls = 0
    r2 = await repo.get(created.id)
    assert r2 == r1
    assert fake_redis.get_calls == 1

    assert await repo.get(created.id + 100) is None


async def test_room_creator_is_owner(
    db_session: AsyncSession, fake_publisher: FakePublisher
) -> None:
    owner = await _user(db_session, "owner")
    svc = RoomsService(RoomsRepository(db_session), UsersRepository(db_session), fake_publisher)

    room = await svc.create_room(owner.id, RoomCreate(name="General"))

    members = await svc.list_members(room.id)
    assert [(m.username, m.role) for m in members] == [("owner", "owner")]
    assert [r.id for r in await svc.list_user_rooms(owner.id)] == [room.id]
    assert fake_publisher.published == []


async def test_add_member_publishes_joined_room(
    db_session: AsyncSession, fake_publisher: FakePublisher
) -> None:
    owner = await _user(db_session, "owner")
    bob = await _user(db_session, "bob")
    svc = RoomsService(RoomsRepository(db_session), UsersRepository(db_session), fake_publisher)
    room = await svc.create_room(owner.id, RoomCreate(name="General"))

    await svc.add_member(room.id, MemberAdd(user_id=bob.id, role="admin"))

    routing_key, event = fake_publisher.published[0]
    assert routing_key == "user.joined_room"
    assert dict(event.fields) == {
        "room_id": room.id,
        "user_id": bob.id,
        "room_name": "General",
        "username": "bob",
        "user_email": "bob@example.com",
        "role": "admin",
    }

    with pytest.raises(ValueError):
        await svc.add_member(room.id, MemberAdd(user_id=bob.id))
    with pytest.raises(LookupError):
        await svc.add_member(room.id, MemberAdd(user_id=9999))
    with pytest.raises(LookupError):
        await svc.add_member(9999, MemberAdd(user_id=bob.id))
    assert len(fake_publisher.published) == 1


async def test_send_message_requires_membership_and_publishes(
    db_session: AsyncSession, fake_publisher: FakePublisher
) -> None:
    alice = await _user(db_session, "alice")
    mallory = await _user(db_session, "mallory")
    rooms_repo = RoomsRepository(db_session)
    room = await rooms_repo.create(name="General", description="", created_by=alice.id)
    svc = MessagesService(
        MessagesRepository(db_session), rooms_repo, UsersRepository(db_session), fake_publisher
    )

    with pytest.raises(PermissionError):
        await svc.send_message(room.id, mallory.id, MessageCreate(content="let me in"))
    with pytest.raises(LookupError):
        await svc.send_message(9999, alice.id, MessageCreate(content="nowhere"))

    first = await svc.send_message(room.id, alice.id, MessageCreate(content="Hello"))
    second = await svc.send_message(room.id, alice.id, MessageCreate(content="World"))

    assert fake_publisher.keys() == ["message.created", "message.created"]
    event = fake_publisher.published[0][1]
    assert event.fields["message_id"] == first.id
    assert event.fields["sender_username"] == "alice"
    assert event.fields["sender_email"] == "alice@example.com"
    assert event.fields["room_name"] == "General"
    assert event.fields["content"] == "Hello"
    assert event.fields["message_type"] == "text"

    listed = await svc.list_messages(room.id, limit=500)
    assert [m.id for m in listed] == [second.id, first.id]
    assert [m.id for m in await svc.list_messages(room.id, limit=1, offset=1)] == [first.id]


async def test_login_upgrades_legacy_hash(
    db_session: AsyncSession, fake_publisher: FakePublisher, password: str
) -> None:
    repo = UsersRepository(db_session)
    user = await repo.create(
        username="legacy", email="legacy@example.com", password_hash=pbkdf2_sha256.hash(password)
    )
    svc = AuthService(repo, fake_publisher)

    await svc.login(LoginRequest(username="legacy", password=password))

    refreshed = await repo.get_by_id(user.id)
    assert refreshed is not None
    assert refreshed.password_hash.startswith("$argon2")
