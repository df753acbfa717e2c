"""Session store tests — validity window, rotation, deletion.

Learn: These go straight at SessionStore with a real AsyncSession on the
test database. get_valid() takes an explicit `now`, so expiry is tested
without sleeping.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from edtech.db.models import Session
from edtech.errors import DuplicateToken, SessionNotFound
from edtech.services.session_service import SessionStore
from edtech.services.user_service import UserService


async def _make_user(db, email="store@example.com"):
    return await UserService(db, bcrypt_rounds=10).create(
        name="Store",
        surname="Owner",
        email=email,
        password="pw123",
        role_id=2,
    )


# ═══════════════════════════════════════════════════════════
# Validity
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_session_valid_until_expiry(db_session):
    user = await _make_user(db_session)
    store = SessionStore(db_session)
    t0 = datetime.now(timezone.utc)
    expires = t0 + timedelta(days=7)
    await store.create(user.id, "tok-1", expires)

    session, role_id = await store.get_valid("tok-1", now=t0)
    assert session.user_id == user.id
    assert role_id == 2

    session, _ = await store.get_valid("tok-1", now=expires - timedelta(seconds=1))
    assert session.refresh_token == "tok-1"


@pytest.mark.asyncio
async def test_session_invalid_at_and_after_expiry(db_session):
    user = await _make_user(db_session)
    store = SessionStore(db_session)
    expires = datetime.now(timezone.utc) + timedelta(minutes=5)
    await store.create(user.id, "tok-1", expires)

    with pytest.raises(SessionNotFound):
        await store.get_valid("tok-1", now=expires)
    with pytest.raises(SessionNotFound):
        await store.get_valid("tok-1", now=expires + timedelta(days=1))


@pytest.mark.asyncio
async def test_expired_row_is_unusable_though_still_stored(db_session):
    user = await _make_user(db_session)
    store = SessionStore(db_session)
    await store.create(user.id, "old", datetime.now(timezone.utc) - timedelta(seconds=1))

    with pytest.raises(SessionNotFound):
        await store.get_valid("old")

    count = await db_session.scalar(select(func.count()).select_from(Session))
    assert count == 1


@pytest.mark.asyncio
async def test_unknown_token_not_found(db_session):
    with pytest.raises(SessionNotFound):
        await SessionStore(db_session).get_valid("nope")


# ═══════════════════════════════════════════════════════════
# Writes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_duplicate_token_rejected(db_session):
    user = await _make_user(db_session)
    store = SessionStore(db_session)
    expires = datetime.now(timezone.utc) + timedelta(days=1)
    await store.create(user.id, "same", expires)

    with pytest.raises(DuplicateToken):
        await store.create(user.id, "same", expires)


@pytest.mark.asyncio
async def test_rotate_replaces_token(db_session):
    user = await _make_user(db_session)
    store = SessionStore(db_session)
    expires = datetime.now(timezone.utc) + timedelta(days=1)
    session = await store.create(user.id, "first", expires)
    session_id = session.id

    await store.rotate(session_id, "second", expires + timedelta(days=1))

    with pytest.raises(SessionNotFound):
        await store.get_valid("first")
    rotated, _ = await store.get_valid("second")
    assert rotated.id == session_id


@pytest.mark.asyncio
async def test_rotate_into_taken_token_is_duplicate(db_session):
    user = await _make_user(db_session)
    store = SessionStore(db_session)
    expires = datetime.now(timezone.utc) + timedelta(days=1)
    a = await store.create(user.id, "a", expires)
    a_id = a.id
    await store.create(user.id, "b", expires)

    with pytest.raises(DuplicateToken):
        await store.rotate(a_id, "b", expires)


@pytest.mark.asyncio
async def test_rotate_missing_session(db_session):
    with pytest.raises(SessionNotFound):
        await SessionStore(db_session).rotate(
            999, "x", datetime.now(timezone.utc) + timedelta(days=1)
        )


@pytest.mark.asyncio
async def test_delete_is_idempotent(db_session):
    user = await _make_user(db_session)
    store = SessionStore(db_session)
    await store.create(user.id, "gone", datetime.now(timezone.utc) + timedelta(days=1))

    assert await store.delete("gone") == 1
    assert await store.delete("gone") == 0
    with pytest.raises(SessionNotFound):
        await store.get_valid("gone")


@pytest.mark.asyncio
async def test_delete_for_user_only_touches_that_user(db_session):
    alice = await _make_user(db_session, "alice@example.com")
    bob = await _make_user(db_session, "bob@example.com")
    alice_id, bob_id = alice.id, bob.id
    store = SessionStore(db_session)
    expires = datetime.now(timezone.utc) + timedelta(days=1)
    await store.create(alice_id, "alice-1", expires)
    await store.create(alice_id, "alice-2", expires)
    await store.create(bob_id, "bob-1", expires)

    assert await store.delete_for_user(alice_id) == 2

    session, _ = await store.get_valid("bob-1")
    assert session.user_id == bob_id
