"""Password hashing, bearer tokens, and the login throttle policy."""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import jwt as pyjwt
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from collabspace.auth.jwt import TokenError, create_access_token, verify_token
from collabspace.auth.password import hash_password, needs_rehash, verify_password
from collabspace.auth.throttle import LoginThrottle, SqlAttemptStore
from collabspace.config import settings
from collabspace.db.models import Base, utcnow


# ─── Passwords ───────────────────────────────────────────


def test_hash_and_verify():
    h = hash_password("correct horse")
    assert h != "correct horse"
    assert verify_password("correct horse", h)
    assert not verify_password("wrong horse", h)


def test_hashes_are_salted():
    assert hash_password("same") != hash_password("same")


def test_verify_rejects_malformed_hash():
    assert not verify_password("anything", "")
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_needs_rehash_tracks_configured_cost():
    h = hash_password("pw-for-rehash")
    assert not needs_rehash(h)
    with patch.object(settings, "bcrypt_rounds", settings.bcrypt_rounds + 1):
        assert needs_rehash(h)
    assert needs_rehash("garbage")


# ─── Bearer tokens ───────────────────────────────────────


def test_token_roundtrip_claims():
    token = create_access_token("user-1", "admin", "a@example.com")
    payload = verify_token(token)
    assert payload["sub"] == "user-1"
    assert payload["role"] == "admin"
    assert payload["exp"] - payload["iat"] == 7 * 24 * 3600


def test_expired_token_rejected():
    token = create_access_token("user-1", "user", "a@example.com", expires_days=-1)
    with pytest.raises(TokenError, match="expired"):
        verify_token(token)


def test_wrong_signature_rejected():
    token = pyjwt.encode({"sub": "x", "exp": 9999999999}, "other-secret", algorithm="HS256")
    with pytest.raises(TokenError):
        verify_token(token)


def test_token_without_sub_rejected():
    token = pyjwt.encode({"exp": 9999999999}, settings.jwt_secret, algorithm="HS256")
    with pytest.raises(TokenError):
        verify_token(token)


# ─── Login throttle ──────────────────────────────────────


@pytest.mark.asyncio
async def test_throttle_allows_until_limit(db_session):
    throttle = LoginThrottle(SqlAttemptStore(db_session), max_attempts=5)
    for i in range(5):
        decision = await throttle.check("1.2.3.4")
        assert decision.allowed
        assert decision.remaining == 4 - i
        await throttle.record_failure("1.2.3.4")

    decision = await throttle.check("1.2.3.4")
    assert not decision.allowed
    assert decision.remaining == 0
    assert 14 * 60 < decision.retry_after <= 15 * 60


@pytest.mark.asyncio
async def test_throttle_window_elapses(db_session):
    throttle = LoginThrottle(SqlAttemptStore(db_session), window=timedelta(minutes=15))
    start = utcnow() - timedelta(minutes=20)
    for _ in range(5):
        await throttle.record_failure("k", now=start)

    assert not (await throttle.check("k", now=start + timedelta(minutes=1))).allowed
    assert (await throttle.check("k")).allowed

    # A new failure after the window restarts the count at one
    await throttle.record_failure("k")
    attempts, _ = await throttle.store.get("k")
    assert attempts == 1


@pytest.mark.asyncio
async def test_throttle_reset(db_session):
    throttle = LoginThrottle(SqlAttemptStore(db_session), max_attempts=2)
    await throttle.record_failure("k")
    await throttle.record_failure("k")
    assert not (await throttle.check("k")).allowed
    await throttle.reset("k")
    assert (await throttle.check("k")).allowed
    assert await throttle.store.get("k") is None


@pytest.mark.asyncio
async def test_throttle_keys_are_independent(db_session):
    throttle = LoginThrottle(SqlAttemptStore(db_session), max_attempts=1)
    await throttle.record_failure("a")
    assert not (await throttle.check("a")).allowed
    assert (await throttle.check("b")).allowed


@pytest.mark.asyncio
async def test_concurrent_failures_for_new_key_are_all_counted(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'throttle.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with factory() as first, factory() as second:
            now = utcnow()
            window = timedelta(minutes=15)
            await asyncio.gather(
                SqlAttemptStore(first).increment("10.0.0.1", now, window),
                SqlAttemptStore(second).increment("10.0.0.1", now, window),
            )
            await SqlAttemptStore(first).increment("10.0.0.1", now, window)

        async with factory() as session:
            attempts, first_attempt_at = await SqlAttemptStore(session).get("10.0.0.1")
        assert attempts == 3
        assert abs((first_attempt_at - now).total_seconds()) < 1
    finally:
        await engine.dispose()
