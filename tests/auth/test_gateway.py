"""Tests for bearer-token authentication against the session store."""

import fakeredis
import pytest

from routeplanner.auth.gateway import AuthGateway
from routeplanner.auth.jwt import create_access_token
from routeplanner.auth.service import start_session
from routeplanner.auth.session_store import SessionStore
from routeplanner.database import atomic
from routeplanner.errors import InvalidToken, SessionExpired, UserInactive, UserNotFound


@pytest.fixture
def sessions(fake_redis) -> SessionStore:
    return SessionStore(fake_redis, timeout=0.5)


@pytest.fixture
def gateway(sessions: SessionStore) -> AuthGateway:
    return AuthGateway(sessions, session_ttl=3600)


class TestAuthenticate:
    async def test_valid_token_and_session(self, db_session, user, sessions, gateway):
        token = await start_session(sessions, user)
        resolved = await gateway.authenticate(db_session, token)
        assert resolved.id == user.id

    async def test_extends_session(self, db_session, user, sessions, gateway, fake_redis):
        token = await start_session(sessions, user)
        await fake_redis.expire(sessions.key(user.id), 10)
        await gateway.authenticate(db_session, token)
        assert await fake_redis.ttl(sessions.key(user.id)) > 10

    async def test_malformed_token(self, db_session, gateway):
        with pytest.raises(InvalidToken):
            await gateway.authenticate(db_session, "garbage")

    async def test_no_session(self, db_session, user, gateway):
        token = create_access_token(user.id, user.email)
        with pytest.raises(SessionExpired):
            await gateway.authenticate(db_session, token)

    async def test_revoked_session(self, db_session, user, sessions, gateway):
        token = await start_session(sessions, user)
        await sessions.revoke(user.id)
        with pytest.raises(SessionExpired):
            await gateway.authenticate(db_session, token)

    async def test_second_login_retires_first_token(self, db_session, user, sessions, gateway):
        first = await start_session(sessions, user)
        second = await start_session(sessions, user)
        with pytest.raises(SessionExpired):
            await gateway.authenticate(db_session, first)
        assert (await gateway.authenticate(db_session, second)).id == user.id

    async def test_soft_deleted_user(self, db_session, user, sessions, gateway):
        token = await start_session(sessions, user)
        async with atomic(db_session, "test"):
            user.mark_deleted()
        with pytest.raises(UserNotFound):
            await gateway.authenticate(db_session, token)

    async def test_inactive_user(self, db_session, user, sessions, gateway):
        token = await start_session(sessions, user)
        async with atomic(db_session, "test"):
            user.is_active = False
        with pytest.raises(UserInactive):
            await gateway.authenticate(db_session, token)

    async def test_session_store_down_fails_closed(self, db_session, user, sessions):
        token = await start_session(sessions, user)
        server = fakeredis.FakeServer()
        server.connected = False
        down = AuthGateway(
            SessionStore(fakeredis.FakeAsyncRedis(server=server, decode_responses=True), timeout=0.5),
            session_ttl=3600,
        )
        with pytest.raises(SessionExpired):
            await down.authenticate(db_session, token)


class TestAuthenticateOptional:
    async def test_no_token_is_anonymous(self, db_session, gateway):
        assert await gateway.authenticate_optional(db_session, None) is None

    async def test_bad_token_is_anonymous(self, db_session, gateway):
        assert await gateway.authenticate_optional(db_session, "garbage") is None

    async def test_valid_token_resolves_user(self, db_session, user, sessions, gateway):
        token = await start_session(sessions, user)
        resolved = await gateway.authenticate_optional(db_session, token)
        assert resolved is not None
        assert resolved.id == user.id
