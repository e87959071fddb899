"""Unit tests for SessionService login, logout and refresh."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import asyncpg
import pytest
from fastapi import Response

from conftest import make_user
from userauth.errors import AuthenticationError, InternalError, NotFoundError, ValidationError
from userauth.models.auth import TokenPair
from userauth.services.session_service import (
    ACCESS_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    SessionService,
    clear_token_cookies,
    set_token_cookies,
)
from userauth.services.token_service import TokenGenerationError, TokenService
from userauth.services.user_service import UserService


@pytest.fixture
def token_service():
    with patch("userauth.services.token_service.get_settings") as mock_settings:
        mock_settings.return_value = MagicMock(
            access_token_secret="access-secret",
            refresh_token_secret="refresh-secret",
            access_token_expire_minutes=15,
            refresh_token_expire_days=7,
        )
        yield TokenService()


@pytest.fixture
def user():
    return make_user()


@pytest.fixture
def user_service(user):
    """UserService double holding a single user whose password is 'secret'."""
    service = MagicMock(spec=UserService)
    service.get_by_username_or_email = AsyncMock(return_value=(user, "hash"))
    service.verify_password = MagicMock(side_effect=lambda pw, _hash: pw == "secret")
    service.get_by_id = AsyncMock(return_value=user)
    service.set_refresh_token = AsyncMock()
    service.get_refresh_token = AsyncMock(return_value=None)
    return service


@pytest.fixture
def session_service(user_service, token_service):
    return SessionService(user_service, token_service)


class TestLogin:
    async def test_success_stores_returned_refresh_token(self, session_service, user_service, user):
        data = await session_service.login(username="janed", email=None, password="secret")

        assert data.user == user
        assert data.access_token
        user_service.set_refresh_token.assert_awaited_once_with(user.id, data.refresh_token)

    async def test_login_by_email_only(self, session_service, user_service):
        await session_service.login(username=None, email="jane@x.com", password="secret")

        user_service.get_by_username_or_email.assert_awaited_once_with(None, "jane@x.com")

    @pytest.mark.parametrize("username,email", [(None, None), ("", "  "), ("   ", None)])
    async def test_requires_an_identifier(self, session_service, user_service, username, email):
        with pytest.raises(ValidationError, match="Username or email is required"):
            await session_service.login(username=username, email=email, password="secret")

        user_service.get_by_username_or_email.assert_not_awaited()

    async def test_unknown_user(self, session_service, user_service):
        user_service.get_by_username_or_email.return_value = None

        with pytest.raises(NotFoundError):
            await session_service.login(username="ghost", email=None, password="secret")

    async def test_wrong_password_leaves_stored_token_untouched(self, session_service, user_service):
        with pytest.raises(AuthenticationError, match="Invalid user credentials"):
            await session_service.login(username="janed", email=None, password="wrong")

        user_service.set_refresh_token.assert_not_awaited()

    async def test_token_failure_becomes_generic_internal_error(self, user_service):
        token_service = MagicMock(spec=TokenService)
        token_service.generate_token_pair.side_effect = TokenGenerationError("no secret")
        service = SessionService(user_service, token_service)

        with pytest.raises(InternalError) as exc_info:
            await service.login(username="janed", email=None, password="secret")

        assert "no secret" not in exc_info.value.message
        assert exc_info.value.__cause__ is None
        user_service.set_refresh_token.assert_not_awaited()

    async def test_persistence_failure_becomes_internal_error(self, session_service, user_service):
        user_service.set_refresh_token.side_effect = asyncpg.PostgresError("connection lost")

        with pytest.raises(InternalError, match="generating tokens"):
            await session_service.login(username="janed", email=None, password="secret")


class TestLogout:
    async def test_clears_stored_token(self, session_service, user_service):
        user_id = uuid4()

        await session_service.logout(user_id)

        user_service.set_refresh_token.assert_awaited_once_with(user_id, None)

    async def test_idempotent(self, session_service, user_service):
        user_id = uuid4()

        await session_service.logout(user_id)
        await session_service.logout(user_id)

        assert user_service.set_refresh_token.await_count == 2


class TestRefresh:
    async def test_rotates_current_token(self, session_service, user_service, token_service, user):
        current = token_service.create_refresh_token(user)
        user_service.get_refresh_token.return_value = current

        tokens = await session_service.refresh(current)

        assert tokens.refresh_token != current
        user_service.set_refresh_token.assert_awaited_once_with(user.id, tokens.refresh_token)

    async def test_missing_token(self, session_service):
        with pytest.raises(AuthenticationError, match="Unauthorized request"):
            await session_service.refresh(None)

    async def test_invalid_token(self, session_service):
        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            await session_service.refresh("garbage")

    async def test_superseded_token_rejected(self, session_service, user_service, token_service, user):
        old = token_service.create_refresh_token(user)
        user_service.get_refresh_token.return_value = token_service.create_refresh_token(user)

        with pytest.raises(AuthenticationError, match="expired or used"):
            await session_service.refresh(old)

        user_service.set_refresh_token.assert_not_awaited()

    async def test_token_after_logout_rejected(self, session_service, user_service, token_service, user):
        token = token_service.create_refresh_token(user)
        user_service.get_refresh_token.return_value = None

        with pytest.raises(AuthenticationError):
            await session_service.refresh(token)

    async def test_unknown_user(self, session_service, user_service, token_service, user):
        token = token_service.create_refresh_token(user)
        user_service.get_by_id.return_value = None

        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            await session_service.refresh(token)


class TestCookies:
    def test_set_uses_http_only_secure_cookies(self):
        response = Response()

        set_token_cookies(response, TokenPair(access_token="a", refresh_token="r"))

        cookies = response.headers.getlist("set-cookie")
        assert len(cookies) == 2
        assert cookies[0].startswith(f"{ACCESS_COOKIE_NAME}=a")
        assert cookies[1].startswith(f"{REFRESH_COOKIE_NAME}=r")
        for cookie in cookies:
            assert "HttpOnly" in cookie
            assert "Secure" in cookie

    def test_clear_matches_set_attributes(self):
        response = Response()

        clear_token_cookies(response)

        cookies = response.headers.getlist("set-cookie")
        assert len(cookies) == 2
        for cookie in cookies:
            assert "Max-Age=0" in cookie
            assert "HttpOnly" in cookie
            assert "Secure" in cookie
            assert "Path=/" in cookie
