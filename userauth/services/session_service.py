"""Login, logout and token refresh, plus the cookies that carry the tokens."""

import secrets
from typing import Optional
from uuid import UUID

import asyncpg
import structlog
from fastapi import Response

from userauth.config import get_settings
from userauth.errors import AuthenticationError, InternalError, NotFoundError, ValidationError
from userauth.models.auth import LoginData, TokenPair
from userauth.models.user import User
from userauth.services.token_service import TokenGenerationError, TokenInvalidError, TokenService
from userauth.services.user_service import UserService, normalize_email, normalize_username

logger = structlog.get_logger(__name__)

ACCESS_COOKIE_NAME = "accessToken"
REFRESH_COOKIE_NAME = "refreshToken"


def _cookie_options() -> dict:
    """Attributes shared by set and clear, so browsers match the cookies."""
    settings = get_settings()
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.cookie_samesite,
        "path": "/",
    }


def set_token_cookies(response: Response, tokens: TokenPair) -> None:
    options = _cookie_options()
    response.set_cookie(ACCESS_COOKIE_NAME, tokens.access_token, **options)
    response.set_cookie(REFRESH_COOKIE_NAME, tokens.refresh_token, **options)


def clear_token_cookies(response: Response) -> None:
    options = _cookie_options()
    response.delete_cookie(ACCESS_COOKIE_NAME, **options)
    response.delete_cookie(REFRESH_COOKIE_NAME, **options)


class SessionService:
    """Issues, rotates and revokes the per-user session.

    A user has at most one active refresh token: every issuance overwrites
    the stored value.
    """

    def __init__(self, user_service: UserService, token_service: TokenService | None = None):
        self.user_service = user_service
        self.token_service = token_service or TokenService()

    async def _issue_tokens(self, user: User) -> TokenPair:
        """Generate a token pair and store its refresh token.

        Any failure is reported as a generic InternalError; the cause is
        logged but not exposed.
        """
        try:
            tokens = self.token_service.generate_token_pair(user)
            await self.user_service.set_refresh_token(user.id, tokens.refresh_token)
        except (TokenGenerationError, asyncpg.PostgresError) as e:
            logger.error(
                "token_generation_failed",
                user_id=str(user.id),
                error_type=type(e).__name__,
            )
            raise InternalError("Something went wrong while generating tokens") from None
        return tokens

    async def login(
        self,
        username: Optional[str],
        email: Optional[str],
        password: str,
    ) -> LoginData:
        """Authenticate by username or email and open a new session.

        Raises:
            ValidationError: If neither username nor email is given
            NotFoundError: If no user matches
            AuthenticationError: If the password is wrong
            InternalError: If tokens cannot be issued
        """
        if normalize_username(username) is None and normalize_email(email) is None:
            raise ValidationError("Username or email is required")

        result = await self.user_service.get_by_username_or_email(username, email)
        if result is None:
            raise NotFoundError("User does not exist")

        user, password_hash = result

        if not self.user_service.verify_password(password, password_hash):
            logger.info("login_rejected", user_id=str(user.id))
            raise AuthenticationError("Invalid user credentials")

        tokens = await self._issue_tokens(user)

        logged_in_user = await self.user_service.get_by_id(user.id)
        if logged_in_user is None:
            raise InternalError("Something went wrong while logging in")

        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return LoginData(
            user=logged_in_user,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        )

    async def logout(self, user_id: UUID) -> None:
        """Forget the stored refresh token. Safe to call repeatedly."""
        await self.user_service.set_refresh_token(user_id, None)
        logger.info("user_logged_out", user_id=str(user_id))

    async def refresh(self, incoming_refresh_token: Optional[str]) -> TokenPair:
        """Exchange the current refresh token for a new pair.

        The presented token must equal the stored one; the new pair replaces
        it, so each refresh token works once.

        Raises:
            AuthenticationError: If the token is missing, invalid, or not current
        """
        if not incoming_refresh_token:
            raise AuthenticationError("Unauthorized request")

        try:
            payload = self.token_service.decode_refresh_token(incoming_refresh_token)
            user_id = UUID(payload["sub"])
        except (TokenInvalidError, ValueError):
            raise AuthenticationError("Invalid refresh token")

        user = await self.user_service.get_by_id(user_id)
        if user is None:
            raise AuthenticationError("Invalid refresh token")

        stored = await self.user_service.get_refresh_token(user_id)
        if not stored or not secrets.compare_digest(stored, incoming_refresh_token):
            logger.warning("refresh_token_reuse_rejected", user_id=str(user_id))
            raise AuthenticationError("Refresh token is expired or used")

        tokens = await self._issue_tokens(user)
        logger.info("access_token_refreshed", user_id=str(user_id))
        return tokens
