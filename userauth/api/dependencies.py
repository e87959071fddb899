"""FastAPI dependencies: service wiring and request authentication."""

from typing import AsyncGenerator, Optional
from uuid import UUID

import asyncpg
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from userauth.database import get_pool
from userauth.errors import AuthenticationError
from userauth.models.user import User
from userauth.services.media_service import MediaService
from userauth.services.registration_service import RegistrationService
from userauth.services.session_service import ACCESS_COOKIE_NAME, SessionService
from userauth.services.token_service import TokenInvalidError, TokenService
from userauth.services.user_service import UserService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_pool() -> asyncpg.Pool:
    """Provide the process-wide pool created during application startup."""
    return await get_pool()


def get_user_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> UserService:
    return UserService(pool)


def get_token_service() -> TokenService:
    return TokenService()


async def get_media_service() -> AsyncGenerator[MediaService, None]:
    """Provide a media uploader whose HTTP client is closed after the request."""
    service = MediaService()
    try:
        yield service
    finally:
        await service.close()


def get_session_service(
    user_service: UserService = Depends(get_user_service),
    token_service: TokenService = Depends(get_token_service),
) -> SessionService:
    return SessionService(user_service, token_service)


def get_registration_service(
    user_service: UserService = Depends(get_user_service),
    media_service: MediaService = Depends(get_media_service),
) -> RegistrationService:
    return RegistrationService(user_service, media_service)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    user_service: UserService = Depends(get_user_service),
    token_service: TokenService = Depends(get_token_service),
) -> User:
    """Resolve the authenticated user from the access token.

    The ``accessToken`` cookie is tried first, then an ``Authorization:
    Bearer`` header, so a stale cookie does not mask a valid header token.

    Raises:
        AuthenticationError: If the token is missing, invalid, expired, or
            names a user that no longer exists
    """
    candidates = [request.cookies.get(ACCESS_COOKIE_NAME)]
    if credentials is not None:
        candidates.append(credentials.credentials)
    tokens = [token for token in candidates if token]

    if not tokens:
        raise AuthenticationError("Unauthorized request")

    user_id = None
    for token in tokens:
        try:
            payload = token_service.decode_access_token(token)
            user_id = UUID(payload["sub"])
            break
        except (TokenInvalidError, ValueError):
            continue

    if user_id is None:
        raise AuthenticationError("Invalid access token")

    user = await user_service.get_by_id(user_id)
    if user is None:
        raise AuthenticationError("Invalid access token")

    return user
