"""Access and refresh token issuance (JWT)."""

import secrets
from datetime import datetime, timedelta, timezone

import jwt
import structlog

from userauth.config import get_settings
from userauth.models.auth import TokenPair
from userauth.models.user import User

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenGenerationError(Exception):
    """Raised when a token cannot be signed."""


class TokenInvalidError(Exception):
    """Raised when a token is expired, tampered with, or of the wrong type."""


class TokenService:
    """Creates and decodes the signed tokens bound to a user.

    Issuing tokens has no side effects; persisting the refresh token is the
    caller's job.
    """

    def __init__(self):
        self.settings = get_settings()

    def _sign(self, payload: dict, secret: str) -> str:
        if not secret:
            raise TokenGenerationError("Token secret is not configured")
        if not payload.get("sub"):
            raise TokenGenerationError("Token subject is missing")
        try:
            return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise TokenGenerationError(str(e)) from e

    def create_access_token(self, user: User) -> str:
        """Create a short-lived access token.

        Args:
            user: User the token identifies

        Returns:
            Encoded JWT string

        Raises:
            TokenGenerationError: If signing fails
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "full_name": user.full_name,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + timedelta(minutes=self.settings.access_token_expire_minutes),
        }
        return self._sign(payload, self.settings.access_token_secret)

    def create_refresh_token(self, user: User) -> str:
        """Create a longer-lived refresh token.

        Only the user id is embedded. The random ``jti`` keeps two tokens
        issued within the same second distinct.

        Raises:
            TokenGenerationError: If signing fails
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "type": REFRESH_TOKEN_TYPE,
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + timedelta(days=self.settings.refresh_token_expire_days),
        }
        return self._sign(payload, self.settings.refresh_token_secret)

    def generate_token_pair(self, user: User) -> TokenPair:
        """Create an access/refresh token pair for a user."""
        pair = TokenPair(
            access_token=self.create_access_token(user),
            refresh_token=self.create_refresh_token(user),
        )
        logger.debug(
            "token_pair_created",
            user_id=str(user.id),
            access_expires_minutes=self.settings.access_token_expire_minutes,
            refresh_expires_days=self.settings.refresh_token_expire_days,
        )
        return pair

    def _decode(self, token: str, secret: str, expected_type: str) -> dict:
        try:
            payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise TokenInvalidError(f"{expected_type.capitalize()} token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid {expected_type} token: {e}")

        if payload.get("type") != expected_type or not payload.get("sub"):
            raise TokenInvalidError(f"Invalid {expected_type} token payload")
        return payload

    def decode_access_token(self, token: str) -> dict:
        """Decode and validate an access token.

        Raises:
            TokenInvalidError: If the token is invalid, expired, or not an access token
        """
        return self._decode(token, self.settings.access_token_secret, ACCESS_TOKEN_TYPE)

    def decode_refresh_token(self, token: str) -> dict:
        """Decode and validate a refresh token.

        Raises:
            TokenInvalidError: If the token is invalid, expired, or not a refresh token
        """
        return self._decode(token, self.settings.refresh_token_secret, REFRESH_TOKEN_TYPE)
