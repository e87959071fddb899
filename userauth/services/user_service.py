"""Credential store: user records, password hashing and refresh tokens."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import bcrypt
import structlog

from userauth.errors import ConflictError
from userauth.models.user import User

logger = structlog.get_logger(__name__)

# Columns safe to return to clients; password_hash and refresh_token are excluded
PUBLIC_COLUMNS = "id, username, email, full_name, avatar, cover_image, created_at, updated_at"

# bcrypt rejects passwords longer than this many bytes
MAX_PASSWORD_BYTES = 72


def normalize_username(username: Optional[str]) -> Optional[str]:
    """Trim and lowercase a username, mapping blanks to None."""
    if username is None:
        return None
    value = username.strip().lower()
    return value or None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lowercase an email address, mapping blanks to None."""
    if email is None:
        return None
    value = email.strip().lower()
    return value or None


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        avatar=row["avatar"],
        cover_image=row["cover_image"] or "",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UserService:
    """Service for user persistence and credential checks.

    Args:
        pool: asyncpg pool created by ``userauth.database.init_database``
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Malformed hashes and over-long passwords never match.
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(
                encoded,
                password_hash.encode("utf-8"),
            )
        except ValueError:
            return False

    async def exists(self, username: Optional[str], email: Optional[str]) -> bool:
        """Check whether any user already has this username or email."""
        async with self.pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM users WHERE username = $1 OR email = $2
                )
                """,
                normalize_username(username),
                normalize_email(email),
            )
        return bool(found)

    async def create_user(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
        avatar: str,
        cover_image: str = "",
    ) -> User:
        """Insert a new user with a hashed password.

        Args:
            full_name: Display name
            email: Email address (stored lowercased)
            username: Username (stored lowercased)
            password: Plain-text password (will be hashed)
            avatar: Avatar URI, must be non-empty
            cover_image: Cover image URI or empty string

        Returns:
            Created User model

        Raises:
            ConflictError: If the username or email is already taken
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        username = normalize_username(username)
        email = normalize_email(email)
        full_name = full_name.strip()
        password_hash = self.hash_password(password)

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, username, email, full_name, avatar, cover_image,
                                       password_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    user_id,
                    username,
                    email,
                    full_name,
                    avatar,
                    cover_image or "",
                    password_hash,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            logger.warning("user_create_conflict", username=username, email=email)
            raise ConflictError("User already exists with the same username or email")

        logger.info("user_created", user_id=str(user_id), username=username)

        return User(
            id=user_id,
            username=username,
            email=email,
            full_name=full_name,
            avatar=avatar,
            cover_image=cover_image or "",
            created_at=now,
            updated_at=now,
        )

    async def get_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[tuple[User, str]]:
        """Get a user matching either identifier.

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {PUBLIC_COLUMNS}, password_hash
                FROM users
                WHERE username = $1 OR email = $2
                LIMIT 1
                """,
                normalize_username(username),
                normalize_email(email),
            )

        if row is None:
            return None

        return _row_to_user(row), row["password_hash"]

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get the sanitized projection of a user by UUID."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {PUBLIC_COLUMNS}
                FROM users
                WHERE id = $1
                """,
                user_id,
            )

        if row is None:
            return None

        return _row_to_user(row)

    async def get_refresh_token(self, user_id: UUID) -> Optional[str]:
        """Return the currently stored refresh token, if any."""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT refresh_token FROM users WHERE id = $1",
                user_id,
            )

    async def set_refresh_token(self, user_id: UUID, refresh_token: Optional[str]) -> None:
        """Overwrite the stored refresh token; None clears it.

        Only one refresh token is kept per user, so storing a new one
        invalidates the previous session.
        """
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET refresh_token = $1, updated_at = $2
                WHERE id = $3
                """,
                refresh_token,
                datetime.now(timezone.utc),
                user_id,
            )

        logger.debug(
            "refresh_token_stored" if refresh_token else "refresh_token_cleared",
            user_id=str(user_id),
        )
