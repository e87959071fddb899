"""User registration use case."""

from typing import Optional

import structlog
from fastapi import UploadFile

from userauth.errors import ApiError, ConflictError, InternalError, ValidationError
from userauth.models.user import User
from userauth.services.media_service import MediaService, UploadedMedia
from userauth.services.user_service import MAX_PASSWORD_BYTES, UserService

logger = structlog.get_logger(__name__)


def _log_orphaned_media(*uploads: Optional[UploadedMedia]) -> None:
    """Record uploads that no user record will point to."""
    for upload in uploads:
        if upload is not None:
            logger.warning("media_orphaned", public_id=upload.public_id, url=upload.url)


class RegistrationService:
    """Validates a sign-up, uploads the profile images and creates the user."""

    def __init__(self, user_service: UserService, media_service: MediaService):
        self.user_service = user_service
        self.media_service = media_service

    async def register(
        self,
        full_name: Optional[str],
        email: Optional[str],
        username: Optional[str],
        password: Optional[str],
        avatar: Optional[UploadFile],
        cover_image: Optional[UploadFile] = None,
    ) -> User:
        """Register a new user.

        Args:
            full_name: Display name
            email: Email address
            username: Desired username (stored lowercased)
            password: Plain-text password
            avatar: Required avatar image
            cover_image: Optional cover image

        Returns:
            The created user, re-read from the store

        Raises:
            ValidationError: If a field is blank, the password is too long for
                bcrypt, or the avatar is missing
            ConflictError: If the username or email is taken
            InternalError: If the created user cannot be read back
        """
        if any(not (field or "").strip() for field in (full_name, email, username, password)):
            raise ValidationError("All fields are required")

        # Checked before any upload so a rejected password leaves no hosted media
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        if await self.user_service.exists(username, email):
            raise ConflictError("User already exists with the same username or email")

        if avatar is None:
            raise ValidationError("Avatar file is required")

        uploaded_avatar = await self.media_service.upload(avatar)
        uploaded_cover = await self.media_service.upload(cover_image)

        # A failed avatar upload counts as a missing avatar
        if uploaded_avatar is None:
            if uploaded_cover is not None:
                _log_orphaned_media(uploaded_cover)
            raise ValidationError("Avatar file is required")

        try:
            user = await self.user_service.create_user(
                full_name=full_name,
                email=email,
                username=username,
                password=password,
                avatar=uploaded_avatar.url,
                cover_image=uploaded_cover.url if uploaded_cover else "",
            )
        except ApiError:
            _log_orphaned_media(uploaded_avatar, uploaded_cover)
            raise

        created_user = await self.user_service.get_by_id(user.id)
        if created_user is None:
            logger.error("registered_user_missing", user_id=str(user.id))
            raise InternalError("Something went wrong while registering the user")

        logger.info(
            "user_registered",
            user_id=str(created_user.id),
            username=created_user.username,
            has_cover_image=bool(created_user.cover_image),
        )
        return created_user
