"""Media uploads to a Cloudinary-compatible image host."""

import hashlib
import time
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from fastapi import UploadFile

from userauth.config import get_settings

logger = structlog.get_logger(__name__)


@dataclass
class UploadedMedia:
    url: str
    public_id: Optional[str] = None


def sign_params(params: dict, api_secret: str) -> str:
    """Build the upload signature: sha1 of the sorted params plus the secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class MediaService:
    """Uploads files to the media host and returns their public URL.

    Upload problems are logged and reported as ``None``; callers decide
    whether a missing upload is an error.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.settings = get_settings()
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.media_upload_timeout)
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _is_configured(self) -> bool:
        return bool(
            self.settings.cloudinary_cloud_name
            and self.settings.cloudinary_api_key
            and self.settings.cloudinary_api_secret
        )

    async def upload(self, file: Optional[UploadFile]) -> Optional[UploadedMedia]:
        """Upload a file to the media host.

        Args:
            file: Uploaded form file, or None

        Returns:
            UploadedMedia with the public URL, or None if there was nothing to
            upload or the upload failed
        """
        if file is None:
            return None

        if not self._is_configured():
            logger.error("media_host_not_configured")
            return None

        content = await file.read()
        if not content:
            logger.warning("media_upload_empty_file", filename=file.filename)
            return None

        params = {"timestamp": int(time.time())}
        data = {
            **params,
            "api_key": self.settings.cloudinary_api_key,
            "signature": sign_params(params, self.settings.cloudinary_api_secret),
        }
        url = (
            f"{self.settings.cloudinary_base_url}/"
            f"{self.settings.cloudinary_cloud_name}/auto/upload"
        )
        files = {
            "file": (
                file.filename or "upload",
                content,
                file.content_type or "application/octet-stream",
            )
        }

        client = await self._get_client()
        try:
            response = await client.post(url, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(
                "media_upload_failed",
                filename=file.filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if response.status_code >= 400:
            logger.error(
                "media_upload_rejected",
                filename=file.filename,
                status_code=response.status_code,
            )
            return None

        try:
            body = response.json()
        except ValueError:
            logger.error("media_upload_bad_response", filename=file.filename)
            return None

        media_url = body.get("secure_url") or body.get("url")
        if not media_url:
            logger.error("media_upload_missing_url", filename=file.filename)
            return None

        logger.info(
            "media_uploaded",
            filename=file.filename,
            public_id=body.get("public_id"),
            bytes=len(content),
        )
        return UploadedMedia(url=media_url, public_id=body.get("public_id"))
