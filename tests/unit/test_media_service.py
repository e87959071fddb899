"""Unit tests for MediaService uploads using httpx.MockTransport."""

import hashlib
from io import BytesIO
from unittest.mock import MagicMock, patch

import httpx
import pytest
from fastapi import UploadFile

from userauth.services.media_service import MediaService, sign_params


def _settings(**overrides):
    values = dict(
        cloudinary_cloud_name="demo-cloud",
        cloudinary_api_key="demo-key",
        cloudinary_api_secret="demo-secret",
        cloudinary_base_url="https://api.cloudinary.test/v1_1",
        media_upload_timeout=5,
    )
    values.update(overrides)
    return MagicMock(**values)


def _service(handler, **settings_overrides) -> MediaService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with patch("userauth.services.media_service.get_settings") as mock_settings:
        mock_settings.return_value = _settings(**settings_overrides)
        return MediaService(client=client)


def _upload(content=b"image-bytes", name="avatar.png") -> UploadFile:
    return UploadFile(file=BytesIO(content), filename=name)


class TestSignParams:
    def test_sorted_params_with_secret(self):
        expected = hashlib.sha1(b"a=1&b=2secret").hexdigest()
        assert sign_params({"b": 2, "a": 1}, "secret") == expected


class TestUpload:
    async def test_returns_secure_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(
                200,
                json={"secure_url": "https://cdn.test/a.png", "public_id": "a"},
            )

        service = _service(handler)
        media = await service.upload(_upload())

        assert media.url == "https://cdn.test/a.png"
        assert media.public_id == "a"
        assert seen["url"] == "https://api.cloudinary.test/v1_1/demo-cloud/auto/upload"
        assert b"demo-key" in seen["body"]
        assert b"image-bytes" in seen["body"]
        await service.close()

    async def test_none_file_is_none_without_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        service = _service(handler)
        assert await service.upload(None) is None

    async def test_rejected_upload_is_none(self):
        service = _service(lambda request: httpx.Response(401, json={"error": "bad key"}))
        assert await service.upload(_upload()) is None

    async def test_transport_error_is_none(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        service = _service(handler)
        assert await service.upload(_upload()) is None

    async def test_response_without_url_is_none(self):
        service = _service(lambda request: httpx.Response(200, json={"public_id": "x"}))
        assert await service.upload(_upload()) is None

    async def test_empty_file_is_none(self):
        def handler(request):
            raise AssertionError("no request expected")

        service = _service(handler)
        assert await service.upload(_upload(content=b"")) is None

    @pytest.mark.parametrize("missing", ["cloudinary_cloud_name", "cloudinary_api_key", "cloudinary_api_secret"])
    async def test_unconfigured_host_is_none(self, missing):
        def handler(request):
            raise AssertionError("no request expected")

        service = _service(handler, **{missing: ""})
        assert await service.upload(_upload()) is None
