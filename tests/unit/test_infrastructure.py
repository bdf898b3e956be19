"""Unit tests for the infrastructure layer: HTTP client, email and storage."""

import hashlib
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from config import EmailSettings, StorageSettings
from errors import UpstreamError
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.storage.cloudinary import CloudinaryStorageProvider, sign_params
from infrastructure.storage.protocol import UploadedFile


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post("http://example.com")
        assert resp.status_code == 200
        await client.aclose()

    async def test_get_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "get", return_value=fake_resp)
        resp = await client.get("http://example.com")
        assert resp.status_code == 200
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(
            client._client, "post", side_effect=httpx.ConnectTimeout("timeout")
        )
        with pytest.raises(httpx.ConnectTimeout, match="timeout"):
            await client.post("http://example.com")
        await client.aclose()

    async def test_timeout_is_applied(self):
        async with HttpClient(timeout=2.5) as client:
            assert client.timeout == 2.5
            assert client._client.timeout.connect == 2.5


# ── ZeptoMailProvider ─────────────────────────────────────────────────────────


class TestZeptoMailProvider:
    def _make(self, token="test-token", render=True):
        settings = EmailSettings(
            zepto_api_token=token,
            zepto_from_email="noreply@example.com",
            zepto_from_name="Onboarding",
        )
        http = MagicMock()
        http.post = AsyncMock(return_value=MagicMock(status_code=200))
        provider = ZeptoMailProvider(settings=settings, http_client=http, otp_ttl_minutes=10)
        if not render:
            jinja = MagicMock()
            jinja.get_template.return_value.render.return_value = "<html>test</html>"
            provider._jinja = jinja
        return provider, http

    async def test_registration_otp_makes_post(self):
        provider, http = self._make()
        result = await provider.send_registration_otp("ada@example.com", "Ada", "123456")
        assert result is True
        http.post.assert_awaited_once()

    async def test_registration_otp_renders_code_and_window(self):
        provider, http = self._make()
        await provider.send_registration_otp("ada@example.com", "Ada", "123456")
        payload = http.post.call_args.kwargs["json"]
        assert "123456" in payload["htmlbody"]
        assert "10 minutes" in payload["htmlbody"]
        assert "123456" in payload["textbody"]
        assert payload["subject"] == "Your OTP for Account Verification"
        assert payload["to"][0]["email_address"]["address"] == "ada@example.com"

    async def test_resend_uses_new_otp_subject(self):
        provider, http = self._make()
        await provider.send_registration_otp("ada@example.com", None, "654321", resend=True)
        payload = http.post.call_args.kwargs["json"]
        assert payload["subject"] == "Your New OTP for Account Verification"
        assert "new verification code" in payload["htmlbody"]

    async def test_password_reset_template(self):
        provider, http = self._make()
        assert await provider.send_password_reset_otp("ada@example.com", "Ada", "111222") is True
        payload = http.post.call_args.kwargs["json"]
        assert payload["subject"] == "Your OTP for Password Reset"
        assert "111222" in payload["htmlbody"]

    async def test_returns_false_when_token_empty(self):
        provider, http = self._make(token="", render=False)
        assert await provider.send_registration_otp("u@e.com", None, "000000") is False
        http.post.assert_not_called()

    async def test_returns_false_on_non_2xx(self):
        provider, http = self._make(render=False)
        http.post = AsyncMock(return_value=MagicMock(status_code=422, text="Unprocessable"))
        assert await provider.send_registration_otp("u@e.com", None, "000000") is False

    async def test_returns_false_on_exception(self):
        provider, http = self._make(render=False)
        http.post = AsyncMock(side_effect=httpx.ReadTimeout("timeout"))
        assert await provider.send_password_reset_otp("u@e.com", None, "000000") is False

    async def test_auth_header_prepends_prefix(self):
        provider, http = self._make(token="rawtoken", render=False)
        await provider.send_registration_otp("u@e.com", "Ada", "123456")
        auth = http.post.call_args.kwargs["headers"]["Authorization"]
        assert auth == "Zoho-enczapikey rawtoken"

    async def test_auth_header_not_double_prefixed(self):
        provider, http = self._make(token="Zoho-enczapikey alreadyprefixed", render=False)
        http.post = AsyncMock(return_value=MagicMock(status_code=201))
        await provider.send_password_reset_otp("u@e.com", None, "654321")
        auth = http.post.call_args.kwargs["headers"]["Authorization"]
        assert auth.count("Zoho-enczapikey") == 1


# ── Cloudinary storage ────────────────────────────────────────────────────────


def test_sign_params_sorted_with_secret_appended():
    expected = hashlib.sha1(b"folder=kyc/front&timestamp=1700000000shh").hexdigest()
    assert sign_params({"timestamp": "1700000000", "folder": "kyc/front"}, "shh") == expected


class TestCloudinaryStorageProvider:
    def _make(self, configured=True):
        settings = StorageSettings(
            cloudinary_cloud_name="demo" if configured else "",
            cloudinary_api_key="123",
            cloudinary_api_secret="shh",
        )
        http = MagicMock()
        provider = CloudinaryStorageProvider(settings, http, clock=lambda: 1700000000.7)
        return provider, http

    def _file(self, content=b"jpeg-bytes"):
        return UploadedFile(filename="front.jpg", content=content, content_type="image/jpeg")

    async def test_upload_returns_secure_url(self):
        provider, http = self._make()
        resp = MagicMock(status_code=200)
        resp.json.return_value = {"secure_url": "https://res.cloudinary.com/demo/front.jpg"}
        http.post = AsyncMock(return_value=resp)

        url = await provider.upload(self._file(), "kyc/front")

        assert url == "https://res.cloudinary.com/demo/front.jpg"
        args, kwargs = http.post.call_args
        assert args[0] == "https://api.cloudinary.com/v1_1/demo/auto/upload"
        data = kwargs["data"]
        assert data["folder"] == "kyc/front"
        assert data["timestamp"] == "1700000000"
        assert data["api_key"] == "123"
        assert data["signature"] == sign_params(
            {"folder": "kyc/front", "timestamp": "1700000000"}, "shh"
        )
        assert kwargs["files"]["file"] == ("front.jpg", b"jpeg-bytes", "image/jpeg")

    async def test_not_configured_raises(self):
        provider, http = self._make(configured=False)
        http.post = AsyncMock()
        with pytest.raises(UpstreamError):
            await provider.upload(self._file(), "kyc/front")
        http.post.assert_not_called()

    async def test_empty_file_raises(self):
        provider, http = self._make()
        http.post = AsyncMock()
        with pytest.raises(UpstreamError):
            await provider.upload(self._file(content=b""), "kyc/front")
        http.post.assert_not_called()

    async def test_transport_error_raises_upstream(self):
        provider, http = self._make()
        http.post = AsyncMock(side_effect=httpx.ConnectError("down"))
        with pytest.raises(UpstreamError):
            await provider.upload(self._file(), "kyc/back")

    @pytest.mark.parametrize("status", [400, 401, 500])
    async def test_rejected_upload_raises(self, status):
        provider, http = self._make()
        http.post = AsyncMock(return_value=MagicMock(status_code=status, text="nope"))
        with pytest.raises(UpstreamError):
            await provider.upload(self._file(), "kyc/selfie")

    async def test_missing_secure_url_raises(self):
        provider, http = self._make()
        resp = MagicMock(status_code=200)
        resp.json.return_value = {}
        http.post = AsyncMock(return_value=resp)
        with pytest.raises(UpstreamError):
            await provider.upload(self._file(), "vehicles")
