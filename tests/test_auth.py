"""Unit tests for gateway API key authentication."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException

from app.core.auth import fingerprint, parse_api_keys, validate_api_key, verify_api_key
from app.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("gateway-key", {"gateway-key"}),
            ("key1,key2,key3", {"key1", "key2", "key3"}),
            ("key1 , key2  ,  key3", {"key1", "key2", "key3"}),
            ("key1,key2,key1", {"key1", "key2"}),
            ("   ,  ,  ", set()),
            ("", set()),
            (None, set()),
        ],
    )
    def test_parse(self, raw, expected) -> None:
        assert parse_api_keys(raw) == expected


def test_fingerprint_is_stable_and_short() -> None:
    assert fingerprint("secret") == fingerprint("secret")
    assert fingerprint("secret") != fingerprint("Secret")
    assert len(fingerprint("secret")) == 16
    assert "secret" not in fingerprint("secret")


class TestValidateAPIKey:
    @patch("app.core.auth.settings")
    def test_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key("")

    @pytest.mark.parametrize("configured", [None, "", " , "])
    @patch("app.core.auth.settings")
    def test_raises_when_no_keys_configured(self, mock_settings, configured) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = configured

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"
        assert "APP_API_KEYS" in exc_info.value.details["hint"]

    @patch("app.core.auth.settings")
    def test_accepts_configured_keys(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = " key1 , key2 "

        validate_api_key("key1")
        validate_api_key("key2")

    @pytest.mark.parametrize("provided", ["invalid-key", "", " key1 "])
    @patch("app.core.auth.settings")
    def test_rejects_unknown_key(self, mock_settings, provided) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "key1,key2"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key(provided)

        assert exc_info.value.code == "invalid_api_key"


class TestVerifyAPIKeyDependency:
    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        await verify_api_key(x_api_key=None)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("configured", "provided", "detail"),
        [
            ("valid-key", None, "Missing API key"),
            ("valid-key", "wrong-key", "Invalid or missing API key"),
            (None, "some-key", "no valid keys are configured"),
        ],
    )
    @patch("app.core.auth.settings")
    async def test_raises_403(self, mock_settings, configured, provided, detail) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = configured

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key=provided)

        assert exc_info.value.status_code == 403
        assert detail in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "my-valid-key,another-key"

        await verify_api_key(x_api_key="my-valid-key")
        await verify_api_key(x_api_key="another-key")
