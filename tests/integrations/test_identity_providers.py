"""Tests for edelivery.integrations.identity: signed tokens and Supabase Auth."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from edelivery.config.settings import IdentitySettings
from edelivery.integrations.base import IntegrationError, InvalidCredential
from edelivery.integrations.identity import (
    SignedTokenIdentityProvider,
    SupabaseIdentityProvider,
    create_token,
    decode_token,
)
from edelivery.models.principal import Principal

SECRET = "test-secret-0123456789abcdef"


def _settings(**overrides) -> IdentitySettings:
    values = {
        "backend": "signed",
        "url": "https://project.supabase.co/",
        "api_key": "anon-key",
        "token_secret": SECRET,
        "token_max_age_seconds": 3600,
        "timeout_seconds": 5.0,
    }
    values.update(overrides)
    return IdentitySettings(**values)


def _response(payload) -> MagicMock:
    cm = MagicMock()
    cm.__enter__.return_value.read.return_value = json.dumps(payload).encode("utf-8")
    return cm


def _http_error(code: int, body: bytes = b"") -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://x", code, "err", {}, io.BytesIO(body))


# ---------------------------------------------------------------------------
# Signed tokens
# ---------------------------------------------------------------------------


class TestSignedTokens:
    def test_decode_created_token(self):
        token = create_token("u-alice", SECRET, email="alice@example.com", role="admin")
        payload = decode_token(token, SECRET, 60)
        assert payload == {"sub": "u-alice", "email": "alice@example.com", "role": "admin"}

    def test_wrong_secret(self):
        token = create_token("u-alice", SECRET)
        assert decode_token(token, "another-secret-0123456789", 60) is None

    def test_garbage(self):
        assert decode_token("not-a-token", SECRET, 60) is None

    def test_expired(self):
        token = create_token("u-alice", SECRET)
        assert decode_token(token, SECRET, -1) is None

    def test_provider_returns_principal(self):
        provider = SignedTokenIdentityProvider(_settings())
        token = create_token("u-bob", SECRET, email="bob@example.com")
        assert provider.verify_token(token) == Principal(
            id="u-bob",
            email="bob@example.com",
            role="user",
        )

    def test_provider_rejects_invalid(self):
        with pytest.raises(InvalidCredential):
            SignedTokenIdentityProvider(_settings()).verify_token("forged")


# ---------------------------------------------------------------------------
# Supabase Auth
# ---------------------------------------------------------------------------

URLOPEN = "edelivery.integrations.identity.urllib.request.urlopen"


class TestSupabase:
    def test_requires_url(self):
        with pytest.raises(IntegrationError, match="identity.url"):
            SupabaseIdentityProvider(_settings(backend="supabase", url=""))

    def test_user_endpoint_and_headers(self):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        user = {"id": "u-1", "email": "a@example.com", "app_metadata": {"role": "admin"}}
        with patch(URLOPEN, return_value=_response(user)) as urlopen:
            principal = provider.verify_token("access-token")

        assert principal == Principal(id="u-1", email="a@example.com", role="admin")
        req = urlopen.call_args[0][0]
        assert req.full_url == "https://project.supabase.co/auth/v1/user"
        assert req.get_header("Authorization") == "Bearer access-token"
        assert req.get_header("Apikey") == "anon-key"
        assert urlopen.call_args.kwargs["timeout"] == 5.0

    def test_role_falls_back_to_user_metadata(self):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        user = {"id": "u-1", "user_metadata": {"role": "instructor"}}
        with patch(URLOPEN, return_value=_response(user)):
            assert provider.verify_token("t").role == "instructor"

    def test_default_role(self):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        with patch(URLOPEN, return_value=_response({"id": "u-1"})):
            assert provider.verify_token("t").role == "user"

    @pytest.mark.parametrize("code", [401, 403])
    def test_rejected_token(self, code):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        with patch(URLOPEN, side_effect=_http_error(code)), pytest.raises(InvalidCredential):
            provider.verify_token("t")

    def test_server_error_is_integration_error(self):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        with (
            patch(URLOPEN, side_effect=_http_error(503, b"maintenance")),
            pytest.raises(IntegrationError) as exc_info,
        ):
            provider.verify_token("t")
        assert exc_info.value.retryable is True
        assert "maintenance" in exc_info.value.detail

    def test_unreachable(self):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        with (
            patch(URLOPEN, side_effect=urllib.error.URLError("refused")),
            pytest.raises(IntegrationError),
        ):
            provider.verify_token("t")

    def test_user_without_id(self):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        with patch(URLOPEN, return_value=_response({})), pytest.raises(InvalidCredential):
            provider.verify_token("t")

    def test_malformed_json(self):
        provider = SupabaseIdentityProvider(_settings(backend="supabase"))
        cm = MagicMock()
        cm.__enter__.return_value.read.return_value = b"<html>"
        with patch(URLOPEN, return_value=cm), pytest.raises(IntegrationError):
            provider.verify_token("t")
