"""Tests for the Google OAuth client: consent URL, code exchange, refresh, state."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests

pytestmark = pytest.mark.unit

from calconnect.domains.calendar.errors import (
    AuthorizationError,
    ClientInputError,
    MissingRefreshTokenError,
    RefreshTokenRejectedError,
    TokenRefreshError,
    UpstreamError,
)
from calconnect.domains.calendar.schemas import Credential
from calconnect.domains.calendar.services import oauth_session
from calconnect.utils import utcnow

TOKEN_POST = "calconnect.domains.calendar.services.oauth_session.requests.post"


def _query(url: str) -> dict:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


class TestAuthorizationUrl:
    def test_forced_consent_url(self, app):
        url = oauth_session.build_authorization_url(
            app.config["GOOGLE_CALENDAR_SCOPES"], prompt_for_consent=True, state="xyz"
        )
        params = _query(url)

        assert url.startswith(oauth_session.GOOGLE_AUTH_URL)
        assert params["client_id"] == "test-client-id"
        assert params["redirect_uri"] == "http://localhost/oauth2callback"
        assert params["response_type"] == "code"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["state"] == "xyz"
        assert params["scope"].split() == app.config["GOOGLE_CALENDAR_SCOPES"]

    def test_no_prompt_without_forced_consent(self, app):
        url = oauth_session.build_authorization_url(["scope-a"], prompt_for_consent=False)
        params = _query(url)

        assert "prompt" not in params
        assert "state" not in params
        assert params["scope"] == "scope-a"


class TestExchangeCode:
    def test_empty_code_rejected_without_request(self, app):
        with patch(TOKEN_POST) as mock_post:
            with pytest.raises(ClientInputError):
                oauth_session.exchange_code("", "user@example.com")
        mock_post.assert_not_called()

    def test_successful_exchange(self, app, google_response):
        payload = {"access_token": "a1", "refresh_token": "r1", "expires_in": 3600}
        before = utcnow()
        with patch(TOKEN_POST, return_value=google_response(200, payload)) as mock_post:
            credential = oauth_session.exchange_code("code-123", "user@example.com")

        sent = mock_post.call_args.kwargs["data"]
        assert sent["grant_type"] == "authorization_code"
        assert sent["code"] == "code-123"
        assert credential.identity == "user@example.com"
        assert credential.access_token == "a1"
        assert credential.refresh_token == "r1"
        assert before + timedelta(seconds=3600) <= credential.expiry
        assert credential.expiry <= utcnow() + timedelta(seconds=3600)

    def test_rejected_code(self, app, google_response):
        payload = {"error": "invalid_grant", "error_description": "Code was already redeemed."}
        with patch(TOKEN_POST, return_value=google_response(400, payload)):
            with pytest.raises(AuthorizationError, match="already redeemed"):
                oauth_session.exchange_code("used", "user@example.com")

    def test_provider_outage(self, app, google_response):
        with patch(TOKEN_POST, return_value=google_response(503, {"error": "backend"})):
            with pytest.raises(UpstreamError) as excinfo:
                oauth_session.exchange_code("code", "user@example.com")
        assert excinfo.value.status == 503

    def test_network_failure(self, app):
        with patch(TOKEN_POST, side_effect=requests.ConnectionError("no route")):
            with pytest.raises(UpstreamError):
                oauth_session.exchange_code("code", "user@example.com")

    def test_missing_access_token_in_payload(self, app, google_response):
        with patch(TOKEN_POST, return_value=google_response(200, {"expires_in": 3600})):
            with pytest.raises(UpstreamError):
                oauth_session.exchange_code("code", "user@example.com")


class TestRefresh:
    def test_without_refresh_token(self, app):
        credential = Credential("user@example.com", "a1", None, None)
        with patch(TOKEN_POST) as mock_post:
            with pytest.raises(MissingRefreshTokenError):
                oauth_session.refresh(credential)
        mock_post.assert_not_called()

    def test_blank_refresh_token_cannot_refresh(self, app):
        credential = Credential("user@example.com", "a1", "", None)
        assert credential.can_refresh is False
        with patch(TOKEN_POST) as mock_post:
            with pytest.raises(MissingRefreshTokenError):
                oauth_session.refresh(credential)
        mock_post.assert_not_called()

    def test_revoked_refresh_token(self, app, google_response):
        credential = Credential("user@example.com", "a1", "revoked", None)
        payload = {"error": "invalid_grant", "error_description": "Token has been expired or revoked."}
        with patch(TOKEN_POST, return_value=google_response(400, payload)):
            with pytest.raises(RefreshTokenRejectedError) as excinfo:
                oauth_session.refresh(credential)
        assert isinstance(excinfo.value, TokenRefreshError)

    def test_refresh_keeps_existing_refresh_token(self, app, google_response):
        credential = Credential("user@example.com", "old", "r1", datetime(2020, 1, 1))
        with patch(
            TOKEN_POST, return_value=google_response(200, {"access_token": "new", "expires_in": 60})
        ) as mock_post:
            refreshed = oauth_session.refresh(credential)

        assert mock_post.call_args.kwargs["data"]["grant_type"] == "refresh_token"
        assert refreshed.access_token == "new"
        assert refreshed.refresh_token == "r1"
        assert refreshed.expiry > utcnow()

    def test_refresh_adopts_rotated_refresh_token(self, app, google_response):
        credential = Credential("user@example.com", "old", "r1", None)
        payload = {"access_token": "new", "refresh_token": "r2", "expires_in": 60}
        with patch(TOKEN_POST, return_value=google_response(200, payload)):
            assert oauth_session.refresh(credential).refresh_token == "r2"


class TestExpiry:
    def test_missing_or_malformed_expires_in(self):
        assert oauth_session.extract_expiry({}) is None
        assert oauth_session.extract_expiry({"expires_in": "soon"}) is None

    def test_string_expires_in_is_coerced(self):
        expiry = oauth_session.extract_expiry({"expires_in": "120"})
        assert utcnow() < expiry <= utcnow() + timedelta(seconds=120)


class TestState:
    def test_round_trip(self, app):
        state = oauth_session.sign_state("user@example.com")
        assert oauth_session.resolve_state(state) == "user@example.com"

    def test_tampered_state_rejected(self, app):
        state = oauth_session.sign_state("user@example.com")
        with pytest.raises(ClientInputError):
            oauth_session.resolve_state(state + "x")

    def test_expired_state_rejected(self, app):
        state = oauth_session.sign_state("user@example.com")
        app.config["OAUTH_STATE_TTL_SECONDS"] = -1
        with pytest.raises(ClientInputError, match="expired"):
            oauth_session.resolve_state(state)
