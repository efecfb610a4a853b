"""Google OAuth2 client: consent URLs, code exchange and token refresh."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, Optional, Type
from urllib.parse import urlencode

import requests
from flask import current_app
from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from calconnect.domains.calendar.errors import (
    AuthorizationError,
    ClientInputError,
    MissingRefreshTokenError,
    RefreshTokenRejectedError,
    UpstreamError,
)
from calconnect.domains.calendar.schemas import Credential
from calconnect.utils import utcnow

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

STATE_SALT = "calconnect.calendar.oauth"


def build_authorization_url(
    requested_scopes: Optional[Iterable[str]] = None,
    prompt_for_consent: bool = True,
    state: Optional[str] = None,
) -> str:
    """
    Generate the Google consent URL.

    Args:
        requested_scopes: Scopes to request (default: GOOGLE_CALENDAR_SCOPES)
        prompt_for_consent: Force the consent screen so Google reissues a
            refresh token even for users who already granted access
        state: Opaque value echoed back to the callback

    Returns:
        Authorization URL to redirect the user to
    """
    config = current_app.config
    scopes = list(requested_scopes or config["GOOGLE_CALENDAR_SCOPES"])

    params = {
        "client_id": config["GOOGLE_CLIENT_ID"],
        "redirect_uri": config["GOOGLE_REDIRECT_URI"],
        "response_type": "code",
        "scope": " ".join(scopes),
        "access_type": "offline",  # Get refresh token
        "include_granted_scopes": "true",
    }
    if prompt_for_consent:
        params["prompt"] = "consent"
    if state:
        params["state"] = state

    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str, identity: str) -> Credential:
    """
    Exchange an authorization code for access and refresh tokens.

    Raises:
        ClientInputError: If the code is empty
        AuthorizationError: If Google rejects the code (expired, reused, malformed)
        UpstreamError: On transport failures or malformed responses
    """
    if not code:
        raise ClientInputError("Authorization code not provided.")

    config = current_app.config
    payload = {
        "client_id": config["GOOGLE_CLIENT_ID"],
        "client_secret": config["GOOGLE_CLIENT_SECRET"],
        "redirect_uri": config["GOOGLE_REDIRECT_URI"],
        "grant_type": "authorization_code",
        "code": code,
    }
    data = _request_token(payload, rejected=AuthorizationError)

    return Credential(
        identity=identity,
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expiry=extract_expiry(data),
    )


def refresh(credential: Credential) -> Credential:
    """
    Mint a new access token from the credential's refresh token.

    Returns:
        New credential for the same identity. The refresh token is carried
        over unless Google rotated it.

    Raises:
        MissingRefreshTokenError: If no refresh token is present
        RefreshTokenRejectedError: If Google rejects the refresh token
        UpstreamError: On transport failures or malformed responses
    """
    if not credential.can_refresh:
        raise MissingRefreshTokenError(
            f"No refresh token stored for {credential.identity}; re-authentication required."
        )

    config = current_app.config
    payload = {
        "client_id": config["GOOGLE_CLIENT_ID"],
        "client_secret": config["GOOGLE_CLIENT_SECRET"],
        "grant_type": "refresh_token",
        "refresh_token": credential.refresh_token,
    }
    data = _request_token(payload, rejected=RefreshTokenRejectedError)

    return Credential(
        identity=credential.identity,
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token") or credential.refresh_token,
        expiry=extract_expiry(data),
    )


def _request_token(
    payload: Dict[str, str], rejected: Type[AuthorizationError]
) -> Dict[str, Any]:
    timeout = current_app.config.get("GOOGLE_HTTP_TIMEOUT", 30)
    try:
        resp = requests.post(GOOGLE_TOKEN_URL, data=payload, timeout=timeout)
    except requests.RequestException as e:
        logger.error(f"Token request ({payload['grant_type']}) failed: {e}")
        raise UpstreamError(f"Could not reach the OAuth token endpoint: {e}") from e

    try:
        data = resp.json() if resp.content else {}
    except ValueError as e:
        raise UpstreamError("OAuth token endpoint returned invalid JSON", resp.status_code) from e
    if not isinstance(data, dict):
        raise UpstreamError("OAuth token endpoint returned an unexpected payload", resp.status_code)

    if resp.status_code >= 500:
        raise UpstreamError(f"OAuth token endpoint error ({resp.status_code})", resp.status_code)
    if resp.status_code != 200:
        description = data.get("error_description") or data.get("error") or "OAuth exchange failed"
        logger.warning(f"Token request ({payload['grant_type']}) rejected: {description}")
        raise rejected(description)

    if not data.get("access_token"):
        raise UpstreamError("OAuth token response is missing access_token", resp.status_code)
    return data


def extract_expiry(token_payload: Dict[str, Any]):
    expires_in = token_payload.get("expires_in")
    if expires_in is None:
        return None
    try:
        expires_in = int(expires_in)
    except (TypeError, ValueError):
        return None
    return utcnow() + timedelta(seconds=expires_in)


def _state_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=STATE_SALT)


def sign_state(identity: str) -> str:
    """Bind the identity to the OAuth round trip."""
    return _state_serializer().dumps({"identity": identity})


def resolve_state(state: str) -> str:
    """Return the identity carried by a signed state value."""
    max_age = current_app.config.get("OAUTH_STATE_TTL_SECONDS", 600)
    try:
        payload = _state_serializer().loads(state, max_age=max_age)
    except SignatureExpired as e:
        raise ClientInputError("OAuth state has expired; start the login again.") from e
    except BadData as e:
        raise ClientInputError("OAuth state is invalid.") from e

    identity = payload.get("identity") if isinstance(payload, dict) else None
    if not identity:
        raise ClientInputError("OAuth state carries no identity.")
    return identity
