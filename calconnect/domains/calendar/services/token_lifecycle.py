"""Credential lifecycle around calendar calls: hydrate, refresh, retry once."""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from calconnect.domains.calendar.errors import (
    AuthorizationError,
    MissingRefreshTokenError,
    TokenRefreshError,
)
from calconnect.domains.calendar.schemas import Credential
from calconnect.domains.calendar.services import credential_store, oauth_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


def hydrate(identity: str) -> Optional[Credential]:
    """
    Load the stored credential for an identity.

    Returns None when nothing is stored; the caller's gateway call then fails
    with AuthorizationError. Login is never started on the user's behalf.
    """
    record = credential_store.get(identity)
    if record is None:
        logger.info(f"No stored credentials for {identity}")
        return None
    return credential_store.to_credential(record)


def handle_auth_failure(identity: str, credential: Optional[Credential]) -> Credential:
    """
    Refresh a rejected credential and persist the result.

    Returns:
        The refreshed credential, to be used for exactly one retry

    Raises:
        TokenRefreshError: If there is nothing to refresh or Google rejects
            the refresh token. Terminal: callers must not retry again.
    """
    if credential is None:
        raise MissingRefreshTokenError(
            f"No stored credentials for {identity}; re-authentication required."
        )

    try:
        refreshed = oauth_session.refresh(credential)
    except TokenRefreshError as e:
        logger.error(f"Token refresh failed for {identity}: {e}")
        raise

    credential_store.save_credential(refreshed)
    logger.info(f"Refreshed access token for {identity}")
    return refreshed


def call_with_refresh(identity: str, operation: Callable[[Optional[Credential]], T]) -> T:
    """
    Run a gateway operation, refreshing and retrying once on authorization failure.

    A second AuthorizationError after the refresh propagates unchanged.
    """
    credential = hydrate(identity)
    try:
        return operation(credential)
    except AuthorizationError as e:
        logger.warning(f"Authorization failed for {identity}, refreshing: {e}")
        credential = handle_auth_failure(identity, credential)
    return operation(credential)
