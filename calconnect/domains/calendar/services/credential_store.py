"""Persistence of OAuth credentials, one record per identity."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from calconnect.domains.calendar.errors import ClientInputError, StorageError
from calconnect.domains.calendar.models.credential_record import CredentialRecord
from calconnect.domains.calendar.schemas import Credential
from calconnect.extensions import db

logger = logging.getLogger(__name__)


def _require_identity(identity: str) -> str:
    identity = (identity or "").strip()
    if not identity:
        raise ClientInputError("An identity is required to look up credentials.")
    return identity


def get(identity: str) -> Optional[CredentialRecord]:
    """
    Fetch the stored credential record for an identity.

    Returns:
        The record, or None when nothing is stored

    Raises:
        StorageError: If the database cannot be queried
    """
    identity = _require_identity(identity)
    try:
        return CredentialRecord.query.filter_by(identity=identity).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Credential lookup failed for {identity}: {e}")
        raise StorageError(f"Failed to load credentials: {e}") from e


def upsert(
    identity: str,
    access_token: str,
    refresh_token: Optional[str],
    expiry: Optional[datetime],
) -> CredentialRecord:
    """
    Save or update the credential record for an identity.

    The access token and expiry are always written together. A missing
    refresh token keeps whatever was stored before.

    Raises:
        ClientInputError: If identity or access token is empty
        StorageError: If the write fails
    """
    identity = _require_identity(identity)
    if not access_token:
        raise ClientInputError("An access token is required.")

    try:
        record = CredentialRecord.query.filter_by(identity=identity).first()
        if record:
            record.access_token = access_token
            record.expiry = expiry
            record.refresh_token = refresh_token or record.refresh_token
        else:
            record = CredentialRecord(
                identity=identity,
                access_token=access_token,
                refresh_token=refresh_token,
                expiry=expiry,
            )
            db.session.add(record)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Credential upsert failed for {identity}: {e}")
        raise StorageError(f"Failed to save credentials: {e}") from e

    logger.info(f"Stored credentials for {identity} (expiry={expiry})")
    return record


def save_credential(credential: Credential) -> CredentialRecord:
    """Persist a credential value."""
    return upsert(
        credential.identity,
        credential.access_token,
        credential.refresh_token,
        credential.expiry,
    )


def to_credential(record: CredentialRecord) -> Credential:
    return Credential(
        identity=record.identity,
        access_token=record.access_token,
        refresh_token=record.refresh_token,
        expiry=record.expiry,
    )
