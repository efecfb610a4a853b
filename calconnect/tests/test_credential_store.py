"""Tests for the credential store: lookup, upsert semantics and storage failures."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

pytestmark = pytest.mark.integration

from calconnect.domains.calendar.errors import ClientInputError, StorageError
from calconnect.domains.calendar.models.credential_record import CredentialRecord
from calconnect.domains.calendar.schemas import Credential
from calconnect.domains.calendar.services import credential_store
from calconnect.extensions import db


class TestGet:
    def test_returns_none_when_absent(self, app):
        assert credential_store.get("nobody@example.com") is None

    def test_returns_stored_record(self, app, stored_credential, identity):
        record = credential_store.get(identity)

        assert record is not None
        assert record.access_token == "access-valid"
        assert record.refresh_token == "refresh-valid"

    def test_identity_is_the_only_key(self, app, stored_credential):
        assert credential_store.get("someone-else@example.com") is None

    def test_empty_identity_rejected(self, app):
        with pytest.raises(ClientInputError):
            credential_store.get("  ")

    def test_storage_failure_is_not_reported_as_absent(self, app):
        with patch.object(CredentialRecord, "query") as mock_query:
            mock_query.filter_by.return_value.first.side_effect = OperationalError(
                "SELECT", {}, Exception("database is locked")
            )
            with pytest.raises(StorageError):
                credential_store.get("user@example.com")


class TestUpsert:
    def test_inserts_new_record(self, app):
        expiry = datetime(2030, 1, 1, 12, 0, 0)
        record = credential_store.upsert("new@example.com", "a1", "r1", expiry)

        assert record.id is not None
        assert record.identity == "new@example.com"
        assert record.expiry == expiry

    def test_repeated_identical_upsert_leaves_one_record(self, app):
        expiry = datetime(2030, 1, 1, 12, 0, 0)
        credential_store.upsert("dup@example.com", "a1", "r1", expiry)
        credential_store.upsert("dup@example.com", "a1", "r1", expiry)

        rows = CredentialRecord.query.filter_by(identity="dup@example.com").all()
        assert len(rows) == 1
        assert rows[0].access_token == "a1"

    def test_update_overwrites_token_and_expiry_together(self, app, stored_credential, identity):
        new_expiry = datetime(2031, 6, 1, 8, 30, 0)
        credential_store.upsert(identity, "access-new", None, new_expiry)
        db.session.expunge_all()

        record = credential_store.get(identity)
        assert record.access_token == "access-new"
        assert record.expiry == new_expiry

    def test_missing_refresh_token_keeps_previous(self, app, stored_credential, identity):
        credential_store.upsert(identity, "access-new", None, None)

        assert credential_store.get(identity).refresh_token == "refresh-valid"

    def test_new_refresh_token_replaces_previous(self, app, stored_credential, identity):
        credential_store.upsert(identity, "access-new", "refresh-rotated", None)

        assert credential_store.get(identity).refresh_token == "refresh-rotated"

    def test_empty_access_token_rejected(self, app):
        with pytest.raises(ClientInputError):
            credential_store.upsert("user@example.com", "", "r1", None)

    def test_commit_failure_raises_storage_error(self, app):
        with patch.object(db.session, "commit", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(StorageError):
                credential_store.upsert("user@example.com", "a1", "r1", None)

        assert credential_store.get("user@example.com") is None


def test_save_credential_round_trips_through_value(app):
    expiry = datetime(2030, 2, 3, 4, 5, 6, 789000)
    credential = Credential("value@example.com", "a1", "r1", expiry)

    credential_store.save_credential(credential)
    db.session.expunge_all()

    loaded = credential_store.to_credential(credential_store.get("value@example.com"))
    assert loaded == credential


def test_record_expiry_properties(app, expired_credential):
    assert expired_credential.is_expired is True
    assert expired_credential.can_refresh is True

    expired_credential.expiry = expired_credential.expiry + timedelta(days=1)
    assert expired_credential.is_expired is False
