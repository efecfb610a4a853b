import json
import sys
from datetime import timedelta
from pathlib import Path

import pytest
import requests

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from calconnect import create_app
from calconnect.domains.calendar.models.credential_record import CredentialRecord
from calconnect.extensions import db
from calconnect.utils import utcnow


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, HTTP routes)")


@pytest.fixture()
def app():
    """Per-test app backed by a fresh in-memory database."""
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    try:
        yield app
    finally:
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def identity(app):
    return app.config["DEFAULT_IDENTITY"]


@pytest.fixture()
def stored_credential(app, identity):
    """A valid, unexpired credential for the default identity."""
    record = CredentialRecord(
        identity=identity,
        access_token="access-valid",
        refresh_token="refresh-valid",
        expiry=utcnow() + timedelta(hours=1),
    )
    db.session.add(record)
    db.session.commit()
    return record


@pytest.fixture()
def expired_credential(app, identity):
    """An expired credential that can still be refreshed."""
    record = CredentialRecord(
        identity=identity,
        access_token="access-stale",
        refresh_token="refresh-valid",
        expiry=utcnow() - timedelta(minutes=5),
    )
    db.session.add(record)
    db.session.commit()
    return record


@pytest.fixture()
def google_response():
    """Factory for real ``requests.Response`` objects as Google would send them."""

    def _make(status_code=200, payload=None):
        resp = requests.Response()
        resp.status_code = status_code
        resp._content = b"" if payload is None else json.dumps(payload).encode()
        resp.headers["Content-Type"] = "application/json"
        resp.url = "https://www.googleapis.com/"
        return resp

    return _make
