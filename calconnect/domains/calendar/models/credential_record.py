"""OAuth credential storage for the Google Calendar provider."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from calconnect.extensions import db
from calconnect.utils import utcnow


class CredentialRecord(db.Model):
    """
    Stores the OAuth tokens issued to one identity.

    Exactly one row exists per identity. The access token and its expiry are
    always rewritten together; the refresh token survives re-consents that
    do not return a new one.
    """

    __tablename__ = "credential_record"
    __table_args__ = (
        db.UniqueConstraint("identity", name="uq_credential_record_identity"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    identity: Mapped[str] = mapped_column(db.String(320), nullable=False)

    access_token: Mapped[str] = mapped_column(db.Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(db.Text)

    # Naive UTC
    expiry: Mapped[datetime | None] = mapped_column()

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_expired(self) -> bool:
        """Check if the access token has expired."""
        if not self.expiry:
            return False
        return utcnow() >= self.expiry

    @property
    def can_refresh(self) -> bool:
        """Check if we have a refresh token available."""
        return bool(self.refresh_token)

    def __repr__(self) -> str:
        return f"<CredentialRecord {self.identity}>"
