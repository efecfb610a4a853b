"""Calendar domain models."""

from calconnect.domains.calendar.models.credential_record import CredentialRecord

__all__ = ["CredentialRecord"]
