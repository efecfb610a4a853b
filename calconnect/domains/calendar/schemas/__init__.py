"""Calendar domain Pydantic schemas.

Field names follow the Google Calendar v3 event resource (camelCase on the
wire, snake_case in Python).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


@dataclass(frozen=True)
class Credential:
    """Token set used to sign a single gateway call."""

    identity: str
    access_token: str
    refresh_token: Optional[str] = None
    # Naive UTC
    expiry: Optional[datetime] = None

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)


def _parse_timestamp(raw: str) -> datetime:
    raw = raw.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


class _GoogleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EventTime(_GoogleModel):
    """Start or end of an event: a timestamp, or a date for all-day events."""

    date_time: Optional[str] = Field(default=None, alias="dateTime")
    date: Optional[str] = None
    time_zone: Optional[str] = Field(default=None, alias="timeZone")

    @field_validator("date_time")
    @classmethod
    def _require_time_part(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and "T" not in value:
            raise ValueError("dateTime needs a time part; use date for all-day events")
        return value

    @property
    def is_all_day(self) -> bool:
        return not self.date_time and bool(self.date)

    @classmethod
    def from_text(cls, raw: str, time_zone: Optional[str] = None) -> "EventTime":
        """Date-only text (no ``T``) becomes an all-day date."""
        if "T" in raw:
            return cls(date_time=raw, time_zone=time_zone)
        return cls(date=raw, time_zone=time_zone)

    def as_datetime(self) -> Optional[datetime]:
        """UTC-aware datetime used for ordering; all-day dates map to midnight UTC."""
        if self.date_time:
            parsed = _parse_timestamp(self.date_time)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        if self.date:
            day = datetime.fromisoformat(self.date).date()
            return datetime.combine(day, time.min, tzinfo=timezone.utc)
        return None

    def display(self) -> str:
        return self.date_time or self.date or ""


class Attendee(_GoogleModel):
    # Google omits the email for some resource and room attendees
    email: Optional[str] = Field(default=None, max_length=320)
    display_name: Optional[str] = Field(default=None, alias="displayName")
    response_status: Optional[str] = Field(default=None, alias="responseStatus")
    resource: Optional[bool] = None


class DraftAttendee(Attendee):
    email: str = Field(min_length=3, max_length=320)


class EventDraft(_GoogleModel):
    """Request body for inserting an event."""

    summary: str = Field(min_length=1, max_length=1024)
    location: Optional[str] = None
    description: Optional[str] = None
    start: EventTime
    end: EventTime
    attendees: list[DraftAttendee] = []

    @model_validator(mode="after")
    def _check_range(self):
        start = self.start.as_datetime()
        end = self.end.as_datetime()
        if start is None or end is None:
            raise ValueError("start and end are required")
        if self.start.is_all_day != self.end.is_all_day:
            raise ValueError("start and end must both be dates or both be timestamps")
        if end < start:
            raise ValueError("end must not precede start")
        # All-day end dates are exclusive
        if self.start.is_all_day and end == start:
            raise ValueError("all-day end date must be after the start date")
        return self

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Event(_GoogleModel):
    """Event resource as returned by Google."""

    id: str
    summary: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    html_link: Optional[str] = Field(default=None, alias="htmlLink")
    start: EventTime = EventTime()
    end: EventTime = EventTime()
    attendees: list[Attendee] = []

    @property
    def start_sort_key(self) -> datetime:
        return self.start.as_datetime() or datetime.max.replace(tzinfo=timezone.utc)


def demo_event_draft(
    summary: Optional[str] = None,
    location: Optional[str] = None,
    description: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    time_zone: Optional[str] = None,
    attendees: Optional[list[str]] = None,
) -> EventDraft:
    """Build the sample event inserted by ``/create-event``, with optional overrides."""
    zone = time_zone or "Asia/Kolkata"
    emails = attendees if attendees is not None else ["example@example.com"]
    return EventDraft(
        summary=summary or "Birthday celebration",
        location=location or "Somewhere nice!",
        description=description or "Celebrating a special day!",
        start=EventTime.from_text(start or "2025-01-02T09:00:00+05:30", zone),
        end=EventTime.from_text(end or "2025-01-02T12:00:00+05:30", zone),
        attendees=[DraftAttendee(email=email) for email in emails],
    )


__all__ = [
    "Credential",
    "EventTime",
    "Attendee",
    "DraftAttendee",
    "EventDraft",
    "Event",
    "demo_event_draft",
]
