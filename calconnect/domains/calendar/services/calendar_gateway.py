"""Google Calendar v3 REST calls signed with an explicit credential."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from flask import current_app
from pydantic import ValidationError

from calconnect.domains.calendar.errors import (
    AuthorizationError,
    ClientInputError,
    NotFoundError,
    UpstreamError,
)
from calconnect.domains.calendar.schemas import Credential, Event, EventDraft

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


def list_upcoming_events(
    credential: Optional[Credential],
    calendar_id: str = "primary",
    now: Optional[datetime] = None,
) -> List[Event]:
    """
    List events starting from now, recurring events expanded into instances.

    Returns:
        Events ordered by ascending start time (empty list when none)

    Raises:
        AuthorizationError: If the credential is missing or rejected
        UpstreamError: On any other failure
    """
    now = now or datetime.now(timezone.utc)
    params = {
        "timeMin": now.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        "singleEvents": "true",
        "orderBy": "startTime",
    }
    data = _request(credential, "GET", _events_path(calendar_id), params=params)

    try:
        events = [Event.model_validate(item) for item in data.get("items") or []]
        return sorted(events, key=lambda event: event.start_sort_key)
    except (ValidationError, ValueError) as e:
        raise UpstreamError(f"Malformed event list from Google: {e}") from e


def create_event(
    credential: Optional[Credential],
    draft: EventDraft,
    calendar_id: str = "primary",
) -> Event:
    """Insert one event and return it with the provider-assigned id."""
    data = _request(credential, "POST", _events_path(calendar_id), json=draft.to_payload())
    try:
        return Event.model_validate(data)
    except ValidationError as e:
        raise UpstreamError(f"Malformed event from Google: {e}") from e


def delete_event(
    credential: Optional[Credential],
    event_id: str,
    calendar_id: str = "primary",
) -> None:
    """
    Delete one event.

    Raises:
        ClientInputError: If event_id is empty (no request is made)
        NotFoundError: If the event does not exist or was already deleted
    """
    if not event_id or not event_id.strip():
        raise ClientInputError("Event ID is required to delete an event.")
    _request(credential, "DELETE", f"{_events_path(calendar_id)}/{quote(event_id, safe='')}")


def _events_path(calendar_id: str) -> str:
    return f"/calendars/{quote(calendar_id or 'primary', safe='')}/events"


def _request(
    credential: Optional[Credential],
    method: str,
    path: str,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    if credential is None or not credential.access_token:
        raise AuthorizationError("No active credential; authenticate first.")

    headers = {"Authorization": f"Bearer {credential.access_token}"}
    timeout = current_app.config.get("GOOGLE_HTTP_TIMEOUT", 30)

    try:
        resp = requests.request(
            method,
            f"{GOOGLE_CALENDAR_API}{path}",
            headers=headers,
            params=params,
            json=json,
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.error(f"Calendar {method} {path} failed for {credential.identity}: {e}")
        raise UpstreamError(f"Failed to reach Google Calendar: {e}") from e

    if resp.status_code == 401:
        raise AuthorizationError("Google rejected the access token")
    if resp.status_code in (404, 410):
        raise NotFoundError("Calendar resource not found", resp.status_code)
    if resp.status_code >= 400:
        message = _error_message(resp)
        logger.error(
            f"Calendar {method} {path} returned {resp.status_code} for {credential.identity}: {message}"
        )
        raise UpstreamError(
            f"Google Calendar request failed ({resp.status_code}): {message}", resp.status_code
        )

    if resp.status_code == 204 or not resp.content:
        return {}
    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamError("Google Calendar returned invalid JSON", resp.status_code) from e
    if not isinstance(data, dict):
        raise UpstreamError("Google Calendar returned an unexpected payload", resp.status_code)
    return data


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason or "unknown error"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("status") or "unknown error"
    return str(error or "unknown error")
