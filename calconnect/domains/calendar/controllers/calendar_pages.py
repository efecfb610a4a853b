"""Calendar HTML pages: OAuth flow and event list/create/delete."""

from __future__ import annotations

import logging
from functools import partial

from flask import Blueprint, current_app, redirect, request, session
from markupsafe import escape
from pydantic import ValidationError

from calconnect.domains.calendar.errors import (
    AuthorizationError,
    CalendarError,
    ClientInputError,
    UpstreamError,
)
from calconnect.domains.calendar.schemas import demo_event_draft
from calconnect.domains.calendar.services import (
    calendar_gateway,
    credential_store,
    oauth_session,
    token_lifecycle,
)

logger = logging.getLogger(__name__)

calendar_pages_bp = Blueprint("calendar_pages", __name__)

BACK_LINK = '<a href="/">Go Back</a>'


def current_identity() -> str:
    """Identity for this request: the logged-in one, else the configured default."""
    return session.get("identity") or current_app.config["DEFAULT_IDENTITY"]


def _consent_redirect(identity: str):
    url = oauth_session.build_authorization_url(
        current_app.config["GOOGLE_CALENDAR_SCOPES"],
        prompt_for_consent=True,
        state=oauth_session.sign_state(identity),
    )
    return redirect(url)


@calendar_pages_bp.errorhandler(CalendarError)
def _calendar_error(exc: CalendarError):
    logger.error(
        f"{request.method} {request.path} failed for {current_identity()}: "
        f"{type(exc).__name__}: {exc}"
    )
    body = f"<h1>Request failed</h1><p>{escape(str(exc))}</p>"
    if isinstance(exc, AuthorizationError):
        body += '<a href="/reauthenticate">Sign in again</a><br/>'
    return body + BACK_LINK, exc.status_code


@calendar_pages_bp.get("/")
def index():
    return (
        "<h1>Google Calendar API Example</h1>"
        '<a href="/auth">Login with Google</a><br/>'
        '<a href="/events">View Events</a><br/>'
        '<a href="/create-event">Create Event</a>'
    )


@calendar_pages_bp.get("/auth")
def auth():
    """Step 1: redirect to Google's OAuth 2.0 consent screen.

    An ``identity`` parameter may name a new identity or the signed-in one;
    it cannot take over another identity's stored credential.
    """
    requested = request.args.get("identity", "").strip()
    if requested and requested != session.get("identity"):
        if credential_store.get(requested) is not None:
            raise ClientInputError(f"{requested} is already connected; sign in as it first.")
    return _consent_redirect(requested or current_identity())


@calendar_pages_bp.get("/reauthenticate")
def reauthenticate():
    """Force the consent screen again so Google reissues a refresh token."""
    return _consent_redirect(current_identity())


@calendar_pages_bp.get("/oauth2callback")
def oauth2callback():
    """Step 2: exchange the authorization code and store the tokens."""
    error = request.args.get("error")
    if error:
        raise ClientInputError(f"Authorization was not granted: {error}")

    code = request.args.get("code")
    if not code:
        raise ClientInputError("Authorization code not provided.")

    state = request.args.get("state")
    identity = oauth_session.resolve_state(state) if state else current_identity()

    try:
        credential = oauth_session.exchange_code(code, identity)
    except AuthorizationError as e:
        raise UpstreamError(f"Authentication failed: {e}") from e
    credential_store.save_credential(credential)
    session["identity"] = identity

    return (
        "<h1>Login Successful</h1>"
        '<a href="/events">View Events</a><br/>'
        '<a href="/create-event">Create Event</a>'
    )


@calendar_pages_bp.get("/events")
def events():
    """Step 3: list upcoming events."""
    items = token_lifecycle.call_with_refresh(
        current_identity(), calendar_gateway.list_upcoming_events
    )
    if not items:
        return f"<h1>No upcoming events found.</h1>{BACK_LINK}"

    rows = "".join(
        f"<p>{escape(item.summary or '(no title)')} - {escape(item.start.display())}</p>"
        for item in items
    )
    return f"<h1>Upcoming Events</h1>{rows}<br/>{BACK_LINK}"


@calendar_pages_bp.get("/create-event")
def create_event():
    """Step 4: insert the sample event, optionally overridden by query parameters."""
    args = request.args
    attendees = args.get("attendees")
    try:
        draft = demo_event_draft(
            summary=args.get("summary"),
            location=args.get("location"),
            description=args.get("description"),
            start=args.get("start"),
            end=args.get("end"),
            time_zone=args.get("timezone"),
            attendees=[a.strip() for a in attendees.split(",") if a.strip()]
            if attendees is not None
            else None,
        )
    except ValidationError as e:
        raise ClientInputError(f"Invalid event: {e.errors()[0]['msg']}") from e

    event = token_lifecycle.call_with_refresh(
        current_identity(), partial(calendar_gateway.create_event, draft=draft)
    )
    return (
        "<h1>Event Created Successfully</h1>"
        f"<p>Event ID: {escape(event.id)}</p>"
        '<a href="/events">View Events</a>'
    )


@calendar_pages_bp.get("/delete-event/", defaults={"event_id": ""})
@calendar_pages_bp.get("/delete-event/<event_id>")
def delete_event(event_id: str):
    """Step 5: delete an event by id."""
    if not event_id.strip():
        raise ClientInputError("Event ID is required to delete an event.")

    token_lifecycle.call_with_refresh(
        current_identity(), partial(calendar_gateway.delete_event, event_id=event_id)
    )
    return '<h1>Event Deleted Successfully</h1><a href="/events">View Events</a>'
