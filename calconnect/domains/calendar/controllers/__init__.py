"""Calendar domain controllers."""

from calconnect.domains.calendar.controllers.calendar_pages import calendar_pages_bp

__all__ = ["calendar_pages_bp"]
