"""CalDAV client for the calendar engine.

CalDAV is defined in RFC 4791.
"""

from .caldav import CalendarObject, CreatedEvent, DeletedEvent, EventNotFoundError
from .client import CalDAVClient
from .report import build_calendar_query, parse_calendar_multistatus

__all__ = [
    "CalDAVClient",
    "CalendarObject",
    "CreatedEvent",
    "DeletedEvent",
    "EventNotFoundError",
    "build_calendar_query",
    "parse_calendar_multistatus",
]
