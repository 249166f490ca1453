"""CalDAV value types.

CalDAV is defined in RFC 4791.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CalendarObject:
    """CalDAV calendar object (iCalendar data)."""

    path: str
    data: str  # iCalendar data as string
    etag: str = ""


@dataclass
class CreatedEvent:
    """Result of storing a generated event on the server."""

    uid: str
    path: str
    data: str
    etag: str = ""


@dataclass
class DeletedEvent:
    """Result of removing an event from the server."""

    uid: str
    path: str


class EventNotFoundError(LookupError):
    """No calendar object in the collection carries the requested UID."""

    def __init__(self, uid: str, calendar_path: str):
        self.uid = uid
        self.calendar_path = calendar_path
        super().__init__(f"event with UID {uid} not found in calendar {calendar_path}")
