"""caldav-engine - iCalendar date matching and event generation for CalDAV."""

from .config import CalDAVConfig, EngineConfig
from .recurrence import (
    EventOccurrence,
    ExceptionDateSet,
    MatchFailure,
    NoMatch,
    RecurrenceRule,
    evaluate_recurrence,
    is_recurring_event_on_date,
)
from .timestamp import (
    FormatMode,
    ParseFailure,
    Provenance,
    Timestamp,
    format_ical_datetime,
    parse_ical_date,
    to_iso_with_timezone,
)
from .timezones import DEFAULT_TIMEZONES, TimezoneRule, TimezoneTable
from .generator import EventDescriptor, generate_event_uid, generate_ical_event
from .scanner import EventRecord, find_events_for_date
from .caldav import CalDAVClient, CalendarObject, EventNotFoundError
from .internal import HTTPError

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TIMEZONES",
    "CalDAVClient",
    "CalDAVConfig",
    "CalendarObject",
    "EngineConfig",
    "EventDescriptor",
    "EventNotFoundError",
    "EventOccurrence",
    "EventRecord",
    "ExceptionDateSet",
    "FormatMode",
    "HTTPError",
    "MatchFailure",
    "NoMatch",
    "ParseFailure",
    "Provenance",
    "RecurrenceRule",
    "Timestamp",
    "TimezoneRule",
    "TimezoneTable",
    "evaluate_recurrence",
    "find_events_for_date",
    "format_ical_datetime",
    "generate_event_uid",
    "generate_ical_event",
    "is_recurring_event_on_date",
    "parse_ical_date",
    "to_iso_with_timezone",
]
