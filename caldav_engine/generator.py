"""Generation of single-event iCalendar documents.

Events in UTC are written with ``Z``-suffixed date-times. Events in any other
zone are written as local wall-clock times with a ``TZID`` parameter, preceded
by a VTIMEZONE block when the zone is present in the rule table. A zone the
table does not know still gets its ``TZID`` parameter but no VTIMEZONE block,
so consumers must tolerate the dangling reference.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from icalendar import Calendar as iCalendar
from icalendar import Event as iEvent
from icalendar import Timezone, TimezoneDaylight, TimezoneStandard, vRecur

from .config import EngineConfig
from .debug import logger
from .timezones import TimezoneRule, TimezoneTable, Transition, parse_utc_offset

_UID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class EventDescriptor:
    """Minimal description of an event to create.

    Naive ``start``/``end`` values are wall-clock readings in ``timezone``.
    Aware values are converted into ``timezone`` first.
    """

    title: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    timezone: str = "UTC"
    uid: str | None = None


def generate_event_uid(namespace: str = "caldav-engine") -> str:
    """Generate a unique event UID (``<epoch millis>-<random>@<namespace>``)."""
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_UID_ALPHABET, k=9))
    return f"{millis}-{suffix}@{namespace}"


def _observance(component: TimezoneStandard | TimezoneDaylight, transition: Transition, offset_from: str) -> None:
    component.add("dtstart", transition.anchor)
    component.add("tzoffsetfrom", parse_utc_offset(offset_from))
    component.add("tzoffsetto", transition.utcoffset)
    if transition.rrule:
        component.add("rrule", vRecur.from_ical(transition.rrule))


def build_vtimezone(rule: TimezoneRule) -> Timezone:
    """Build a VTIMEZONE component from a rule table entry.

    Args:
        rule: Timezone rule

    Returns:
        VTIMEZONE with a STANDARD and, if the zone observes daylight saving,
        a DAYLIGHT sub-component
    """
    vtimezone = Timezone()
    vtimezone.add("tzid", rule.tzid)

    standard = TimezoneStandard()
    _observance(standard, rule.standard, rule.daylight_offset or rule.standard_offset)
    vtimezone.add_component(standard)

    if rule.daylight is not None:
        daylight = TimezoneDaylight()
        _observance(daylight, rule.daylight, rule.standard_offset)
        vtimezone.add_component(daylight)

    return vtimezone


def _wall_clock(value: datetime, timezone: str, zones: TimezoneTable) -> datetime:
    """Naive wall-clock reading of ``value`` in a non-UTC ``timezone``."""
    if value.tzinfo is None:
        return value

    rule_tz = zones.tzinfo(timezone)
    if rule_tz is None:
        # Unknown zone: assume a UTC-equivalent offset
        return value.astimezone(UTC).replace(tzinfo=None)
    return value.astimezone(rule_tz).replace(tzinfo=None)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def generate_ical_event(descriptor: EventDescriptor, config: EngineConfig | None = None) -> str:
    """Render an event descriptor as a complete VCALENDAR document.

    Args:
        descriptor: Event to render
        config: Engine configuration (PRODID, UID namespace, rule table)

    Returns:
        iCalendar text with CRLF line endings

    Raises:
        ValueError: If the title is empty

    Example:
        >>> event = EventDescriptor("Standup", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 9, 15),
        ...                         timezone="Europe/Paris")
        >>> "DTSTART;TZID=Europe/Paris:20240315T090000" in generate_ical_event(event)
        True
    """
    config = config or EngineConfig()

    if not descriptor.title:
        raise ValueError("event title is required")

    timezone = descriptor.timezone or "UTC"
    is_utc = timezone.upper() == "UTC"

    if is_utc:
        start, end = _utc(descriptor.start), _utc(descriptor.end)
    else:
        start = _wall_clock(descriptor.start, timezone, config.timezones)
        end = _wall_clock(descriptor.end, timezone, config.timezones)

    if end < start:
        logger.debug(f"Event {descriptor.title!r} ends before it starts, writing it as given")

    cal = iCalendar()
    cal.add("prodid", config.prodid)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")

    if not is_utc:
        rule = config.timezones.lookup(timezone)
        if rule is not None:
            cal.add_component(build_vtimezone(rule))
        else:
            logger.debug(f"Timezone {timezone!r} not in rule table, omitting VTIMEZONE")

    event = iEvent()
    event.add("uid", descriptor.uid or generate_event_uid(config.uid_namespace))
    event.add("dtstamp", datetime.now(UTC))

    if is_utc:
        event.add("dtstart", start)
        event.add("dtend", end)
    else:
        event.add("dtstart", start, parameters={"TZID": timezone})
        event.add("dtend", end, parameters={"TZID": timezone})

    event.add("summary", descriptor.title)

    if descriptor.description:
        event.add("description", descriptor.description)

    if descriptor.location:
        event.add("location", descriptor.location)

    cal.add_component(event)
    ical_str: str = cal.to_ical().decode("utf-8")
    return ical_str
