"""Extraction of per-date event records from raw calendar data.

The scanner walks the VEVENT blocks of a document and reports the events
taking place on a target date. An event matches either directly (its DTSTART
falls on the date) or through its RRULE, in which case DTSTART/DTEND of the
reported block are rewritten to the projected occurrence.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import date, datetime, tzinfo
from typing import TYPE_CHECKING, Any

from .config import EngineConfig
from .contentline import find_property, unescape_text, unfold_lines
from .debug import logger
from .recurrence import ExceptionDateSet, RecurrenceRule, evaluate_recurrence
from .timestamp import ParseFailure, Timestamp, format_ical_datetime, parse_ical_date, to_iso_with_timezone

if TYPE_CHECKING:
    from .caldav.caldav import CalendarObject

_VEVENT_RE = re.compile(r"BEGIN:VEVENT\r?\n.*?END:VEVENT", re.DOTALL)


@dataclass(frozen=True)
class EventRecord:
    """Flattened fields of one event occurrence."""

    uid: str = ""
    summary: str = ""
    description: str = ""
    location: str = ""
    url: str = ""
    dt_start: str = ""  # raw DTSTART value
    dt_end: str = ""  # raw DTEND value
    dt_start_iso: str = ""
    dt_end_iso: str = ""
    calendar_data: str = ""  # the VEVENT block
    href: str = ""  # calendar object the block came from
    etag: str = ""
    recurring: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def split_event_blocks(calendar_data: str) -> list[str]:
    """Return the complete ``BEGIN:VEVENT`` ... ``END:VEVENT`` blocks.

    Content lines are unfolded first; a block without its END marker is
    dropped.
    """
    return _VEVENT_RE.findall(unfold_lines(calendar_data))


def _raw_value(block: str, name: str) -> str:
    line = find_property(block, name)
    return line.value.strip() if line else ""


def _text_value(block: str, name: str) -> str:
    return unescape_text(_raw_value(block, name))


def _iso(ts: Timestamp | ParseFailure | None, config: EngineConfig, local_tz: tzinfo) -> str:
    if not ts:
        return ""
    try:
        return to_iso_with_timezone(ts, config.timezones, local_tz)
    except OverflowError:
        logger.debug(f"Instant of {format_ical_datetime(ts)} is out of range, leaving ISO form empty")
        return ""


def event_record_from_block(
    block: str,
    config: EngineConfig | None = None,
    href: str = "",
    etag: str = "",
    recurring: bool = False,
) -> EventRecord:
    """Build an EventRecord from a single VEVENT block.

    Unparseable DTSTART/DTEND values, and values whose instant falls outside
    the supported date range, keep their raw form and get an empty ISO form.
    """
    config = config or EngineConfig()
    local_tz = config.local_tzinfo()

    dt_start = _raw_value(block, "DTSTART")
    dt_end = _raw_value(block, "DTEND")
    parsed_start = parse_ical_date(dt_start, block, "DTSTART") if dt_start else None
    parsed_end = parse_ical_date(dt_end, block, "DTEND") if dt_end else None

    return EventRecord(
        uid=_raw_value(block, "UID"),
        summary=_text_value(block, "SUMMARY"),
        description=_text_value(block, "DESCRIPTION"),
        location=_text_value(block, "LOCATION"),
        url=_raw_value(block, "URL"),
        dt_start=dt_start,
        dt_end=dt_end,
        dt_start_iso=_iso(parsed_start, config, local_tz),
        dt_end_iso=_iso(parsed_end, config, local_tz),
        calendar_data=block,
        href=href,
        etag=etag,
        recurring=recurring,
    )


def project_event_block(
    block: str, target: date, config: EngineConfig | None = None
) -> tuple[str, bool] | None:
    """Check one VEVENT block against a target date.

    Args:
        block: VEVENT block
        target: Calendar date
        config: Engine configuration

    Returns:
        ``(block, recurring)`` if the event takes place on ``target``, where
        ``block`` has DTSTART/DTEND rewritten for recurring matches; None
        otherwise
    """
    config = config or EngineConfig()
    block = unfold_lines(block)

    start_line = find_property(block, "DTSTART")
    if start_line is None:
        logger.debug("Skipping VEVENT without DTSTART")
        return None

    start = parse_ical_date(start_line.value, block, "DTSTART")
    if not start:
        logger.debug(f"Skipping VEVENT with unparseable DTSTART {start_line.value!r}: {start.reason}")
        return None

    if start.date() == target:
        return block, False

    rrule_line = find_property(block, "RRULE")
    if rrule_line is None:
        return None

    end_line = find_property(block, "DTEND")
    end = parse_ical_date(end_line.value, block, "DTEND") if end_line else None

    local_tz = config.local_tzinfo()
    result = evaluate_recurrence(
        start,
        RecurrenceRule.from_ical(rrule_line.value),
        target,
        exceptions=ExceptionDateSet.from_block(block),
        end=end or None,
        zones=config.timezones,
        local_tz=local_tz,
    )
    if not result:
        logger.debug(f"RRULE {rrule_line.value!r} does not match {target}: {result.reason.value}")
        return None

    projected = block.replace(start_line.raw, start_line.with_value(format_ical_datetime(result.start)), 1)
    if end_line is not None and result.end is not None:
        projected = projected.replace(end_line.raw, end_line.with_value(format_ical_datetime(result.end)), 1)

    return projected, True


def find_events_for_date(
    calendar_data: str,
    target: date,
    config: EngineConfig | None = None,
    href: str = "",
    etag: str = "",
) -> list[EventRecord]:
    """Find the events of one calendar document that take place on a date.

    Args:
        calendar_data: iCalendar text (one or more VEVENTs)
        target: Calendar date; datetimes are reduced to their date
        config: Engine configuration
        href: Source calendar object path, copied into the records
        etag: Source calendar object ETag, copied into the records

    Returns:
        One EventRecord per matching VEVENT, in document order
    """
    config = config or EngineConfig()
    if isinstance(target, datetime):
        target = target.date()

    records: list[EventRecord] = []
    for block in split_event_blocks(calendar_data):
        match = project_event_block(block, target, config)
        if match is None:
            continue

        event_block, recurring = match
        records.append(event_record_from_block(event_block, config, href=href, etag=etag, recurring=recurring))

    return records


def scan_calendar_objects(
    objects: Iterable[CalendarObject], target: date, config: EngineConfig | None = None
) -> list[EventRecord]:
    """Run :func:`find_events_for_date` over several calendar objects."""
    config = config or EngineConfig()

    records: list[EventRecord] = []
    scanned = 0
    for obj in objects:
        scanned += 1
        if not obj.data:
            continue
        records.extend(find_events_for_date(obj.data, target, config, href=obj.path, etag=obj.etag))

    logger.debug(f"Found {len(records)} events for {target} in {scanned} calendar objects")
    return records
