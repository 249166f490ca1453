"""Recurrence evaluation for a single target date.

Instead of expanding a rule into its full occurrence set, the evaluator answers
a narrower question: does a recurring event occur on a given calendar date,
and if so, when does that occurrence start and end.

Supported subset: FREQ=DAILY/WEEKLY/MONTHLY/YEARLY with INTERVAL, COUNT,
UNTIL, BYDAY (weekly) and BYMONTHDAY (monthly). Anything else never matches.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo
from enum import Enum

from .contentline import find_properties
from .debug import logger
from .timestamp import Timestamp, parse_ical_date
from .timezones import TimezoneTable

WEEKDAY_TOKENS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


class Frequency(Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


# Day-count approximation used for COUNT exhaustion. Months and years are
# deliberately not calendar-accurate here.
_DAYS_PER_PERIOD = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.MONTHLY: 30,
    Frequency.YEARLY: 365,
}


def _positive_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        number = int(value)
    except ValueError:
        return None
    return number if number > 0 else None


@dataclass(frozen=True)
class RecurrenceRule:
    """Parsed RRULE value.

    Malformed parts are dropped at parse time, so a bad INTERVAL behaves like
    no INTERVAL and a bad UNTIL like no UNTIL.
    """

    freq: str | None = None
    interval: int = 1
    count: int | None = None
    until: Timestamp | None = None
    by_day: tuple[str, ...] = ()
    by_month_day: int | None = None

    @classmethod
    def from_ical(cls, text: str) -> RecurrenceRule:
        """Parse an RRULE value such as ``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE``.

        Args:
            text: RRULE value without the ``RRULE:`` prefix

        Returns:
            Parsed rule (possibly inert)
        """
        parts: dict[str, str] = {}
        for part in text.strip().split(";"):
            key, sep, value = part.partition("=")
            if key.strip() and sep and value.strip():
                parts[key.strip().upper()] = value.strip()

        until = None
        if "UNTIL" in parts:
            parsed_until = parse_ical_date(parts["UNTIL"])
            if parsed_until:
                until = parsed_until
            else:
                logger.debug(f"Ignoring malformed UNTIL {parts['UNTIL']!r}")

        by_day: tuple[str, ...] = ()
        if "BYDAY" in parts:
            tokens = (token.strip().upper() for token in parts["BYDAY"].split(","))
            by_day = tuple(dict.fromkeys(token for token in tokens if token))

        by_month_day = None
        if "BYMONTHDAY" in parts:
            try:
                by_month_day = int(parts["BYMONTHDAY"].split(",")[0])
            except ValueError:
                logger.debug(f"Ignoring malformed BYMONTHDAY {parts['BYMONTHDAY']!r}")

        return cls(
            freq=parts.get("FREQ", "").upper() or None,
            interval=_positive_int(parts.get("INTERVAL")) or 1,
            count=_positive_int(parts.get("COUNT")),
            until=until,
            by_day=by_day,
            by_month_day=by_month_day,
        )

    @property
    def frequency(self) -> Frequency | None:
        """Supported frequency, or None if FREQ is missing or unsupported."""
        if not self.freq:
            return None
        try:
            return Frequency(self.freq)
        except ValueError:
            return None

    @property
    def is_inert(self) -> bool:
        return self.frequency is None


@dataclass(frozen=True)
class ExceptionDateSet:
    """Calendar dates excluded from a recurrence (time of day is ignored)."""

    dates: frozenset[date] = field(default_factory=frozenset)

    @classmethod
    def from_block(cls, block: str) -> ExceptionDateSet:
        """Collect every EXDATE value of an event block."""
        dates: set[date] = set()
        for line in find_properties(block, "EXDATE"):
            for token in line.value.split(","):
                parsed = parse_ical_date(token, block, "EXDATE")
                if parsed:
                    dates.add(parsed.date())
                else:
                    logger.debug(f"Skipping unparseable EXDATE {token!r}: {parsed.reason}")
        return cls(frozenset(dates))

    @classmethod
    def of(cls, values: Iterable[date | datetime | Timestamp]) -> ExceptionDateSet:
        return cls(frozenset(_as_date(value) for value in values))

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, (date, Timestamp)):
            return False
        return _as_date(value) in self.dates

    def __iter__(self) -> Iterator[date]:
        return iter(sorted(self.dates))

    def __len__(self) -> int:
        return len(self.dates)


NO_EXCEPTIONS = ExceptionDateSet()


def _as_date(value: date | datetime | Timestamp) -> date:
    if isinstance(value, Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    return value


class MatchFailure(Enum):
    """Why a recurring event does not occur on a target date."""

    BEFORE_START = "target date precedes the event start"
    EXCLUDED = "target date is an exception date"
    RULE_INERT = "rule has no supported FREQ"
    AFTER_UNTIL = "target date is after UNTIL"
    COUNT_EXHAUSTED = "COUNT occurrences already elapsed"
    PATTERN_MISMATCH = "target date does not fit the rule pattern"


@dataclass(frozen=True)
class NoMatch:
    """Negative evaluation result. Falsy."""

    reason: MatchFailure

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class EventOccurrence:
    """A recurring event projected onto one calendar date."""

    start: Timestamp
    end: Timestamp | None = None


def _week_start(day: date) -> date:
    # Monday-based weeks
    return day - timedelta(days=day.weekday())


def _matches_pattern(rule: RecurrenceRule, start: date, target: date) -> bool:
    frequency = rule.frequency
    interval = rule.interval

    if frequency is Frequency.DAILY:
        days_diff = (target - start).days
        return days_diff >= 0 and days_diff % interval == 0

    if frequency is Frequency.WEEKLY:
        if rule.by_day:
            if WEEKDAY_TOKENS[target.weekday()] not in rule.by_day:
                return False
        elif target.weekday() != start.weekday():
            return False

        weeks_diff = (_week_start(target) - _week_start(start)).days // 7
        return weeks_diff >= 0 and weeks_diff % interval == 0

    if frequency is Frequency.MONTHLY:
        month_day = rule.by_month_day if rule.by_month_day is not None else start.day
        if target.day != month_day:
            return False

        months_diff = (target.year - start.year) * 12 + (target.month - start.month)
        return months_diff >= 0 and months_diff % interval == 0

    if frequency is Frequency.YEARLY:
        # Feb 29 starts only ever match on leap years
        if (target.month, target.day) != (start.month, start.day):
            return False

        years_diff = target.year - start.year
        return years_diff >= 0 and years_diff % interval == 0

    return False


def match_failure(
    start: Timestamp,
    rule: RecurrenceRule,
    target: date,
    exceptions: ExceptionDateSet = NO_EXCEPTIONS,
) -> MatchFailure | None:
    """Decide whether a recurring event occurs on ``target``.

    Args:
        start: Original DTSTART of the event
        rule: Parsed recurrence rule
        target: Calendar date to test
        exceptions: EXDATE dates of the event

    Returns:
        None if the event occurs on the date, otherwise the first reason
        it does not
    """
    start_date = start.date()

    if target < start_date:
        return MatchFailure.BEFORE_START

    if target in exceptions:
        return MatchFailure.EXCLUDED

    frequency = rule.frequency
    if frequency is None:
        return MatchFailure.RULE_INERT

    if rule.until is not None and target > rule.until.date():
        return MatchFailure.AFTER_UNTIL

    if rule.count is not None:
        days_diff = (target - start_date).days
        intervals_passed = days_diff // (_DAYS_PER_PERIOD[frequency] * rule.interval)
        if intervals_passed >= rule.count:
            return MatchFailure.COUNT_EXHAUSTED

    if not _matches_pattern(rule, start_date, target):
        return MatchFailure.PATTERN_MISMATCH

    return None


def is_recurring_event_on_date(
    start: Timestamp,
    rule: RecurrenceRule | str,
    target: date,
    exceptions: ExceptionDateSet = NO_EXCEPTIONS,
) -> bool:
    """Boolean shortcut for :func:`match_failure`."""
    if isinstance(rule, str):
        rule = RecurrenceRule.from_ical(rule)
    if isinstance(target, datetime):
        target = target.date()
    return match_failure(start, rule, target, exceptions) is None


def project_occurrence(
    start: Timestamp,
    target: date,
    end: Timestamp | None = None,
    zones: TimezoneTable | None = None,
    local_tz: tzinfo = UTC,
) -> EventOccurrence:
    """Move an event onto ``target`` keeping its time of day and duration.

    The start keeps its wall-clock time of day on the new date. The end is
    derived from the original duration measured between absolute instants,
    so a daylight saving change between the original and the projected date
    does not stretch or shrink the occurrence.

    Args:
        start: Original DTSTART
        target: Date of the occurrence
        end: Original DTEND, if any
        zones: Rule table used to resolve zone-qualified values
        local_tz: Zone used for floating values

    Returns:
        Projected occurrence; the end keeps the provenance of the original end
        and is omitted when it falls outside the supported date range
    """
    actual_start = start.with_wall(datetime.combine(target, start.wall.time()))
    if end is None:
        return EventOccurrence(actual_start)

    try:
        duration = end.to_utc(zones, local_tz) - start.to_utc(zones, local_tz)
        actual_end = Timestamp.from_instant(
            actual_start.to_utc(zones, local_tz) + duration,
            provenance=end.provenance,
            tzid=end.tzid,
            zones=zones,
            local_tz=local_tz,
        )
    except OverflowError:
        logger.debug(f"Projected end of occurrence on {target} is out of range, dropping it")
        return EventOccurrence(actual_start)

    return EventOccurrence(actual_start, actual_end)


def evaluate_recurrence(
    start: Timestamp,
    rule: RecurrenceRule | str,
    target: date,
    exceptions: ExceptionDateSet = NO_EXCEPTIONS,
    end: Timestamp | None = None,
    zones: TimezoneTable | None = None,
    local_tz: tzinfo = UTC,
) -> EventOccurrence | NoMatch:
    """Match a recurring event against a date and project it on success.

    Args:
        start: Original DTSTART of the event
        rule: Recurrence rule, parsed or as RRULE text
        target: Calendar date to test
        exceptions: EXDATE dates of the event
        end: Original DTEND, if any
        zones: Rule table used to resolve zone-qualified values
        local_tz: Zone used for floating values

    Returns:
        The projected occurrence, or NoMatch with the reason

    Example:
        >>> start = Timestamp.utc(datetime(2024, 1, 1, 9, 0))
        >>> bool(evaluate_recurrence(start, "FREQ=DAILY;INTERVAL=2", date(2024, 1, 2)))
        False
    """
    if isinstance(rule, str):
        rule = RecurrenceRule.from_ical(rule)
    if isinstance(target, datetime):
        target = target.date()

    failure = match_failure(start, rule, target, exceptions)
    if failure is not None:
        return NoMatch(failure)

    return project_occurrence(start, target, end, zones, local_tz)
