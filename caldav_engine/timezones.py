"""Static timezone rule table used for VTIMEZONE generation and offset lookup.

Each entry mirrors what a VTIMEZONE block carries: a standard offset, an
optional daylight offset, and for zones with daylight saving the yearly
recurrence rules for both transitions, anchored to a reference year (1970).

The table is built once at import time and never mutated.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import MAXYEAR, datetime, timedelta, tzinfo
from functools import lru_cache
from types import MappingProxyType

from dateutil.rrule import rrulestr

_OFFSET_RE = re.compile(r"([+-])(\d{2})(\d{2})(\d{2})?")
_ANCHOR_FORMAT = "%Y%m%dT%H%M%S"


def parse_utc_offset(offset: str) -> timedelta:
    """Parse a ``±HHMM[SS]`` UTC offset string.

    Args:
        offset: Offset string (e.g. "+0530", "-0800")

    Returns:
        Offset as timedelta

    Raises:
        ValueError: If the offset is malformed
    """
    match = _OFFSET_RE.fullmatch(offset.strip())
    if not match:
        raise ValueError(f"invalid UTC offset: {offset!r}")

    sign, hours, minutes, seconds = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes), seconds=int(seconds or 0))
    return -delta if sign == "-" else delta


@lru_cache(maxsize=512)
def _transition_in_year(rrule: str, anchor: str, year: int) -> datetime | None:
    """Wall-clock instant of a yearly transition rule within the given year."""
    dtstart = datetime.strptime(anchor, _ANCHOR_FORMAT)
    rule = rrulestr(rrule, dtstart=dtstart)
    year_end = datetime(year + 1, 1, 1) if year < MAXYEAR else datetime.max
    occurrences = rule.between(datetime(year, 1, 1), year_end, inc=True)
    return occurrences[0] if occurrences else None


@dataclass(frozen=True)
class Transition:
    """One observance (STANDARD or DAYLIGHT) of a timezone."""

    offset: str  # TZOFFSETTO, e.g. "+0100"
    dtstart: str  # reference-year anchor, e.g. "19701025T030000"
    rrule: str | None = None  # e.g. "FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU"

    @property
    def utcoffset(self) -> timedelta:
        return parse_utc_offset(self.offset)

    @property
    def anchor(self) -> datetime:
        return datetime.strptime(self.dtstart, _ANCHOR_FORMAT)

    def instant_in(self, year: int) -> datetime | None:
        """Wall-clock time at which this observance starts in ``year``."""
        if not self.rrule:
            return None
        return _transition_in_year(self.rrule, self.dtstart, year)


@dataclass(frozen=True)
class TimezoneRule:
    """Standard/daylight description of a single zone."""

    tzid: str
    standard: Transition
    daylight: Transition | None = None

    @property
    def standard_offset(self) -> str:
        return self.standard.offset

    @property
    def daylight_offset(self) -> str | None:
        return self.daylight.offset if self.daylight else None

    @property
    def has_daylight(self) -> bool:
        return bool(self.daylight and self.daylight.rrule and self.standard.rrule)

    def is_daylight(self, wall: datetime) -> bool:
        """Check whether a wall-clock reading falls into daylight saving time.

        Transitions are compared on wall-clock readings, so the repeated hour
        at the end of daylight saving resolves to daylight time.

        Args:
            wall: Naive wall-clock datetime in this zone

        Returns:
            True if the daylight offset applies
        """
        if not self.has_daylight:
            return False

        assert self.daylight is not None
        dst_start = self.daylight.instant_in(wall.year)
        dst_end = self.standard.instant_in(wall.year)
        if dst_start is None or dst_end is None:
            return False

        if dst_start < dst_end:
            # Northern hemisphere: daylight saving inside the year
            return dst_start <= wall < dst_end
        # Southern hemisphere: daylight saving wraps around new year
        return wall >= dst_start or wall < dst_end

    def utcoffset(self, wall: datetime) -> timedelta:
        """UTC offset in effect at a wall-clock reading."""
        if self.is_daylight(wall):
            assert self.daylight is not None
            return self.daylight.utcoffset
        return self.standard.utcoffset


class RuleTimezone(tzinfo):
    """``tzinfo`` view of a :class:`TimezoneRule`."""

    def __init__(self, rule: TimezoneRule) -> None:
        self.rule = rule

    def utcoffset(self, dt: datetime | None) -> timedelta:
        if dt is None:
            return self.rule.standard.utcoffset
        return self.rule.utcoffset(dt.replace(tzinfo=None))

    def dst(self, dt: datetime | None) -> timedelta:
        if dt is None or not self.rule.is_daylight(dt.replace(tzinfo=None)):
            return timedelta(0)
        return self.utcoffset(dt) - self.rule.standard.utcoffset

    def tzname(self, dt: datetime | None) -> str:
        return self.rule.tzid

    def fromutc(self, dt: datetime) -> datetime:
        utc_wall = dt.replace(tzinfo=None)
        if self.rule.has_daylight:
            assert self.rule.daylight is not None
            candidate = utc_wall + self.rule.daylight.utcoffset
            if self.rule.is_daylight(candidate):
                return candidate.replace(tzinfo=self)
        return (utc_wall + self.rule.standard.utcoffset).replace(tzinfo=self)

    def __repr__(self) -> str:
        return f"RuleTimezone({self.rule.tzid!r})"


class TimezoneTable(Mapping[str, TimezoneRule]):
    """Immutable mapping from zone identifier to :class:`TimezoneRule`."""

    def __init__(self, rules: Iterable[TimezoneRule]) -> None:
        by_id = {rule.tzid: rule for rule in rules}
        self._rules = MappingProxyType(by_id)
        self._tzinfos = MappingProxyType({tzid: RuleTimezone(rule) for tzid, rule in by_id.items()})

    def __getitem__(self, tzid: str) -> TimezoneRule:
        return self._rules[tzid]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def lookup(self, tzid: str) -> TimezoneRule | None:
        """Find the rule for a zone. ``None`` means the zone is unknown."""
        return self._rules.get(tzid)

    def tzinfo(self, tzid: str) -> RuleTimezone | None:
        """Find the ``tzinfo`` for a zone. ``None`` means the zone is unknown."""
        return self._tzinfos.get(tzid)


# Transition rules shared by most zones
EU_STANDARD = "FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU"
EU_DAYLIGHT = "FREQ=YEARLY;BYMONTH=3;BYDAY=-1SU"
US_STANDARD = "FREQ=YEARLY;BYMONTH=11;BYDAY=1SU"
US_DAYLIGHT = "FREQ=YEARLY;BYMONTH=3;BYDAY=2SU"
AU_STANDARD = "FREQ=YEARLY;BYMONTH=4;BYDAY=1SU"
AU_DAYLIGHT = "FREQ=YEARLY;BYMONTH=10;BYDAY=1SU"
NZ_DAYLIGHT = "FREQ=YEARLY;BYMONTH=9;BYDAY=-1SU"


def _fixed(tzid: str, offset: str) -> TimezoneRule:
    return TimezoneRule(tzid, Transition(offset, "19700101T000000"))


def _european(tzid: str, standard: str, daylight: str, hour: int) -> TimezoneRule:
    # hour: local standard-time hour at which daylight saving ends
    return TimezoneRule(
        tzid,
        Transition(standard, f"19701025T{hour:02d}0000", EU_STANDARD),
        Transition(daylight, f"19700329T{hour - 1:02d}0000", EU_DAYLIGHT),
    )


def _north_american(tzid: str, standard: str, daylight: str) -> TimezoneRule:
    return TimezoneRule(
        tzid,
        Transition(standard, "19701101T020000", US_STANDARD),
        Transition(daylight, "19700308T020000", US_DAYLIGHT),
    )


DEFAULT_TIMEZONES = TimezoneTable(
    [
        _european("Europe/London", "+0000", "+0100", 2),
        _european("Europe/Lisbon", "+0000", "+0100", 2),
        _european("Europe/Dublin", "+0000", "+0100", 2),
        _european("Europe/Paris", "+0100", "+0200", 3),
        _european("Europe/Berlin", "+0100", "+0200", 3),
        _european("Europe/Amsterdam", "+0100", "+0200", 3),
        _european("Europe/Brussels", "+0100", "+0200", 3),
        _european("Europe/Madrid", "+0100", "+0200", 3),
        _european("Europe/Rome", "+0100", "+0200", 3),
        _european("Europe/Vienna", "+0100", "+0200", 3),
        _european("Europe/Warsaw", "+0100", "+0200", 3),
        _european("Europe/Stockholm", "+0100", "+0200", 3),
        _european("Europe/Copenhagen", "+0100", "+0200", 3),
        _european("Europe/Helsinki", "+0200", "+0300", 4),
        _european("Europe/Athens", "+0200", "+0300", 4),
        _fixed("Europe/Moscow", "+0300"),
        _north_american("America/New_York", "-0500", "-0400"),
        _north_american("America/Chicago", "-0600", "-0500"),
        _north_american("America/Denver", "-0700", "-0600"),
        _north_american("America/Los_Angeles", "-0800", "-0700"),
        _north_american("America/Toronto", "-0500", "-0400"),
        _north_american("America/Vancouver", "-0800", "-0700"),
        _fixed("America/Mexico_City", "-0600"),
        _fixed("America/Sao_Paulo", "-0300"),
        _fixed("America/Buenos_Aires", "-0300"),
        _fixed("Asia/Dubai", "+0400"),
        _fixed("Asia/Shanghai", "+0800"),
        _fixed("Asia/Tokyo", "+0900"),
        _fixed("Asia/Seoul", "+0900"),
        _fixed("Asia/Hong_Kong", "+0800"),
        _fixed("Asia/Singapore", "+0800"),
        _fixed("Asia/Bangkok", "+0700"),
        _fixed("Asia/Kolkata", "+0530"),
        _fixed("Asia/Karachi", "+0500"),
        TimezoneRule(
            "Australia/Sydney",
            Transition("+1000", "19700405T030000", AU_STANDARD),
            Transition("+1100", "19701004T020000", AU_DAYLIGHT),
        ),
        TimezoneRule(
            "Australia/Melbourne",
            Transition("+1000", "19700405T030000", AU_STANDARD),
            Transition("+1100", "19701004T020000", AU_DAYLIGHT),
        ),
        _fixed("Australia/Brisbane", "+1000"),
        _fixed("Australia/Perth", "+0800"),
        TimezoneRule(
            "Pacific/Auckland",
            Transition("+1200", "19700405T030000", AU_STANDARD),
            Transition("+1300", "19700927T020000", NZ_DAYLIGHT),
        ),
    ]
)
