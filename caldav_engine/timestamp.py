"""Parsing and formatting of iCalendar date and date-time values.

A parsed value keeps its wall-clock fields together with an explicit
provenance tag:

- ``UTC``: the value carried a trailing ``Z``
- ``ZONED``: the property carried a ``TZID`` parameter
- ``FLOATING``: neither, interpreted in the engine's local reference zone

Provenance is decided once at parse time and every later conversion branches
on it; nothing downstream sniffs the textual form again.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, time, tzinfo
from enum import Enum

from .contentline import find_properties, iter_content_lines
from .timezones import DEFAULT_TIMEZONES, TimezoneTable

_UTC_DATETIME_RE = re.compile(r"\d{8}T\d{6}Z")
_LOCAL_DATETIME_RE = re.compile(r"\d{8}T\d{6}")
_COMPACT_DATE_RE = re.compile(r"\d{8}")


class Provenance(Enum):
    """Where the wall-clock reading of a timestamp is anchored."""

    UTC = "utc"
    ZONED = "zoned"
    FLOATING = "floating"


class FormatMode(Enum):
    """Output encodings produced by :func:`format_ical_datetime`."""

    UTC_SUFFIXED = "utc"  # YYYYMMDDTHHMMSSZ
    LOCAL = "local"  # YYYYMMDDTHHMMSS


@dataclass(frozen=True)
class Timestamp:
    """Wall-clock reading plus provenance.

    ``wall`` is always naive; ``tzid`` is only set for ``ZONED`` values.
    """

    wall: datetime
    provenance: Provenance = Provenance.FLOATING
    tzid: str | None = None

    @classmethod
    def utc(cls, wall: datetime) -> Timestamp:
        return cls(wall, Provenance.UTC)

    @classmethod
    def zoned(cls, wall: datetime, tzid: str) -> Timestamp:
        return cls(wall, Provenance.ZONED, tzid)

    @classmethod
    def floating(cls, wall: datetime) -> Timestamp:
        return cls(wall, Provenance.FLOATING)

    @property
    def is_utc(self) -> bool:
        return self.provenance is Provenance.UTC

    def date(self) -> date:
        """Calendar date of the wall-clock reading."""
        return self.wall.date()

    def with_wall(self, wall: datetime) -> Timestamp:
        """Same provenance, different wall-clock reading."""
        return replace(self, wall=wall)

    def resolve_tzinfo(
        self, zones: TimezoneTable | None = None, local_tz: tzinfo = UTC
    ) -> tzinfo:
        """Pick the zone the wall-clock reading is expressed in.

        Zones missing from the rule table fall back to ``local_tz``, the same
        way floating values do.
        """
        if self.provenance is Provenance.UTC:
            return UTC
        if self.provenance is Provenance.ZONED and self.tzid:
            table = DEFAULT_TIMEZONES if zones is None else zones
            rule_tz = table.tzinfo(self.tzid)
            if rule_tz is not None:
                return rule_tz
        return local_tz

    def to_datetime(
        self, zones: TimezoneTable | None = None, local_tz: tzinfo = UTC
    ) -> datetime:
        """Aware datetime for this timestamp."""
        return self.wall.replace(tzinfo=self.resolve_tzinfo(zones, local_tz))

    def to_utc(self, zones: TimezoneTable | None = None, local_tz: tzinfo = UTC) -> datetime:
        """The absolute instant, as an aware UTC datetime."""
        return self.to_datetime(zones, local_tz).astimezone(UTC)

    @classmethod
    def from_instant(
        cls,
        instant: datetime,
        provenance: Provenance = Provenance.UTC,
        tzid: str | None = None,
        zones: TimezoneTable | None = None,
        local_tz: tzinfo = UTC,
    ) -> Timestamp:
        """Express an aware instant in the frame described by provenance/tzid."""
        frame = cls(instant.replace(tzinfo=None), provenance, tzid)
        target_tz = frame.resolve_tzinfo(zones, local_tz)
        return frame.with_wall(instant.astimezone(target_tz).replace(tzinfo=None))


@dataclass(frozen=True)
class ParseFailure:
    """A token that is not a recognized date or date-time value.

    Falsy, so callers can treat it as an absent field.
    """

    token: str
    reason: str

    def __bool__(self) -> bool:
        return False


def _wall_from_compact(token: str, with_time: bool) -> datetime:
    # Fixed character offsets: YYYYMMDD[THHMMSS]
    year, month, day = int(token[0:4]), int(token[4:6]), int(token[6:8])
    if not with_time:
        return datetime(year, month, day)
    hour, minute, second = int(token[9:11]), int(token[11:13]), int(token[13:15])
    return datetime(year, month, day, hour, minute, second)


def field_tzid(token: str, block: str, name: str | None = None) -> str | None:
    """Find the TZID parameter of the property whose value carries ``token``.

    Only the first property carrying the token is consulted, so a value shared
    with another property (an EXDATE or RECURRENCE-ID) does not lend it a zone.

    Args:
        token: Date-time value as it appears in the document
        block: Document fragment containing the property
        name: Property the token was read from (e.g. "DTSTART"); any
              property if None

    Returns:
        Zone identifier, or None if the property has no TZID parameter
    """
    if not block:
        return None

    lines = find_properties(block, name) if name else iter_content_lines(block)
    for line in lines:
        values = [value.strip() for value in line.value.split(",")]
        if token in values:
            return line.params.get("TZID") or None
    return None


def parse_ical_date(token: str, block: str = "", name: str | None = None) -> Timestamp | ParseFailure:
    """Parse an iCalendar date or date-time token.

    Recognized encodings, tried in order:

    1. ``YYYYMMDDTHHMMSSZ`` - UTC
    2. ``YYYYMMDDTHHMMSS`` - zone-qualified if the property in ``block`` carries
       a TZID parameter, floating otherwise
    3. ``YYYY-MM-DD`` - floating date, midnight
    4. ``YYYYMMDD`` - floating date, midnight

    Args:
        token: Raw value (surrounding whitespace is ignored)
        block: Document fragment the token came from, used to find TZID
        name: Property the token was read from, used to find TZID

    Returns:
        Parsed timestamp, or a ParseFailure describing why it was rejected

    Example:
        >>> parse_ical_date("20240101T100000Z")
        Timestamp(wall=datetime.datetime(2024, 1, 1, 10, 0), provenance=<Provenance.UTC: 'utc'>, tzid=None)
    """
    token = token.strip()

    try:
        if _UTC_DATETIME_RE.fullmatch(token):
            return Timestamp.utc(_wall_from_compact(token, with_time=True))

        if _LOCAL_DATETIME_RE.fullmatch(token):
            wall = _wall_from_compact(token, with_time=True)
            tzid = field_tzid(token, block, name)
            if tzid:
                return Timestamp.zoned(wall, tzid)
            return Timestamp.floating(wall)

        if "-" in token:
            parsed = datetime.fromisoformat(token)
            return Timestamp.floating(datetime.combine(parsed.date(), time()))

        if _COMPACT_DATE_RE.fullmatch(token):
            return Timestamp.floating(_wall_from_compact(token, with_time=False))
    except (ValueError, OverflowError) as e:
        return ParseFailure(token, str(e))

    return ParseFailure(token, "unrecognized date format")


def format_ical_datetime(ts: Timestamp, mode: FormatMode | None = None) -> str:
    """Render a timestamp as ``YYYYMMDDTHHMMSS`` with an optional ``Z``.

    Args:
        ts: Timestamp to render (its wall-clock fields are written as-is)
        mode: Encoding; defaults to UTC_SUFFIXED for UTC values and LOCAL
              for everything else

    Returns:
        Fixed-width date-time string
    """
    if mode is None:
        mode = FormatMode.UTC_SUFFIXED if ts.is_utc else FormatMode.LOCAL

    w = ts.wall
    text = f"{w.year:04d}{w.month:02d}{w.day:02d}T{w.hour:02d}{w.minute:02d}{w.second:02d}"
    if mode is FormatMode.UTC_SUFFIXED:
        return text + "Z"
    return text


def to_iso_with_timezone(
    ts: Timestamp, zones: TimezoneTable | None = None, local_tz: tzinfo = UTC
) -> str:
    """Normalize a timestamp to an ISO 8601 UTC instant string.

    Zone-qualified values keep their zone name as a suffix,
    e.g. ``2024-03-15T09:00:00.000Z (Europe/Paris)``.
    """
    instant = ts.to_utc(zones, local_tz)
    iso = instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if ts.provenance is Provenance.ZONED:
        return f"{iso} ({ts.tzid})"
    return iso
