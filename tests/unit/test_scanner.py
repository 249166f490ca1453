"""Tests for extracting per-date event records from calendar data."""

from datetime import date, datetime

from caldav_engine.caldav import CalendarObject
from caldav_engine.config import EngineConfig
from caldav_engine.scanner import (
    event_record_from_block,
    find_events_for_date,
    project_event_block,
    scan_calendar_objects,
    split_event_blocks,
)


def _calendar(*events: list[str]) -> str:
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Test//Test//EN"]
    for event in events:
        lines.extend(["BEGIN:VEVENT", *event, "END:VEVENT"])
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


SINGLE_EVENT = [
    "UID:single-1",
    "SUMMARY:Dentist",
    "DTSTART:20240315T090000Z",
    "DTEND:20240315T100000Z",
]

WEEKLY_PARIS_EVENT = [
    "UID:weekly-1",
    "SUMMARY:Team sync",
    "DTSTART;TZID=Europe/Paris:20240304T100000",
    "DTEND;TZID=Europe/Paris:20240304T110000",
    "RRULE:FREQ=WEEKLY;BYDAY=MO",
    "EXDATE;TZID=Europe/Paris:20240318T100000",
]

DAILY_UTC_EVENT = [
    "UID:daily-1",
    "SUMMARY:Backup check",
    "DTSTART:20240101T090000Z",
    "DTEND:20240101T093000Z",
    "RRULE:FREQ=DAILY;COUNT=5",
]


def test_direct_match():
    """Test that an event starting on the target date is reported unchanged."""
    records = find_events_for_date(_calendar(SINGLE_EVENT), date(2024, 3, 15))

    assert len(records) == 1, f"Expected 1 record, got {len(records)}"
    record = records[0]
    assert record.uid == "single-1"
    assert record.summary == "Dentist"
    assert record.dt_start == "20240315T090000Z"
    assert record.dt_start_iso == "2024-03-15T09:00:00.000Z"
    assert record.dt_end_iso == "2024-03-15T10:00:00.000Z"
    assert not record.recurring
    assert record.calendar_data.startswith("BEGIN:VEVENT")
    assert record.calendar_data.endswith("END:VEVENT")


def test_no_match_on_other_date():
    """Test that a non-recurring event is not reported on other dates."""
    assert find_events_for_date(_calendar(SINGLE_EVENT), date(2024, 3, 16)) == []


def test_recurring_match_rewrites_dates():
    """Test that a recurring match reports the projected occurrence."""
    records = find_events_for_date(_calendar(WEEKLY_PARIS_EVENT), date(2024, 4, 1))

    assert len(records) == 1
    record = records[0]
    assert record.recurring
    assert record.dt_start == "20240401T100000"
    assert record.dt_end == "20240401T110000"
    assert "DTSTART;TZID=Europe/Paris:20240401T100000" in record.calendar_data
    assert "DTEND;TZID=Europe/Paris:20240401T110000" in record.calendar_data
    assert "RRULE:FREQ=WEEKLY;BYDAY=MO" in record.calendar_data
    # Summer time in Paris: UTC+2
    assert record.dt_start_iso == "2024-04-01T08:00:00.000Z (Europe/Paris)"


def test_recurring_utc_match_keeps_z_suffix():
    """Test that UTC occurrences are written back with a Z suffix."""
    records = find_events_for_date(_calendar(DAILY_UTC_EVENT), date(2024, 1, 3))

    assert [r.dt_start for r in records] == ["20240103T090000Z"]
    assert records[0].dt_end == "20240103T093000Z"


def test_exception_date_is_skipped():
    """Test that an EXDATE removes the occurrence from the results."""
    assert find_events_for_date(_calendar(WEEKLY_PARIS_EVENT), date(2024, 3, 18)) == []
    assert len(find_events_for_date(_calendar(WEEKLY_PARIS_EVENT), date(2024, 3, 25))) == 1


def test_count_ends_series():
    """Test that an exhausted series is not reported."""
    assert find_events_for_date(_calendar(DAILY_UTC_EVENT), date(2024, 1, 6)) == []


def test_multiple_events_in_document_order():
    """Test that every matching block is reported, in order."""
    single_same_day = ["UID:single-2", "SUMMARY:Lunch", "DTSTART:20240401T120000Z"]
    data = _calendar(WEEKLY_PARIS_EVENT, SINGLE_EVENT, single_same_day)

    records = find_events_for_date(data, date(2024, 4, 1))

    assert [r.uid for r in records] == ["weekly-1", "single-2"]


def test_target_datetime_is_reduced_to_date():
    """Test that a datetime target behaves like its date."""
    records = find_events_for_date(_calendar(SINGLE_EVENT), datetime(2024, 3, 15, 23, 59))

    assert len(records) == 1


def test_folded_lines_are_unfolded():
    """Test that folded properties are read as one value."""
    event = [
        "UID:folded-1",
        "SUMMARY:Quarterly plan",
        " ning session",
        "DTSTART;TZID=Europe/Paris:2024",
        " 0304T100000",
        "RRULE:FREQ=WEEKLY",
    ]

    records = find_events_for_date(_calendar(event), date(2024, 3, 11))

    assert len(records) == 1
    assert records[0].summary == "Quarterly planning session"
    assert records[0].dt_start == "20240311T100000"


def test_text_values_are_unescaped():
    """Test that TEXT escapes are resolved in the record."""
    event = [
        "UID:text-1",
        "SUMMARY:Review\\; part 2",
        "DESCRIPTION:Room 4\\, floor 2\\nBring laptop",
        "LOCATION:HQ\\\\Annex",
        "URL:https://example.com/meeting?id=42",
        "DTSTART:20240315T090000Z",
    ]

    record = find_events_for_date(_calendar(event), date(2024, 3, 15))[0]

    assert record.summary == "Review; part 2"
    assert record.description == "Room 4, floor 2\nBring laptop"
    assert record.location == "HQ\\Annex"
    assert record.url == "https://example.com/meeting?id=42"


def test_unparseable_start_is_skipped():
    """Test that blocks with a bad or missing DTSTART are skipped silently."""
    bad_start = ["UID:bad-1", "DTSTART:someday", "RRULE:FREQ=DAILY"]
    no_start = ["UID:bad-2", "SUMMARY:No start"]

    records = find_events_for_date(_calendar(bad_start, no_start, SINGLE_EVENT), date(2024, 3, 15))

    assert [r.uid for r in records] == ["single-1"]


def test_unterminated_block_is_dropped():
    """Test that a VEVENT without END:VEVENT is ignored."""
    data = "BEGIN:VCALENDAR\r\nBEGIN:VEVENT\r\nUID:open-1\r\nDTSTART:20240315T090000Z\r\nEND:VCALENDAR\r\n"

    assert split_event_blocks(data) == []
    assert find_events_for_date(data, date(2024, 3, 15)) == []


def test_all_day_recurring_event():
    """Test that all-day series are projected to midnight date-times."""
    event = ["UID:birthday-1", "SUMMARY:Birthday", "DTSTART;VALUE=DATE:20200615", "RRULE:FREQ=YEARLY"]

    records = find_events_for_date(_calendar(event), date(2024, 6, 15))

    assert len(records) == 1
    assert records[0].dt_start == "20240615T000000"
    assert records[0].dt_start_iso == "2024-06-15T00:00:00.000Z"


def test_floating_times_use_local_timezone():
    """Test that floating values are normalized through the configured local zone."""
    config = EngineConfig(local_timezone="America/New_York")
    event = ["UID:floating-1", "DTSTART:20240115T090000", "DTEND:20240115T100000"]

    record = find_events_for_date(_calendar(event), date(2024, 1, 15), config)[0]

    assert record.dt_start_iso == "2024-01-15T14:00:00.000Z"
    assert record.dt_end_iso == "2024-01-15T15:00:00.000Z"


def test_project_event_block_without_rrule():
    """Test that a block without RRULE only matches its own date."""
    block = split_event_blocks(_calendar(SINGLE_EVENT))[0]

    assert project_event_block(block, date(2024, 3, 15)) == (block, False)
    assert project_event_block(block, date(2024, 3, 22)) is None


def test_record_with_unparseable_end():
    """Test that an unparseable DTEND keeps its raw form and gets no ISO value."""
    block = "BEGIN:VEVENT\r\nUID:x\r\nDTSTART:20240315T090000Z\r\nDTEND:later\r\nEND:VEVENT"

    record = event_record_from_block(block)

    assert record.dt_end == "later"
    assert record.dt_end_iso == ""
    assert record.to_dict()["dt_start_iso"] == "2024-03-15T09:00:00.000Z"


def test_scan_calendar_objects_copies_source():
    """Test that href and ETag of the source object end up in the records."""
    objects = [
        CalendarObject(path="/calendars/alice/work/single-1.ics", data=_calendar(SINGLE_EVENT), etag='"abc"'),
        CalendarObject(path="/calendars/alice/work/empty.ics", data=""),
        CalendarObject(path="/calendars/alice/work/daily-1.ics", data=_calendar(DAILY_UTC_EVENT), etag='"def"'),
    ]

    records = scan_calendar_objects(objects, date(2024, 3, 15))

    assert len(records) == 1
    assert records[0].href == "/calendars/alice/work/single-1.ics"
    assert records[0].etag == '"abc"'


def test_event_at_end_of_supported_range():
    """Test that events on the last representable day are scanned without errors."""
    paris = ["UID:last-day-1", "SUMMARY:Last call", "DTSTART;TZID=Europe/Paris:99991231T100000"]
    new_york = ["UID:last-day-2", "SUMMARY:Too late", "DTSTART;TZID=America/New_York:99991231T220000"]

    records = find_events_for_date(_calendar(paris, new_york), date(9999, 12, 31))

    assert [r.uid for r in records] == ["last-day-1", "last-day-2"]
    assert records[0].dt_start_iso == "9999-12-31T09:00:00.000Z (Europe/Paris)"
    # 9999-12-31T22:00 in New York is past the last UTC instant
    assert records[1].dt_start == "99991231T220000"
    assert records[1].dt_start_iso == ""


def test_tzid_is_read_from_the_carrying_property():
    """Test that a TZID on another property with the same value is ignored."""
    event = [
        "UID:override-1",
        "DTSTART:20240315T090000",
        "RECURRENCE-ID;TZID=Europe/Paris:20240315T090000",
    ]

    record = find_events_for_date(_calendar(event), date(2024, 3, 15))[0]

    assert record.dt_start_iso == "2024-03-15T09:00:00.000Z"
