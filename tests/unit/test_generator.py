"""Tests for iCalendar event generation."""

import re
from datetime import UTC, datetime

import pytest

from caldav_engine.config import EngineConfig
from caldav_engine.contentline import find_property
from caldav_engine.generator import EventDescriptor, generate_event_uid, generate_ical_event
from caldav_engine.scanner import find_events_for_date, split_event_blocks
from caldav_engine.timestamp import Provenance, parse_ical_date

UID_RE = re.compile(r"\d{13}-[a-z0-9]{9}@(.+)")


def _event_block(ical_data: str) -> str:
    blocks = split_event_blocks(ical_data)
    assert len(blocks) == 1, f"Expected one VEVENT, got {len(blocks)}"
    return blocks[0]


def test_zoned_event_round_trips_through_parser():
    """Test that a generated DTSTART parses back to the same zone and wall clock."""
    descriptor = EventDescriptor(
        title="Standup",
        start=datetime(2024, 3, 15, 9, 0),
        end=datetime(2024, 3, 15, 9, 15),
        timezone="Europe/Paris",
    )

    ical_data = generate_ical_event(descriptor)
    block = _event_block(ical_data)
    dtstart = find_property(block, "DTSTART")

    assert dtstart is not None
    assert dtstart.raw == "DTSTART;TZID=Europe/Paris:20240315T090000", f"Unexpected DTSTART: {dtstart.raw}"

    ts = parse_ical_date(dtstart.value, block)
    assert ts.provenance is Provenance.ZONED
    assert ts.tzid == "Europe/Paris"
    assert ts.wall == descriptor.start


def test_zoned_event_carries_vtimezone():
    """Test that a known zone is described by a VTIMEZONE with both observances."""
    descriptor = EventDescriptor("Standup", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10), timezone="Europe/Paris")

    ical_data = generate_ical_event(descriptor)

    assert "BEGIN:VTIMEZONE" in ical_data
    assert "TZID:Europe/Paris" in ical_data
    assert "BEGIN:STANDARD" in ical_data
    assert "BEGIN:DAYLIGHT" in ical_data
    assert "TZOFFSETFROM:+0200" in ical_data
    assert "TZOFFSETTO:+0100" in ical_data
    assert "BYMONTH=10" in ical_data
    assert ical_data.index("BEGIN:VTIMEZONE") < ical_data.index("BEGIN:VEVENT"), "VTIMEZONE must precede VEVENT"


def test_fixed_offset_zone_has_no_daylight_observance():
    """Test VTIMEZONE generation for a zone without daylight saving."""
    descriptor = EventDescriptor("Sync", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10), timezone="Asia/Tokyo")

    ical_data = generate_ical_event(descriptor)

    assert "TZID:Asia/Tokyo" in ical_data
    assert "BEGIN:STANDARD" in ical_data
    assert "BEGIN:DAYLIGHT" not in ical_data
    assert "TZOFFSETTO:+0900" in ical_data


def test_unknown_zone_omits_vtimezone():
    """Test that an unknown zone keeps its TZID parameter without a VTIMEZONE."""
    descriptor = EventDescriptor(
        "Expedition", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10), timezone="Mars/Olympus_Mons"
    )

    ical_data = generate_ical_event(descriptor)

    assert "BEGIN:VTIMEZONE" not in ical_data
    assert "DTSTART;TZID=Mars/Olympus_Mons:20240315T090000" in ical_data


def test_utc_event_uses_z_suffix():
    """Test that UTC events are written with Z-suffixed values and no TZID."""
    descriptor = EventDescriptor("Release", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10))

    block = _event_block(generate_ical_event(descriptor))

    assert find_property(block, "DTSTART").raw == "DTSTART:20240315T090000Z"
    assert find_property(block, "DTEND").raw == "DTEND:20240315T100000Z"
    assert "TZID" not in block


def test_aware_input_is_converted_to_event_zone():
    """Test that aware datetimes are expressed in the event's zone."""
    descriptor = EventDescriptor(
        "Lunch",
        start=datetime(2024, 7, 1, 10, tzinfo=UTC),
        end=datetime(2024, 7, 1, 11, tzinfo=UTC),
        timezone="Europe/Paris",
    )

    block = _event_block(generate_ical_event(descriptor))

    assert find_property(block, "DTSTART").raw == "DTSTART;TZID=Europe/Paris:20240701T120000"
    assert find_property(block, "DTEND").raw == "DTEND;TZID=Europe/Paris:20240701T130000"


def test_document_structure():
    """Test the calendar-level properties and line endings."""
    config = EngineConfig(prodid="-//Example Corp//Planner//EN")
    descriptor = EventDescriptor("Planning", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10))

    ical_data = generate_ical_event(descriptor, config)

    assert ical_data.startswith("BEGIN:VCALENDAR\r\n")
    assert ical_data.rstrip().endswith("END:VCALENDAR")
    assert "VERSION:2.0" in ical_data
    assert "CALSCALE:GREGORIAN" in ical_data
    assert "PRODID:-//Example Corp//Planner//EN" in ical_data
    assert "DTSTAMP:" in ical_data
    assert "SUMMARY:Planning" in ical_data
    assert "DESCRIPTION" not in ical_data
    assert "LOCATION" not in ical_data


def test_text_fields_survive_scanning():
    """Test that escaped description and location read back unchanged."""
    description = "Agenda:\nReview budget, plan Q3; assign owners"
    descriptor = EventDescriptor(
        "Offsite",
        datetime(2024, 3, 15, 9),
        datetime(2024, 3, 15, 17),
        description=description,
        location="Building 4, Room 12",
    )

    records = find_events_for_date(generate_ical_event(descriptor), datetime(2024, 3, 15).date())

    assert len(records) == 1
    assert records[0].description == description
    assert records[0].location == "Building 4, Room 12"


def test_generated_uid_format():
    """Test UID layout: epoch millis, random suffix and namespace."""
    uid = generate_event_uid()
    match = UID_RE.fullmatch(uid)

    assert match, f"Unexpected UID format: {uid}"
    assert match.group(1) == "caldav-engine"
    assert generate_event_uid() != uid


def test_uid_namespace_and_explicit_uid():
    """Test that the configured namespace is used and explicit UIDs are kept."""
    config = EngineConfig(uid_namespace="example.org")
    generated = generate_ical_event(
        EventDescriptor("A", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10)), config
    )
    explicit = generate_ical_event(
        EventDescriptor("B", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10), uid="fixed-uid@test")
    )

    uid = find_property(_event_block(generated), "UID").value
    assert UID_RE.fullmatch(uid).group(1) == "example.org"
    assert find_property(_event_block(explicit), "UID").value == "fixed-uid@test"


def test_missing_title_is_rejected():
    """Test that an empty title raises ValueError."""
    with pytest.raises(ValueError, match="title"):
        generate_ical_event(EventDescriptor("", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 10)))


def test_end_before_start_is_written_as_given():
    """Test that an event ending before it starts is generated unchanged."""
    ical_data = generate_ical_event(EventDescriptor("Backwards", datetime(2024, 3, 15, 10), datetime(2024, 3, 15, 9)))

    assert "DTSTART:20240315T100000Z" in ical_data
    assert "DTEND:20240315T090000Z" in ical_data


def test_zero_length_event_is_allowed():
    """Test that start == end is accepted."""
    ical_data = generate_ical_event(EventDescriptor("Reminder", datetime(2024, 3, 15, 9), datetime(2024, 3, 15, 9)))

    assert "DTEND:20240315T090000Z" in ical_data
