"""Configuration for the calendar engine and the CalDAV client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import UTC, tzinfo
from zoneinfo import ZoneInfo

from .timezones import DEFAULT_TIMEZONES, TimezoneTable

CALDAV_ENGINE_LOCAL_TZ = os.getenv("CALDAV_ENGINE_LOCAL_TZ")
CALDAV_ENGINE_UID_NAMESPACE = os.getenv("CALDAV_ENGINE_UID_NAMESPACE")
CALDAV_SERVER_URL = os.getenv("CALDAV_SERVER_URL")
CALDAV_USERNAME = os.getenv("CALDAV_USERNAME")
CALDAV_PASSWORD = os.getenv("CALDAV_PASSWORD")


@dataclass
class EngineConfig:
    """Settings shared by the scanner and the generator."""

    # Zone that floating (and unknown-zone) times are read in
    local_timezone: str = CALDAV_ENGINE_LOCAL_TZ or "UTC"

    # Generated UIDs look like <epoch millis>-<random>@<uid_namespace>
    uid_namespace: str = CALDAV_ENGINE_UID_NAMESPACE or "caldav-engine"

    prodid: str = "-//caldav-engine//CalDAV Engine//EN"

    timezones: TimezoneTable = field(default_factory=lambda: DEFAULT_TIMEZONES)

    def local_tzinfo(self) -> tzinfo:
        """Resolve ``local_timezone``.

        Raises:
            zoneinfo.ZoneInfoNotFoundError: If the zone name is unknown
        """
        if self.local_timezone.upper() == "UTC":
            return UTC
        return ZoneInfo(self.local_timezone)


@dataclass
class CalDAVConfig:
    """Connection settings for a CalDAV server."""

    server_url: str = CALDAV_SERVER_URL or ""
    username: str = CALDAV_USERNAME or ""
    password: str = CALDAV_PASSWORD or ""

    timeout: float = 30.0  # Request timeout in seconds
    user_agent: str = "caldav-engine/0.1"
