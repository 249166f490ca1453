"""Async CalDAV client driving the calendar engine.

The client only moves calendar data: it fetches calendar objects, stores
generated events and deletes events. Matching events against dates happens
in the scanner; building events happens in the generator.
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import date
from typing import Any
from urllib.parse import urljoin, urlparse, urlunparse

import httpx
from lxml import etree

from ..config import CalDAVConfig, EngineConfig
from ..contentline import find_property
from ..debug import http_logger, log_request, log_response
from ..generator import EventDescriptor, generate_event_uid, generate_ical_event
from ..internal import Depth, HTTPError, depth_to_string, is_not_found
from ..scanner import EventRecord, scan_calendar_objects, split_event_blocks
from .caldav import CalendarObject, CreatedEvent, DeletedEvent, EventNotFoundError
from .report import build_calendar_query, parse_calendar_multistatus


class CalDAVClient:
    """Client for a single CalDAV server."""

    def __init__(
        self,
        config: CalDAVConfig | None = None,
        engine_config: EngineConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        debug: bool = False,
    ) -> None:
        """Initialize CalDAV client.

        Args:
            config: Server configuration (uses environment defaults if None)
            engine_config: Scanner/generator configuration
            http_client: HTTP client to use (created on first request if None)
            debug: Log request/response bodies
        """
        self.config = config or CalDAVConfig()
        self.engine_config = engine_config or EngineConfig()
        self.debug = debug
        self.endpoint = urlparse(self.config.server_url)
        self._http_client = http_client
        self._owns_http_client = http_client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            auth = None
            if self.config.username:
                auth = httpx.BasicAuth(self.config.username, self.config.password)

            self._http_client = httpx.AsyncClient(
                auth=auth,
                timeout=self.config.timeout,
                headers={
                    "User-Agent": self.config.user_agent,
                    "Accept": "text/calendar, application/calendar+xml, text/plain",
                },
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> CalDAVClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def resolve_href(self, path: str) -> str:
        """Resolve a path relative to the server URL.

        Args:
            path: Absolute path, relative path or full URL

        Returns:
            Full URL
        """
        if path.startswith("/"):
            return urlunparse((self.endpoint.scheme, self.endpoint.netloc, path, "", "", ""))
        return urljoin(self.endpoint.geturl(), path)

    def collection_url(self, calendar_path: str) -> str:
        """URL of a calendar collection, always with a trailing slash."""
        url = self.resolve_href(calendar_path)
        return url if url.endswith("/") else url + "/"

    async def request(
        self,
        method: str,
        path: str,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request.

        Args:
            method: HTTP method
            path: Request path or URL
            content: Request body
            headers: Request headers

        Returns:
            HTTP response

        Raises:
            HTTPError: If the server answers with a non-2xx status
        """
        client = await self._get_http_client()
        url = self.resolve_href(path)
        headers = headers or {}

        if self.debug:
            log_request(method, url, headers, content)

        started = time.monotonic()
        resp = await client.request(method, url, content=content, headers=headers)
        duration_ms = (time.monotonic() - started) * 1000

        if self.debug:
            log_response(resp.status_code, resp.headers, resp.content, duration_ms)

        if resp.status_code // 100 != 2:
            http_logger.error(f"{method} {url} failed after {duration_ms:.0f}ms, status: {resp.status_code}")

            wrapped_err: Exception | None = None
            content_type = resp.headers.get("content-type", "text/plain")
            if content_type.startswith("text/") or "xml" in content_type:
                text = resp.text[:1024].strip()
                if text:
                    if len(resp.text) > 1024:
                        text += " […]"
                    wrapped_err = Exception(text)

            raise HTTPError(resp.status_code, wrapped_err, url=url)

        http_logger.info(f"{method} {url} completed in {duration_ms:.0f}ms")
        return resp

    async def fetch_calendar_objects(self, calendar_path: str) -> list[CalendarObject]:
        """Fetch every VEVENT calendar object of a calendar collection.

        Args:
            calendar_path: Path of the calendar collection

        Returns:
            Calendar objects with their href, ETag and data
        """
        body = etree.tostring(build_calendar_query(), encoding="utf-8", xml_declaration=True)
        resp = await self.request(
            "REPORT",
            self.collection_url(calendar_path),
            content=body,
            headers={
                "Content-Type": "application/xml; charset=utf-8",
                "Depth": depth_to_string(Depth.ONE),
            },
        )

        if resp.status_code != 207:  # Multi-Status
            raise ValueError(f"calendar-query REPORT failed: {resp.status_code}")

        objects = parse_calendar_multistatus(resp.content)
        http_logger.info(f"Fetched {len(objects)} calendar objects from {calendar_path}")
        return objects

    async def get_events(self, calendar_path: str, target: date) -> list[EventRecord]:
        """Get the events of a calendar that take place on a date.

        Args:
            calendar_path: Path of the calendar collection
            target: Calendar date

        Returns:
            One EventRecord per matching event (may be empty)
        """
        objects = await self.fetch_calendar_objects(calendar_path)
        return scan_calendar_objects(objects, target, self.engine_config)

    async def create_event(self, calendar_path: str, descriptor: EventDescriptor) -> CreatedEvent:
        """Generate an event and store it as ``<calendar>/<uid>.ics``.

        Args:
            calendar_path: Path of the calendar collection
            descriptor: Event to create; a UID is generated if it has none

        Returns:
            Stored event with its path and ETag
        """
        uid = descriptor.uid or generate_event_uid(self.engine_config.uid_namespace)
        descriptor = replace(descriptor, uid=uid)
        data = generate_ical_event(descriptor, self.engine_config)

        url = self.collection_url(calendar_path) + f"{uid}.ics"
        http_logger.info(f"Creating event {uid} ({len(data)} chars) at {url}")

        resp = await self.request(
            "PUT",
            url,
            content=data.encode("utf-8"),
            headers={"Content-Type": "text/calendar; charset=utf-8"},
        )

        return CreatedEvent(uid=uid, path=urlparse(url).path, data=data, etag=resp.headers.get("etag", ""))

    async def find_event(self, calendar_path: str, uid: str) -> CalendarObject | None:
        """Locate the calendar object carrying an event UID.

        The collection is searched first; if no object carries the UID, the
        conventional ``<uid>.ics`` resource is tried directly.

        Args:
            calendar_path: Path of the calendar collection
            uid: Event UID

        Returns:
            The calendar object, or None if the event does not exist
        """
        for obj in await self.fetch_calendar_objects(calendar_path):
            for block in split_event_blocks(obj.data):
                uid_line = find_property(block, "UID")
                if uid_line is not None and uid_line.value.strip() == uid:
                    path = obj.path
                    if not path.endswith(".ics"):
                        path = path.rstrip("/") + f"/{uid}.ics"
                    return CalendarObject(path=path, data=obj.data, etag=obj.etag)

        url = self.collection_url(calendar_path) + f"{uid}.ics"
        try:
            resp = await self.request("GET", url)
        except HTTPError as e:
            if is_not_found(e):
                return None
            raise

        return CalendarObject(path=urlparse(url).path, data=resp.text, etag=resp.headers.get("etag", ""))

    async def delete_event(self, calendar_path: str, uid: str) -> DeletedEvent:
        """Delete an event by UID.

        Args:
            calendar_path: Path of the calendar collection
            uid: Event UID

        Returns:
            Deleted event

        Raises:
            EventNotFoundError: If no event with this UID exists
            HTTPError: If the server refuses the deletion
        """
        obj = await self.find_event(calendar_path, uid)
        if obj is None:
            raise EventNotFoundError(uid, calendar_path)

        headers = {}
        if obj.etag:
            headers["If-Match"] = obj.etag

        await self.request("DELETE", obj.path, headers=headers)
        return DeletedEvent(uid=uid, path=obj.path)
