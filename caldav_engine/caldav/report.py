"""CalDAV calendar-query REPORT requests and multistatus parsing."""

from __future__ import annotations

from lxml import etree

from ..debug import logger
from .caldav import CalendarObject

NAMESPACE = "DAV:"
CALDAV_NAMESPACE = "urn:ietf:params:xml:ns:caldav"
NSMAP = {"D": NAMESPACE, "C": CALDAV_NAMESPACE}


def build_calendar_query(component: str = "VEVENT") -> etree._Element:
    """Build a calendar-query REPORT body selecting every component of a type.

    Args:
        component: Component name to select (default: VEVENT)

    Returns:
        ``C:calendar-query`` element requesting ETag and calendar data
    """
    root = etree.Element(f"{{{CALDAV_NAMESPACE}}}calendar-query", nsmap=NSMAP)

    prop = etree.SubElement(root, f"{{{NAMESPACE}}}prop")
    etree.SubElement(prop, f"{{{NAMESPACE}}}getetag")
    etree.SubElement(prop, f"{{{CALDAV_NAMESPACE}}}calendar-data")

    filter_elem = etree.SubElement(root, f"{{{CALDAV_NAMESPACE}}}filter")
    calendar_filter = etree.SubElement(filter_elem, f"{{{CALDAV_NAMESPACE}}}comp-filter", name="VCALENDAR")
    etree.SubElement(calendar_filter, f"{{{CALDAV_NAMESPACE}}}comp-filter", name=component)

    return root


def _status_code(status: str) -> int:
    # "HTTP/1.1 200 OK"
    parts = status.split(" ", 2)
    if len(parts) < 2:
        return 0
    try:
        return int(parts[1])
    except ValueError:
        return 0


def parse_calendar_multistatus(content: bytes) -> list[CalendarObject]:
    """Extract calendar objects from a calendar-query multistatus response.

    Responses without calendar data or with a non-200 propstat are skipped.

    Args:
        content: Response body

    Returns:
        Calendar objects in response order

    Raises:
        ValueError: If the body is not a DAV:multistatus document
    """
    try:
        root = etree.fromstring(content)
    except etree.XMLSyntaxError as e:
        raise ValueError(f"invalid multistatus response: {e}") from e

    if root.tag != f"{{{NAMESPACE}}}multistatus":
        raise ValueError(f"expected DAV:multistatus, got {root.tag}")

    objects: list[CalendarObject] = []
    for response in root.iterfind(f"{{{NAMESPACE}}}response"):
        href = (response.findtext(f"{{{NAMESPACE}}}href") or "").strip()
        etag = ""
        data = ""

        for propstat in response.iterfind(f"{{{NAMESPACE}}}propstat"):
            if _status_code(propstat.findtext(f"{{{NAMESPACE}}}status") or "") != 200:
                continue
            prop = propstat.find(f"{{{NAMESPACE}}}prop")
            if prop is None:
                continue
            etag = (prop.findtext(f"{{{NAMESPACE}}}getetag") or etag).strip()
            data = prop.findtext(f"{{{CALDAV_NAMESPACE}}}calendar-data") or data

        if not href or not data:
            logger.debug(f"Skipping multistatus response without calendar data: {href!r}")
            continue

        objects.append(CalendarObject(path=href, data=data, etag=etag))

    return objects
