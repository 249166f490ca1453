"""Logging utilities for the calendar engine and its CalDAV client."""

from __future__ import annotations

import logging
from typing import Any

from lxml import etree

logger = logging.getLogger("caldav_engine")
http_logger = logging.getLogger("caldav_engine.http")


def format_xml(xml_bytes: bytes | str) -> str:
    """Format XML with proper indentation.

    Args:
        xml_bytes: XML content as bytes or string

    Returns:
        Pretty-formatted XML string
    """
    try:
        if isinstance(xml_bytes, str):
            xml_bytes = xml_bytes.encode("utf-8")

        parser = etree.XMLParser(remove_blank_text=True)
        root = etree.fromstring(xml_bytes, parser)
        return etree.tostring(root, pretty_print=True, encoding="unicode")
    except etree.XMLSyntaxError:
        # Not XML after all, log as-is
        if isinstance(xml_bytes, bytes):
            return xml_bytes.decode("utf-8", errors="replace")
        return str(xml_bytes)


def is_xml_content(content_type: str | None) -> bool:
    """Check if content type is XML."""
    if not content_type:
        return False
    return any(xml_type in content_type.lower() for xml_type in ("application/xml", "text/xml"))


def _log_body(label: str, content_type: str, body: bytes) -> None:
    http_logger.debug("-" * 80)
    http_logger.debug(f"{label}:")

    if is_xml_content(content_type):
        for line in format_xml(body).split("\n"):
            if line.strip():
                http_logger.debug(f"  {line}")
    else:
        preview = body[:200].decode("utf-8", errors="replace")
        http_logger.debug(f"  [{len(body)} bytes] {preview}")
        if len(body) > 200:
            http_logger.debug(f"  ... ({len(body) - 200} more bytes)")


def log_request(method: str, url: str, headers: dict[str, str], body: bytes | None) -> None:
    """Log an outgoing CalDAV request.

    Args:
        method: HTTP method
        url: Request URL
        headers: Request headers
        body: Request body (if any)
    """
    http_logger.debug("=" * 80)
    http_logger.debug(f">>> {method} {url}")

    for header in ("Content-Type", "Depth", "If-Match", "Authorization"):
        value = headers.get(header, headers.get(header.lower()))
        if value:
            if header == "Authorization":
                value = "[REDACTED]"
            http_logger.debug(f"  {header}: {value}")

    if body:
        content_type = headers.get("Content-Type", headers.get("content-type", ""))
        _log_body("Request Body", content_type, body)


def log_response(status_code: int, headers: Any, body: bytes | None, duration_ms: float) -> None:
    """Log an incoming CalDAV response.

    Args:
        status_code: HTTP status code
        headers: Response headers
        body: Response body (if any)
        duration_ms: Request duration in milliseconds
    """
    http_logger.debug(f"<<< {status_code} in {duration_ms:.0f}ms")

    for header in ("Content-Type", "ETag"):
        value = headers.get(header)
        if value:
            http_logger.debug(f"  {header}: {value}")

    if body:
        _log_body("Response Body", headers.get("Content-Type", ""), body)

    http_logger.debug("=" * 80)


def setup_debug_logging() -> None:
    """Send engine and HTTP debug logging to the console."""
    logger.setLevel(logging.DEBUG)

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)

    # Messages are preformatted
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(handler)

    # Prevent propagation to avoid duplicate logs
    logger.propagate = False
