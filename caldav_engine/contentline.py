"""Helpers for reading iCalendar content lines out of raw document text.

Lines are split and unfolded by :class:`icalendar.parser.Contentlines` and
broken into name, parameters and value by
:meth:`icalendar.parser.Contentline.parts`. Each parsed line keeps its raw
text so a single property can be rewritten in place.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from icalendar import vText
from icalendar.parser import Contentline, Contentlines, Parameters

from .debug import logger


@dataclass(frozen=True)
class ContentLine:
    """A single ``NAME;PARAM=VALUE:value`` line."""

    name: str
    value: str
    raw: str
    params: Parameters = field(default_factory=Parameters)

    def with_value(self, value: str) -> str:
        """Return the line with its value replaced, keeping name and parameters."""
        return str(Contentline.from_parts(self.name, self.params, value, sorted=False))


def unfold_lines(text: str) -> str:
    """Join folded content lines (RFC 5545 section 3.1).

    The result uses CRLF between lines and has no trailing line break.
    """
    return "\r\n".join(line for line in Contentlines.from_ical(text) if line)


def unescape_text(value: str) -> str:
    """Undo TEXT value escaping (``\\n``, ``\\,``, ``\\;``, ``\\\\``)."""
    return str(vText.from_ical(value))


def parse_content_line(line: str) -> ContentLine | None:
    """Split a content line into name, parameters and value.

    Args:
        line: Unfolded content line without terminator

    Returns:
        Parsed content line, or None if the line is not a valid content line
    """
    if ":" not in line:
        logger.debug(f"Skipping content line without a value {line!r}")
        return None

    try:
        name, params, value = Contentline(line).parts()
    except ValueError as e:
        logger.debug(f"Skipping malformed content line {line!r}: {e}")
        return None

    return ContentLine(name=name.upper(), value=value, raw=line, params=params)


def iter_content_lines(text: str) -> Iterator[ContentLine]:
    """Iterate over the parseable content lines of a document fragment."""
    for line in Contentlines.from_ical(text):
        if not line:
            continue
        content_line = parse_content_line(line)
        if content_line is not None:
            yield content_line


def find_property(text: str, name: str) -> ContentLine | None:
    """Find the first property with the given name."""
    name = name.upper()
    for content_line in iter_content_lines(text):
        if content_line.name == name:
            return content_line
    return None


def find_properties(text: str, name: str) -> list[ContentLine]:
    """Find every property with the given name."""
    name = name.upper()
    return [line for line in iter_content_lines(text) if line.name == name]
