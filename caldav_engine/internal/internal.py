"""Low-level helpers for talking to CalDAV servers."""

from __future__ import annotations

from enum import IntEnum
from http import HTTPStatus


class Depth(IntEnum):
    """Depth indicates whether a request applies to the resource's members.

    Defined in RFC 4918 section 10.2.
    """

    ZERO = 0  # Request applies only to the resource
    ONE = 1  # Request applies to resource and its internal members only
    INFINITY = -1  # Request applies to resource and all of its members


def depth_to_string(d: Depth) -> str:
    """Format the depth."""
    if d == Depth.ZERO:
        return "0"
    elif d == Depth.ONE:
        return "1"
    elif d == Depth.INFINITY:
        return "infinity"
    else:
        raise ValueError("caldav: invalid Depth value")


# Explanations for the status codes CalDAV servers commonly answer with
STATUS_HINTS = {
    401: "check credentials",
    403: "insufficient permissions",
    404: "resource may not exist",
    412: "resource was modified by another client",
    504: "server took too long to respond",
    507: "quota exceeded",
}


class HTTPError(Exception):
    """HTTP error with status code."""

    def __init__(self, code: int, err: Exception | None = None, url: str = ""):
        self.code = code
        self.err = err
        self.url = url
        super().__init__(str(self))

    def __str__(self) -> str:
        try:
            text = HTTPStatus(self.code).phrase
        except ValueError:
            text = "Unknown"

        s = f"{self.code} {text}"
        hint = STATUS_HINTS.get(self.code)
        if hint:
            s = f"{s} ({hint})"
        if self.url:
            s = f"{s} at {self.url}"
        if self.err:
            return f"{s}: {self.err}"
        return s


def is_not_found(err: Exception | None) -> bool:
    """Check if an error is a 404 Not Found."""
    if isinstance(err, HTTPError):
        return err.code == 404
    return False
