"""Internal helpers shared by the CalDAV client."""

from .internal import STATUS_HINTS, Depth, HTTPError, depth_to_string, is_not_found

__all__ = ["STATUS_HINTS", "Depth", "HTTPError", "depth_to_string", "is_not_found"]
