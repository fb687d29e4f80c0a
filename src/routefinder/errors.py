from __future__ import annotations


class RouteFinderError(Exception):
    """Base class for routefinder errors."""


class SourceParseError(RouteFinderError):
    """The structural parser could not build a syntax tree for a source file."""


class CacheError(RouteFinderError):
    """The persisted cache artifact is unreadable, malformed or of another version."""


class IndexBuildError(RouteFinderError):
    """An index build failed for a reason other than a single unreadable/unparsable file."""
