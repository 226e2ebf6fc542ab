"""Error kinds raised by the start-page core."""

from __future__ import annotations


class StartpageError(Exception):
    """Base class for all rss_startpage errors."""

    kind = "error"


class InvalidURL(StartpageError, ValueError):
    """Raised when a feed source is not an absolute http(s) URL."""

    kind = "InvalidURL"


class DuplicateSource(StartpageError, ValueError):
    """A source already registered on a page. Never raised by the registry."""

    kind = "DuplicateSource"


class LimitExceeded(StartpageError, ValueError):
    """Raised when adding a page beyond the page limit."""

    kind = "LimitExceeded"


class InvalidReorder(StartpageError, ValueError):
    """Raised when a reorder request is not a permutation of page ids."""

    kind = "InvalidReorder"


class NetworkError(StartpageError):
    """Raised when a feed cannot be downloaded."""

    kind = "NetworkError"


class ParseError(StartpageError):
    """Raised when downloaded content is not a usable RSS or Atom feed."""

    kind = "ParseError"


class CacheMiss(StartpageError):
    """Internal signal that no usable cache entry exists for a source."""

    kind = "CacheMiss"
