"""Exception hierarchy for dashcal.

All errors raised by the package derive from :class:`DashcalError` so callers
can handle every failure of the ingestion pipeline with a single except clause
while still distinguishing the transport, validation and configuration cases.

Parsing never raises: a feed that cannot be parsed yields an empty event list
and a logged diagnostic instead.
"""

from typing import Optional


class DashcalError(Exception):
    """Base exception for all dashcal errors."""


class FeedFetchError(DashcalError):
    """Base exception for failures while downloading a calendar feed.

    Attributes:
        status_code: HTTP status code of the failed response, when there was one
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FeedNotFoundError(FeedFetchError):
    """The feed URL answered 404; the calendar was moved or unpublished."""


class FeedForbiddenError(FeedFetchError):
    """The feed URL answered 403; the calendar is no longer public."""


class FeedUnauthorizedError(FeedFetchError):
    """The feed URL answered 401."""


class FeedHTTPError(FeedFetchError):
    """Any other non-success HTTP status.

    Attributes:
        status_text: Reason phrase reported by the server
    """

    def __init__(self, message: str, status_code: Optional[int] = None, status_text: str = ""):
        super().__init__(message, status_code)
        self.status_text = status_text


class FeedNetworkError(FeedFetchError):
    """Connection-level failure (DNS, refused connection, TLS)."""


class FeedTimeoutError(FeedFetchError):
    """The server did not answer within the configured timeout."""


class InvalidFeedURLError(DashcalError):
    """The configured feed URL is not an absolute http(s) URL."""


class InvalidFeedError(DashcalError):
    """The response body is empty or does not look like iCalendar data."""


class UnsupportedSourceError(DashcalError):
    """The configured source kind is valid but has no ingestion path."""


class ConfigurationError(DashcalError):
    """Configuration could not be validated."""
