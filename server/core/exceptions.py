"""Typed messaging errors so the API layer can pick the right response."""
from typing import Optional


class MessagingError(Exception):
    """Base class for failures surfaced to callers of the messaging service."""

    code = "messaging_error"
    status_code = 500

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class AuthRequiredError(MessagingError):
    """No authenticated viewer. The client should redirect to login."""

    code = "auth_required"
    status_code = 401

    def __init__(self, message: str = "Authentication required", *, login_url: Optional[str] = None):
        super().__init__(message)
        self.login_url = login_url


class DataFetchError(MessagingError):
    """Reading messages, listings or profiles failed. Never retried automatically."""

    code = "data_fetch_failed"
    status_code = 503


class WriteFailedError(MessagingError):
    """Insert or update rejected by the backend. Nothing was changed."""

    code = "write_failed"
    status_code = 502


class ListingNotFoundError(MessagingError):
    """The listing a message refers to does not exist (or is hidden by RLS)."""

    code = "listing_not_found"
    status_code = 404
