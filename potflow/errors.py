"""Error types raised by the Monzo client and the automation engine."""

from typing import Optional


class MonzoError(Exception):
    """Base class for errors talking to Monzo or resolving Monzo-linked records."""


class AuthError(MonzoError):
    """Token exchange or refresh was rejected, or no usable refresh token exists."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderError(MonzoError):
    """Generic upstream failure (non-2xx response or transport error)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ForbiddenError(ProviderError):
    """
    The access token is valid but has no permissions yet.

    Monzo returns 403 until the user approves the connection inside their
    banking app; this drives the pending-approval flow rather than a failure.
    """

    def __init__(self, message: str = "Access token has no permissions yet"):
        super().__init__(message, status_code=403)


class NotFoundError(MonzoError):
    """A pot or linked account referenced by an automation does not exist."""
