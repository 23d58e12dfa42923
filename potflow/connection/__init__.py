"""Monzo connection grant flow and the client-side approval poller."""

from .grant import ConnectionGrantService, GrantResult, GrantState
from .poller import VerifyPendingClient, poll_pending_approval

__all__ = [
    "ConnectionGrantService",
    "GrantResult",
    "GrantState",
    "VerifyPendingClient",
    "poll_pending_approval",
]
