"""
Client-side polling for a pending Monzo approval.

The server keeps no timers; the client calls the verify-pending endpoint on a
fixed interval until the answer is no longer "pending" or a deadline passes.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 3.0
POLL_TIMEOUT_SECONDS = 180.0

TIMED_OUT = "approval_timeout"


def poll_pending_approval(
    check: Callable[[], Dict[str, Any]],
    interval: float = POLL_INTERVAL_SECONDS,
    timeout: float = POLL_TIMEOUT_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Dict[str, Any]:
    """
    Call `check` until it stops reporting pending or the timeout is reached.

    Args:
        check: Returns a verify-pending payload ({"pending": bool, ...})
        interval: Seconds between polls
        timeout: Maximum wall-clock seconds to keep polling
        sleep, clock: Injectable for tests

    Returns:
        The last non-pending payload, or {"pending": False, "error": "approval_timeout"}
    """
    deadline = clock() + timeout
    attempts = 0
    while True:
        attempts += 1
        result = check()
        if not result.get("pending"):
            logger.info(f"Pending approval resolved after {attempts} poll(s): {result}")
            return result
        if clock() + interval > deadline:
            logger.warning(f"Pending approval still waiting after {attempts} poll(s), giving up")
            return {"pending": False, "error": TIMED_OUT}
        sleep(interval)


class VerifyPendingClient:
    """Calls the verify-pending endpoint of a running server."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def check(self, pending_id: str) -> Dict[str, Any]:
        resp = self.session.get(
            f"{self.base_url}/auth/monzo/verify-pending",
            params={"pending_id": pending_id},
            timeout=self.timeout,
        )
        try:
            payload = resp.json()
        except ValueError:
            payload = {"pending": False, "error": f"http_{resp.status_code}"}
        return payload

    def wait_for_approval(
        self,
        pending_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        timeout: float = POLL_TIMEOUT_SECONDS,
    ) -> Dict[str, Any]:
        return poll_pending_approval(
            lambda: self.check(pending_id), interval=interval, timeout=timeout
        )
