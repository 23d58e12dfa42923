"""
Auth service: request-scoped helpers for the signed-in user, the cron shared secret and the Monzo client.
"""

import hmac
from typing import Optional

from flask import current_app, request, session

from potflow.config import Settings
from potflow.monzo.client import MonzoClient


def get_settings() -> Settings:
    return current_app.config["SETTINGS"]


def get_user_id_from_auth() -> Optional[str]:
    """
    Get user_id of the signed-in user from the session.
    Returns user_id string or None if nobody is signed in.
    """
    user_id = session.get("user_id")
    return str(user_id) if user_id else None


def get_monzo_client() -> MonzoClient:
    """
    MonzoClient configured from settings.

    An instance placed in app.config["MONZO_CLIENT"] takes precedence.
    """
    client = current_app.config.get("MONZO_CLIENT")
    if client is not None:
        return client
    settings = get_settings()
    return MonzoClient(
        client_id=settings.monzo_client_id,
        client_secret=settings.monzo_client_secret,
        redirect_uri=settings.redirect_uri,
        timeout=settings.monzo_http_timeout,
    )


def is_cron_request_authorized() -> bool:
    """
    Check the shared cron secret in the Authorization header (Bearer) or the ?secret= query parameter.

    With no secret configured every call is rejected.
    """
    secret = get_settings().cron_secret
    if not secret:
        return False
    auth_header = request.headers.get("Authorization", "").encode()
    query_secret = request.args.get("secret", "").encode()
    return hmac.compare_digest(auth_header, f"Bearer {secret}".encode()) or hmac.compare_digest(
        query_secret, secret.encode()
    )
