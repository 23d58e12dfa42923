"""Monzo connection routes: OAuth start, callback, pending-approval verification and configuration check."""

import logging
import secrets
from datetime import datetime, timezone
from urllib.parse import urlencode

from flask import Blueprint, jsonify, redirect, request, session

from potflow.connection.grant import (PENDING_FORBIDDEN, PENDING_NOT_FOUND,
                                      PROVIDER_ERROR, ConnectionGrantService,
                                      GrantState)
from potflow.db import get_db_session
from potflow.services.auth_service import (get_monzo_client, get_settings,
                                           get_user_id_from_auth)

auth_bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)

OAUTH_STATE_KEY = "monzo_oauth_state"
OAUTH_USER_KEY = "monzo_oauth_user"

# HTTP status for each failure reason of verify-pending
VERIFY_ERROR_STATUS = {
    PENDING_NOT_FOUND: 404,
    PENDING_FORBIDDEN: 403,
    PROVIDER_ERROR: 502,
}


def _accounts_redirect(**params):
    url = f"{get_settings().app_url}/dashboard/accounts"
    if params:
        url = f"{url}?{urlencode(params)}"
    return redirect(url)


@auth_bp.route("/monzo/connect", methods=["GET"])
def connect():
    """
    Start the Monzo OAuth flow for the signed-in user.
    """
    settings = get_settings()
    user_id = get_user_id_from_auth()
    if not user_id:
        return redirect(f"{settings.app_url}/auth/login?redirect=/dashboard/accounts")
    if not settings.monzo_configured:
        return _accounts_redirect(error="monzo_not_configured")

    state = secrets.token_urlsafe(24)
    session[OAUTH_STATE_KEY] = state
    session[OAUTH_USER_KEY] = user_id
    return redirect(get_monzo_client().get_authorization_url(state=state))


@auth_bp.route("/monzo/callback", methods=["GET"])
def callback():
    """
    OAuth callback handler.

    Always redirects to the accounts page with either monzo=connected,
    monzo=pending_approval&pending_id=..., or error=<reason code>.
    """
    error = request.args.get("error")
    code = request.args.get("code")
    state = request.args.get("state")
    logger.info(f"[MONZO-CALLBACK] Received: code={bool(code)} state={bool(state)} error={error}")

    if error:
        return _accounts_redirect(error=error)
    if not code or not state:
        return _accounts_redirect(error="missing_params")

    stored_state = session.pop(OAUTH_STATE_KEY, None)
    user_id = session.pop(OAUTH_USER_KEY, None)
    if not stored_state or not secrets.compare_digest(state.encode(), stored_state.encode()) or not user_id:
        logger.error("[MONZO-CALLBACK] Invalid state or missing user")
        return _accounts_redirect(error="invalid_state")

    with next(get_db_session()) as db:
        service = ConnectionGrantService(db, get_monzo_client())
        result = service.complete_authorization(
            user_id, code, get_settings().redirect_uri, datetime.now(timezone.utc)
        )

    if result.state is GrantState.AUTHORIZED:
        return _accounts_redirect(monzo="connected")
    if result.state is GrantState.PENDING_APPROVAL:
        return _accounts_redirect(monzo="pending_approval", pending_id=result.pending_id)
    return _accounts_redirect(error=result.reason)


@auth_bp.route("/monzo/verify-pending", methods=["GET"])
def verify_pending():
    """
    One poll of a pending approval. Clients call this on a fixed interval.
    """
    pending_id = request.args.get("pending_id")
    if not pending_id:
        return jsonify({"error": "missing_pending_id", "pending": False}), 400

    user_id = get_user_id_from_auth()
    if not user_id:
        return jsonify({"error": "unauthorized", "pending": False}), 401

    with next(get_db_session()) as db:
        service = ConnectionGrantService(db, get_monzo_client())
        result = service.verify_pending(pending_id, user_id, datetime.now(timezone.utc))

    if result.state is GrantState.PENDING_APPROVAL:
        return jsonify({"pending": True})
    if result.state is GrantState.AUTHORIZED:
        return jsonify({"success": True, "pending": False})
    if result.state is GrantState.EXPIRED:
        return jsonify({"error": result.reason, "pending": False}), 400
    return jsonify({"error": result.reason, "pending": False}), VERIFY_ERROR_STATUS.get(result.reason, 400)


@auth_bp.route("/monzo/check", methods=["GET"])
def check():
    """
    Report whether Monzo OAuth is configured. Does NOT expose secrets.
    """
    settings = get_settings()
    expected_callback = f"{settings.app_url}/auth/monzo/callback"
    redirect_uri = settings.monzo_redirect_uri
    if not redirect_uri:
        hint = "Set MONZO_REDIRECT_URI (e.g. http://localhost:5000/auth/monzo/callback)"
    elif redirect_uri != expected_callback:
        hint = f"MONZO_REDIRECT_URI must match exactly. In the Monzo developer console, set redirect URL to: {redirect_uri}"
    else:
        hint = "Configuration looks correct."
    return jsonify(
        {
            "configured": settings.monzo_configured and bool(redirect_uri),
            "redirectUri": redirect_uri or "(not set)",
            "expectedCallback": expected_callback,
            "redirectUriMatches": redirect_uri == expected_callback,
            "hasCronSecret": bool(settings.cron_secret),
            "hint": hint,
        }
    )
