"""Tests for the Monzo connection routes."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import USER_ID
from potflow.models import LinkedAccount, PendingApproval

ACCOUNTS_PAGE = "http://localhost:5000/dashboard/accounts"


def redirect_params(response):
    location = urlparse(response.headers["Location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == ACCOUNTS_PAGE
    return {k: v[0] for k, v in parse_qs(location.query).items()}


@pytest.fixture
def oauth_started(signed_in):
    with signed_in.session_transaction() as sess:
        sess["monzo_oauth_state"] = "state-123"
        sess["monzo_oauth_user"] = USER_ID
    return signed_in


def test_connect_requires_sign_in(client):
    response = client.get("/auth/monzo/connect")
    assert response.status_code == 302
    assert "/auth/login" in response.headers["Location"]


def test_connect_redirects_to_monzo(signed_in):
    response = signed_in.get("/auth/monzo/connect")
    assert response.status_code == 302
    assert response.headers["Location"].startswith("https://auth.monzo.com/")
    with signed_in.session_transaction() as sess:
        assert sess["monzo_oauth_user"] == USER_ID
        assert sess["monzo_oauth_state"] in response.headers["Location"]


def test_connect_without_monzo_credentials(app, signed_in):
    app.config["SETTINGS"].monzo_client_id = ""
    response = signed_in.get("/auth/monzo/connect")
    assert redirect_params(response) == {"error": "monzo_not_configured"}


def test_callback_passes_provider_error_through(client):
    response = client.get("/auth/monzo/callback?error=access_denied")
    assert redirect_params(response) == {"error": "access_denied"}


def test_callback_missing_params(client):
    assert redirect_params(client.get("/auth/monzo/callback?code=x")) == {"error": "missing_params"}


def test_callback_rejects_wrong_state(oauth_started):
    response = oauth_started.get("/auth/monzo/callback?code=abc&state=other")
    assert redirect_params(response) == {"error": "invalid_state"}


def test_callback_connected(oauth_started, app_db):
    response = oauth_started.get("/auth/monzo/callback?code=abc&state=state-123")
    assert redirect_params(response) == {"monzo": "connected"}
    assert app_db.query(LinkedAccount).filter_by(user_id=USER_ID).count() == 1
    with oauth_started.session_transaction() as sess:
        assert "monzo_oauth_state" not in sess


def test_callback_token_exchange_failure(oauth_started):
    response = oauth_started.get("/auth/monzo/callback?code=bad-code&state=state-123")
    assert redirect_params(response) == {"error": "token_exchange_failed"}


def test_pending_approval_flow(oauth_started, app_db, fake_monzo):
    fake_monzo.forbidden_tokens.add("access-new")

    response = oauth_started.get("/auth/monzo/callback?code=abc&state=state-123")
    params = redirect_params(response)
    assert params["monzo"] == "pending_approval"
    pending_id = params["pending_id"]

    poll = oauth_started.get(f"/auth/monzo/verify-pending?pending_id={pending_id}")
    assert poll.status_code == 200
    assert poll.get_json() == {"pending": True}

    fake_monzo.forbidden_tokens.clear()
    poll = oauth_started.get(f"/auth/monzo/verify-pending?pending_id={pending_id}")
    assert poll.get_json() == {"success": True, "pending": False}

    assert app_db.query(PendingApproval).count() == 0
    assert app_db.query(LinkedAccount).count() == 1


def test_verify_pending_requires_id(signed_in):
    response = signed_in.get("/auth/monzo/verify-pending")
    assert response.status_code == 400
    assert response.get_json()["error"] == "missing_pending_id"


def test_verify_pending_requires_sign_in(client):
    response = client.get("/auth/monzo/verify-pending?pending_id=abc")
    assert response.status_code == 401


def test_verify_pending_unknown_id(signed_in):
    response = signed_in.get("/auth/monzo/verify-pending?pending_id=nope")
    assert response.status_code == 404
    assert response.get_json() == {"error": "pending_not_found", "pending": False}


def test_verify_pending_other_user(signed_in, app_db):
    pending = PendingApproval(
        user_id="someone-else",
        access_token="a",
        refresh_token="r",
        token_expiry=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    app_db.add(pending)
    app_db.commit()
    response = signed_in.get(f"/auth/monzo/verify-pending?pending_id={pending.id}")
    assert response.status_code == 403


def test_verify_pending_expired(signed_in, app_db):
    pending = PendingApproval(
        user_id=USER_ID,
        access_token="a",
        refresh_token="r",
        token_expiry=datetime.now(timezone.utc) - timedelta(seconds=1),
    )
    app_db.add(pending)
    app_db.commit()
    pending_id = pending.id

    response = signed_in.get(f"/auth/monzo/verify-pending?pending_id={pending_id}")
    assert response.status_code == 400
    assert response.get_json() == {"error": "token_expired", "pending": False}
    app_db.expire_all()
    assert app_db.query(PendingApproval).count() == 0


def test_check_reports_configuration(client):
    body = client.get("/auth/monzo/check").get_json()
    assert body["configured"] is True
    assert body["redirectUriMatches"] is True
    assert body["hasCronSecret"] is True
    assert "client-secret" not in str(body)
