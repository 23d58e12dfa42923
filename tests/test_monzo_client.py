"""Tests for the Monzo HTTP client."""

from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from potflow.errors import AuthError, ForbiddenError, ProviderError
from potflow.monzo.client import MonzoClient


def make_response(status_code=200, payload=None, text=""):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = "Error" if status_code >= 400 else "OK"
    response.text = text
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return MonzoClient(
        client_id="cid",
        client_secret="csecret",
        redirect_uri="http://localhost:5000/auth/monzo/callback",
        session=session,
    )


def test_requires_credentials():
    with pytest.raises(ValueError):
        MonzoClient(client_id="", client_secret="x")


def test_authorization_url(client):
    url = urlparse(client.get_authorization_url(state="abc"))
    query = parse_qs(url.query)
    assert url.netloc == "auth.monzo.com"
    assert query["client_id"] == ["cid"]
    assert query["redirect_uri"] == ["http://localhost:5000/auth/monzo/callback"]
    assert query["response_type"] == ["code"]
    assert query["state"] == ["abc"]


def test_exchange_code_posts_form(client, session):
    session.request.return_value = make_response(
        payload={"access_token": "a", "refresh_token": "r", "expires_in": 3600}
    )
    tokens = client.exchange_code_for_token("the-code")

    assert tokens["refresh_token"] == "r"
    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "https://api.monzo.com/oauth2/token")
    data = session.request.call_args.kwargs["data"]
    assert data["grant_type"] == "authorization_code"
    assert data["code"] == "the-code"
    assert data["client_secret"] == "csecret"


def test_refresh_rejected_raises_auth_error(client, session):
    session.request.return_value = make_response(401, text="invalid_grant")
    with pytest.raises(AuthError) as exc:
        client.refresh_access_token("r")
    assert exc.value.status_code == 401


def test_transport_error_on_token_call_is_auth_error(client, session):
    session.request.side_effect = requests.ConnectionError("down")
    with pytest.raises(AuthError):
        client.refresh_access_token("r")


def test_get_accounts_sends_bearer(client, session):
    session.request.return_value = make_response(payload={"accounts": [{"id": "acc_1"}]})
    assert client.get_accounts("tok") == [{"id": "acc_1"}]
    assert session.request.call_args.kwargs["headers"] == {"Authorization": "Bearer tok"}
    assert session.request.call_args.kwargs["timeout"] == 10


def test_forbidden_is_distinguished(client, session):
    session.request.return_value = make_response(403)
    with pytest.raises(ForbiddenError) as exc:
        client.get_accounts("tok")
    assert exc.value.status_code == 403


def test_server_error_is_provider_error(client, session):
    session.request.return_value = make_response(500)
    with pytest.raises(ProviderError) as exc:
        client.get_balance("tok", "acc_1")
    assert not isinstance(exc.value, ForbiddenError)
    assert exc.value.status_code == 500


def test_transport_error_is_provider_error(client, session):
    session.request.side_effect = requests.Timeout("slow")
    with pytest.raises(ProviderError):
        client.get_pots("tok", "acc_1")


def test_get_pots_uses_current_account_id(client, session):
    session.request.return_value = make_response(payload={"pots": [{"id": "pot_1"}]})
    assert client.get_pots("tok", "acc_1") == [{"id": "pot_1"}]
    assert session.request.call_args.kwargs["params"] == {"current_account_id": "acc_1"}


def test_deposit_sends_dedupe_id(client, session):
    session.request.return_value = make_response(payload={"id": "pot_1", "balance": 2500})
    client.deposit_to_pot("tok", "pot_1", "acc_1", 2500, "automation-x-2024-01-01T09:00:00+00:00")

    method, url = session.request.call_args.args
    assert (method, url) == ("PUT", "https://api.monzo.com/pots/pot_1/deposit")
    assert session.request.call_args.kwargs["data"] == {
        "source_account_id": "acc_1",
        "amount": "2500",
        "dedupe_id": "automation-x-2024-01-01T09:00:00+00:00",
    }
