"""Shared pytest fixtures for potflow tests."""

from datetime import datetime, timedelta, timezone

import pytest

from potflow import create_app
from potflow.automation.rules import Automation
from potflow.config import Settings
from potflow.db import SessionLocal, init_engine
from potflow.errors import AuthError, ForbiddenError, ProviderError
from potflow.models import LinkedAccount, Pot

MEMORY_DB = "sqlite:///:memory:"
CRON_SECRET = "test-cron-secret"
USER_ID = "user-1"

# Monday 1 January 2024, 10:00 UTC
NOW = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


class FakeMonzo:
    """In-memory stand-in for MonzoClient with the same method signatures."""

    def __init__(self):
        self.accounts = [
            {"id": "acc_current", "description": "user_0000", "type": "uk_retail"},
        ]
        self.balances = {"acc_current": 10000}
        self.pots = {
            "acc_current": [
                {"id": "pot_savings", "name": "Savings", "balance": 500, "deleted": False},
                {"id": "pot_old", "name": "Old", "balance": 0, "deleted": True},
            ]
        }
        self.tokens = {
            "access_token": "access-new",
            "refresh_token": "refresh-new",
            "expires_in": 3600,
        }
        self.forbidden_tokens = set()
        self.failing_balances = set()
        self.fail_accounts = False
        self.fail_deposits = False
        self.refresh_error = None
        self.deposits = []
        self.refresh_calls = []
        self._seen_dedupe_ids = set()

    def get_authorization_url(self, state):
        return f"https://auth.monzo.com/?state={state}"

    def exchange_code_for_token(self, code, redirect_uri=None):
        if code == "bad-code":
            raise AuthError("Monzo token exchange failed: invalid_grant", status_code=400)
        return dict(self.tokens)

    def refresh_access_token(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        return {"access_token": f"access-refreshed-{len(self.refresh_calls)}", "expires_in": 3600}

    def get_accounts(self, access_token):
        if access_token in self.forbidden_tokens:
            raise ForbiddenError()
        if self.fail_accounts:
            raise ProviderError("Failed to fetch Monzo accounts: 500", status_code=500)
        return list(self.accounts)

    def get_balance(self, access_token, account_id):
        if account_id in self.failing_balances:
            raise ProviderError("Failed to fetch Monzo balance: 503", status_code=503)
        return {"balance": self.balances.get(account_id, 0), "currency": "GBP"}

    def get_pots(self, access_token, account_id):
        return list(self.pots.get(account_id, []))

    def deposit_to_pot(self, access_token, pot_id, account_id, amount, dedupe_id):
        if self.fail_deposits:
            raise ProviderError("Failed to deposit into Monzo pot: 500", status_code=500)
        if dedupe_id in self._seen_dedupe_ids:
            return {"id": pot_id}
        self._seen_dedupe_ids.add(dedupe_id)
        self.balances[account_id] = self.balances.get(account_id, 0) - amount
        self.deposits.append(
            {"pot_id": pot_id, "account_id": account_id, "amount": amount, "dedupe_id": dedupe_id}
        )
        return {"id": pot_id}


def add_linked_account(db, user_id=USER_ID, account_id="acc_current", token_expiry=None,
                       pot_id="pot_savings", is_active=True):
    """Create a linked account with one pot and return the pot."""
    account = LinkedAccount(
        user_id=user_id,
        account_id=account_id,
        account_name="user_0000",
        account_type="current",
        balance=10000,
        access_token="access-stored",
        refresh_token="refresh-stored",
        token_expiry=token_expiry or datetime.now(timezone.utc) + timedelta(days=365),
        reconnect_by=NOW + timedelta(days=90),
        is_active=is_active,
    )
    db.add(account)
    db.flush()
    pot = Pot(linked_account_id=account.id, pot_id=pot_id, pot_name="Savings", balance=500)
    db.add(pot)
    db.commit()
    return pot


def add_automation(db, pot, user_id=USER_ID, **overrides):
    values = {
        "user_id": user_id,
        "name": "Weekly savings",
        "destination_pot_id": pot.id,
        "amount": 2500,
        "frequency": "weekly",
        "day_of_week": 1,
        "day_of_month": None,
        "is_active": True,
        "next_run_at": NOW - timedelta(hours=1),
    }
    values.update(overrides)
    automation = Automation(**values)
    db.add(automation)
    db.commit()
    return automation


@pytest.fixture
def db():
    """Session on a fresh in-memory database."""
    init_engine(MEMORY_DB)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_monzo():
    return FakeMonzo()


@pytest.fixture
def pot(db):
    return add_linked_account(db)


@pytest.fixture
def settings():
    return Settings(
        database_url=MEMORY_DB,
        secret_key="test-secret-key",
        monzo_client_id="client-id",
        monzo_client_secret="client-secret",
        monzo_redirect_uri="http://localhost:5000/auth/monzo/callback",
        cron_secret=CRON_SECRET,
        automation_timezone="UTC",
    )


@pytest.fixture
def app(settings, fake_monzo):
    app = create_app(settings)
    app.config["TESTING"] = True
    app.config["WTF_CSRF_ENABLED"] = False
    app.config["MONZO_CLIENT"] = fake_monzo
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_db(app):
    """Session on the database the app fixture created."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def signed_in(client):
    with client.session_transaction() as sess:
        sess["user_id"] = USER_ID
    return client
