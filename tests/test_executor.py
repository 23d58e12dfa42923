"""Tests for the balance check and idempotent deposit."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, add_automation
from potflow.automation.executor import (OutcomeStatus, TransferExecutor,
                                         build_dedupe_id)
from potflow.automation.rules import AutomationManager
from potflow.automation.schedule import as_utc
from potflow.errors import ProviderError


@pytest.fixture
def executor(db, fake_monzo):
    return TransferExecutor(db, fake_monzo, AutomationManager(db, tz=timezone.utc))


def test_deposit_success_reschedules(db, executor, fake_monzo, pot):
    automation = add_automation(db, pot, amount=2500)
    outcome = executor.execute(automation, pot, pot.linked_account, "access-stored", NOW)

    assert outcome.status is OutcomeStatus.SUCCESS
    assert outcome.success
    assert fake_monzo.deposits == [
        {
            "pot_id": "pot_savings",
            "account_id": "acc_current",
            "amount": 2500,
            "dedupe_id": outcome.dedupe_id,
        }
    ]
    assert as_utc(automation.last_run_at) == NOW
    assert as_utc(automation.next_run_at) == datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)


def test_insufficient_funds_reschedules_without_deposit(db, executor, fake_monzo, pot):
    fake_monzo.balances["acc_current"] = 1000
    automation = add_automation(db, pot, amount=2500)

    outcome = executor.execute(automation, pot, pot.linked_account, "access-stored", NOW)

    assert outcome.status is OutcomeStatus.INSUFFICIENT_FUNDS
    assert not outcome.success
    assert (outcome.available, outcome.required, outcome.shortfall) == (1000, 2500, 1500)
    assert outcome.error == "Insufficient funds: 1000 available, 2500 required"
    assert fake_monzo.deposits == []
    assert automation.last_run_at is None
    assert as_utc(automation.next_run_at) > NOW


def test_exact_balance_is_enough(db, executor, fake_monzo, pot):
    fake_monzo.balances["acc_current"] = 2500
    automation = add_automation(db, pot, amount=2500)
    outcome = executor.execute(automation, pot, pot.linked_account, "access-stored", NOW)
    assert outcome.status is OutcomeStatus.SUCCESS


def test_replayed_occurrence_deposits_once(db, executor, fake_monzo, pot):
    scheduled = NOW - timedelta(hours=1)
    automation = add_automation(db, pot, next_run_at=scheduled)
    first_key = build_dedupe_id(automation, NOW)

    executor.execute(automation, pot, pot.linked_account, "access-stored", NOW)

    # Crash before write-back: the same occurrence is attempted again
    automation.next_run_at = scheduled
    db.commit()
    outcome = executor.execute(automation, pot, pot.linked_account, "access-stored", NOW)

    assert outcome.dedupe_id == first_key
    assert len(fake_monzo.deposits) == 1


def test_dedupe_id_uses_scheduled_instant():
    class Stub:
        id = "abc"
        next_run_at = datetime(2024, 1, 1, 9, 0)

    assert build_dedupe_id(Stub(), NOW) == "automation-abc-2024-01-01T09:00:00+00:00"
    Stub.next_run_at = None
    assert build_dedupe_id(Stub(), NOW) == f"automation-abc-{NOW.isoformat()}"


def test_balance_failure_propagates_and_keeps_schedule(db, executor, fake_monzo, pot):
    scheduled = NOW - timedelta(hours=1)
    automation = add_automation(db, pot, next_run_at=scheduled)
    fake_monzo.failing_balances.add("acc_current")

    with pytest.raises(ProviderError):
        executor.execute(automation, pot, pot.linked_account, "access-stored", NOW)
    assert as_utc(automation.next_run_at) == scheduled


def test_outcome_to_dict(db, executor, fake_monzo, pot):
    fake_monzo.balances["acc_current"] = 0
    automation = add_automation(db, pot, amount=100)
    data = executor.execute(automation, pot, pot.linked_account, "t", NOW).to_dict()
    assert data["status"] == "insufficient_funds"
    assert data["success"] is False
    assert data["shortfall"] == 100
    assert data["next_run_at"] == "2024-01-08T09:00:00+00:00"
    assert "dedupe_id" not in data
