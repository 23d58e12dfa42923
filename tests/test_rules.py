"""Tests for AutomationManager: creation, toggling and due selection."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import NOW, USER_ID, add_automation
from potflow.automation.rules import Automation, AutomationManager
from potflow.automation.schedule import as_utc


@pytest.fixture
def manager(db):
    return AutomationManager(db, tz=timezone.utc)


def test_create_automation_schedules_first_run(manager, pot):
    automation = manager.create_automation(
        USER_ID,
        {
            "name": "Rainy day",
            "destination_pot_id": pot.id,
            "amount": 1000,
            "frequency": "weekly",
            "day_of_week": 3,
        },
        NOW,
    )
    assert automation.is_active is True
    assert as_utc(automation.next_run_at) == datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc)
    assert automation.day_of_month is None


def test_create_monthly_automation_ignores_day_of_week(manager, pot):
    automation = manager.create_automation(
        USER_ID,
        {
            "name": "Rent",
            "destination_pot_id": pot.id,
            "amount": 50000,
            "frequency": "monthly",
            "day_of_week": 2,
            "day_of_month": 31,
        },
        NOW,
    )
    assert automation.day_of_week is None
    assert as_utc(automation.next_run_at) == datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)


def test_database_rejects_non_positive_amount(db, pot):
    with pytest.raises(IntegrityError):
        add_automation(db, pot, amount=0)
    db.rollback()


def test_database_rejects_mismatched_recurrence(db, pot):
    with pytest.raises(IntegrityError):
        add_automation(db, pot, frequency="weekly", day_of_week=None, day_of_month=5)
    db.rollback()


def test_due_selection_orders_by_next_run_and_skips_future_and_inactive(db, manager, pot):
    later = add_automation(db, pot, next_run_at=NOW - timedelta(minutes=5))
    earlier = add_automation(db, pot, next_run_at=NOW - timedelta(days=1))
    add_automation(db, pot, next_run_at=NOW + timedelta(minutes=1))
    add_automation(db, pot, is_active=False, next_run_at=NOW - timedelta(days=2))

    due = manager.get_due_automations(NOW)
    assert [a.id for a in due] == [earlier.id, later.id]


def test_due_selection_includes_exactly_now(db, manager, pot):
    automation = add_automation(db, pot, next_run_at=NOW)
    assert [a.id for a in manager.get_due_automations(NOW)] == [automation.id]


def test_unscheduled_active_automations_are_backfilled_after_due_ones(db, manager, pot):
    due = add_automation(db, pot, next_run_at=NOW - timedelta(hours=1))
    backfill = add_automation(db, pot, next_run_at=None)
    add_automation(db, pot, next_run_at=None, is_active=False)

    result = manager.get_due_automations(NOW)
    assert [a.id for a in result] == [due.id, backfill.id]
    assert len({a.id for a in result}) == len(result)


def test_nothing_due(db, manager, pot):
    add_automation(db, pot, next_run_at=NOW + timedelta(days=1))
    assert manager.get_due_automations(NOW) == []


def test_reschedule_advances_from_now(db, manager, pot):
    automation = add_automation(db, pot, day_of_week=1, next_run_at=NOW - timedelta(hours=1))
    next_run_at = manager.reschedule(automation, NOW)
    assert next_run_at == datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)
    assert next_run_at > NOW


def test_reactivation_reschedules_missed_run(db, manager, pot):
    automation = add_automation(db, pot, is_active=False, next_run_at=NOW - timedelta(days=30))
    manager.set_active(automation, True, NOW)
    assert automation.is_active is True
    assert as_utc(automation.next_run_at) > NOW


def test_pausing_keeps_next_run(db, manager, pot):
    scheduled = NOW + timedelta(days=2)
    automation = add_automation(db, pot, next_run_at=scheduled)
    manager.set_active(automation, False, NOW)
    assert automation.is_active is False
    assert as_utc(automation.next_run_at) == scheduled


def test_get_automation_scoped_to_user(db, manager, pot):
    automation = add_automation(db, pot)
    assert manager.get_automation(automation.id, user_id=USER_ID) is automation
    assert manager.get_automation(automation.id, user_id="someone-else") is None


def test_delete_automation(db, manager, pot):
    automation = add_automation(db, pot)
    manager.delete_automation(automation)
    assert db.query(Automation).count() == 0
