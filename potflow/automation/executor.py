"""
Balance check and idempotent pot deposit for a single automation.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from potflow.automation.rules import Automation, AutomationManager
from potflow.automation.schedule import as_utc
from potflow.models import LinkedAccount, Pot

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    """Result of processing one automation in a run."""

    SUCCESS = "success"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class AutomationOutcome:
    """Per-automation entry of a run report."""

    id: str
    status: OutcomeStatus
    error: Optional[str] = None
    available: Optional[int] = None
    required: Optional[int] = None
    shortfall: Optional[int] = None
    next_run_at: Optional[datetime] = None
    dedupe_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        data["status"] = self.status.value
        data["success"] = self.success
        if self.next_run_at is not None:
            data["next_run_at"] = self.next_run_at.isoformat()
        return data


def build_dedupe_id(automation: Automation, now: datetime) -> str:
    """
    Deterministic dedupe key for one scheduled occurrence of an automation.

    Built from the automation id and the scheduled instant being executed, so
    re-running the same occurrence (e.g. after a crash before write-back)
    reuses the key. Never-scheduled automations fall back to `now`.
    """
    scheduled = as_utc(automation.next_run_at) or as_utc(now)
    return f"automation-{automation.id}-{scheduled.isoformat()}"


class TransferExecutor:
    """Checks funds and deposits an automation's amount into its destination pot."""

    def __init__(self, db, monzo_client, manager: AutomationManager):
        self.db = db
        self.monzo_client = monzo_client
        self.manager = manager

    def fetch_available_balance(self, access_token: str, account: LinkedAccount) -> int:
        """Current balance of the funding account, in pence. Failures propagate."""
        balance_data = self.monzo_client.get_balance(access_token, account.account_id)
        return int(balance_data.get("balance") or 0)

    def execute(
        self,
        automation: Automation,
        pot: Pot,
        account: LinkedAccount,
        access_token: str,
        now: datetime,
    ) -> AutomationOutcome:
        """
        Run one automation: check funds, deposit, reschedule.

        When funds are short no deposit is made, but the automation is still
        rescheduled to its next natural occurrence.

        Returns:
            AutomationOutcome: SUCCESS or INSUFFICIENT_FUNDS
        """
        available = self.fetch_available_balance(access_token, account)
        if available < automation.amount:
            next_run_at = self.manager.reschedule(automation, now)
            logger.info(
                f"Automation {automation.id}: insufficient funds "
                f"({available} available, {automation.amount} required), next run {next_run_at}"
            )
            return AutomationOutcome(
                id=automation.id,
                status=OutcomeStatus.INSUFFICIENT_FUNDS,
                error=f"Insufficient funds: {available} available, {automation.amount} required",
                available=available,
                required=automation.amount,
                shortfall=automation.amount - available,
                next_run_at=next_run_at,
            )

        dedupe_id = build_dedupe_id(automation, now)
        self.monzo_client.deposit_to_pot(
            access_token, pot.pot_id, account.account_id, automation.amount, dedupe_id
        )
        logger.info(
            f"Automation {automation.id}: deposited {automation.amount} into pot {pot.pot_id} "
            f"(dedupe_id={dedupe_id})"
        )

        automation.last_run_at = as_utc(now)
        next_run_at = self.manager.reschedule(automation, now)
        return AutomationOutcome(
            id=automation.id,
            status=OutcomeStatus.SUCCESS,
            next_run_at=next_run_at,
            dedupe_id=dedupe_id,
        )
