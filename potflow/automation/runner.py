"""
Run orchestrator - executes every due automation in one sequential pass.

Each automation is processed in isolation: its failure is recorded in the
report and the loop moves on to the next one.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from potflow.automation.executor import (AutomationOutcome, OutcomeStatus,
                                         TransferExecutor)
from potflow.automation.rules import Automation, AutomationManager
from potflow.automation.tokens import ensure_access_token
from potflow.errors import MonzoError, NotFoundError
from potflow.models import LinkedAccount, Pot

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Summary of one run: how many automations were processed and their outcomes."""

    results: List[AutomationOutcome] = field(default_factory=list)

    @property
    def ran(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        if not self.results:
            return {"ran": 0, "message": "No automations due"}
        return {"ran": self.ran, "results": [r.to_dict() for r in self.results]}


class AutomationRunner:
    """Selects due automations and runs them one after another."""

    def __init__(self, db: Session, monzo_client, tz=None):
        self.db = db
        self.monzo_client = monzo_client
        self.manager = AutomationManager(db, tz=tz)
        self.executor = TransferExecutor(db, monzo_client, self.manager)

    def _resolve(self, automation: Automation) -> Tuple[Pot, LinkedAccount]:
        pot = self.db.query(Pot).filter_by(id=automation.destination_pot_id).first()
        if pot is None:
            raise NotFoundError("Pot not found")
        account = (
            self.db.query(LinkedAccount)
            .filter_by(id=pot.linked_account_id, is_active=True)
            .first()
        )
        if account is None:
            raise NotFoundError("Monzo account not found")
        return pot, account

    def process(self, automation: Automation, now: datetime) -> AutomationOutcome:
        """Process one automation; never raises."""
        try:
            pot, account = self._resolve(automation)
        except NotFoundError as e:
            return AutomationOutcome(id=automation.id, status=OutcomeStatus.NOT_FOUND, error=str(e))

        try:
            access_token = ensure_access_token(self.db, self.monzo_client, account, now)
            return self.executor.execute(automation, pot, account, access_token, now)
        except MonzoError as e:
            self.db.rollback()
            logger.error(f"[RUN-AUTOMATIONS] Automation {automation.id} failed: {e}")
            return AutomationOutcome(id=automation.id, status=OutcomeStatus.FAILED, error=str(e))
        except Exception as e:
            self.db.rollback()
            logger.exception(f"[RUN-AUTOMATIONS] Automation {automation.id} failed unexpectedly")
            return AutomationOutcome(
                id=automation.id, status=OutcomeStatus.FAILED, error=str(e) or "Unknown error"
            )

    def _record(self, automation: Automation, outcome: AutomationOutcome) -> None:
        try:
            automation.last_result = outcome.to_dict()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"[RUN-AUTOMATIONS] Could not store result for {automation.id}: {e}")

    def run(self, now: Optional[datetime] = None) -> RunReport:
        """
        Execute every due automation.

        Errors inside one automation become a FAILED (or NOT_FOUND) outcome.
        Only setup errors, such as the due-set query failing, propagate.
        """
        now = now or datetime.now(timezone.utc)
        due = self.manager.get_due_automations(now)
        logger.info(f"[RUN-AUTOMATIONS] {len(due)} automation(s) due at {now.isoformat()}")

        report = RunReport()
        for automation in due:
            outcome = self.process(automation, now)
            self._record(automation, outcome)
            report.results.append(outcome)
            logger.info(
                f"[RUN-AUTOMATIONS] Automation {automation.id}: {outcome.status.value}"
                + (f" ({outcome.error})" if outcome.error else "")
            )
        return report
