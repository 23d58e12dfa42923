"""
Automation package.

This package contains the scheduled deposit engine:
- Schedule: next-run computation for weekly/monthly automations
- Rules: Automation model, management and due-set selection
- Tokens: access-token custody and refresh for linked accounts
- Executor: balance check and idempotent pot deposit
- Runner: sequential run over all due automations with per-item outcomes
"""

from .executor import AutomationOutcome, OutcomeStatus, TransferExecutor
from .rules import Automation, AutomationManager
from .runner import AutomationRunner, RunReport
from .schedule import compute_next_run_at
from .tokens import ensure_access_token

__all__ = [
    "Automation",
    "AutomationManager",
    "AutomationOutcome",
    "AutomationRunner",
    "OutcomeStatus",
    "RunReport",
    "TransferExecutor",
    "compute_next_run_at",
    "ensure_access_token",
]
