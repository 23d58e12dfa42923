"""
Helpers for classifying Monzo accounts and tracking the reconnection window.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from potflow.automation.schedule import as_utc

# Monzo consent lasts 90 days before the user must reconnect
RECONNECT_AFTER_DAYS = 90

ACCOUNT_TYPES = ("current", "flex", "rewards")

_MONZO_TYPE_MAP = {
    "uk_retail": "current",
    "uk_retail_joint": "current",
    "uk_rewards": "rewards",
    "uk_monzo_flex": "flex",
}


def _type_from_description(description: Optional[str]) -> Optional[str]:
    desc = (description or "").lower()
    if "monzoflex" in desc:
        return "flex"
    if "rewardsoptin" in desc:
        return "rewards"
    return None


def classify_account_type(monzo_type: Optional[str], description: Optional[str]) -> str:
    """Map a Monzo account type to 'current', 'flex', 'rewards' or 'other'."""
    mapped = _MONZO_TYPE_MAP.get(monzo_type or "")
    if mapped:
        return mapped
    return _type_from_description(description) or "other"


def get_effective_account_type(account_type: Optional[str], account_name: Optional[str]) -> str:
    """
    Effective type for a stored account.
    Rows stored as 'other' may still be Flex/Rewards accounts, detected by their description.
    """
    if account_type in ACCOUNT_TYPES:
        return account_type
    return _type_from_description(account_name) or account_type or "other"


def get_reconnect_by_date(now: datetime) -> datetime:
    return now + timedelta(days=RECONNECT_AFTER_DAYS)


def days_until_reconnection(reconnect_by: datetime, now: datetime) -> int:
    diff = as_utc(reconnect_by) - as_utc(now)
    return math.ceil(diff.total_seconds() / 86400)


def get_reconnection_status(days: int) -> str:
    if days > 30:
        return "safe"
    if days > 10:
        return "warning"
    return "urgent"
