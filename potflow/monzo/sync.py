"""
Monzo sync module: writes accounts and pots fetched from Monzo into the database.

Used when a connection is authorised (directly from the OAuth callback or when
a pending approval is verified) and when a user asks for a manual refresh.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from potflow.automation.schedule import as_utc
from potflow.automation.tokens import DEFAULT_EXPIRES_IN, ensure_access_token
from potflow.errors import ProviderError
from potflow.models import LinkedAccount, Pot
from potflow.services.account_utils import (classify_account_type,
                                            get_reconnect_by_date)

logger = logging.getLogger(__name__)


def _fetch_balance(client, access_token: str, account_id: str) -> int:
    try:
        balance_data = client.get_balance(access_token, account_id)
    except ProviderError as e:
        logger.warning(f"[SYNC] Balance unavailable for account {account_id}: {e}")
        return 0
    return int(balance_data.get("balance") or 0)


def _fetch_pots(client, access_token: str, account_id: str) -> List[Dict[str, Any]]:
    try:
        return client.get_pots(access_token, account_id)
    except ProviderError as e:
        logger.warning(f"[SYNC] Pots unavailable for account {account_id}: {e}")
        return []


def upsert_pots(
    db: Session, linked_account: LinkedAccount, pots: List[Dict[str, Any]], now: datetime
) -> int:
    """
    Insert or update non-deleted pots, keyed by Monzo pot ID.

    Returns:
        int: Number of pots written
    """
    written = 0
    for pot_data in pots:
        if pot_data.get("deleted"):
            continue
        pot = db.query(Pot).filter_by(pot_id=pot_data["id"]).first()
        if pot is None:
            pot = Pot(pot_id=pot_data["id"])
            db.add(pot)
        pot.linked_account_id = linked_account.id
        pot.pot_name = pot_data.get("name") or "Pot"
        pot.balance = int(pot_data.get("balance") or 0)
        pot.last_synced = now
        written += 1
    return written


def sync_monzo_to_db(
    db: Session, client, tokens: Dict[str, Any], user_id: str, now: datetime
) -> List[LinkedAccount]:
    """
    Sync all of a user's Monzo accounts and their pots using the given tokens.

    Args:
        db: SQLAlchemy session
        client: MonzoClient
        tokens: Dict with access_token, refresh_token, expires_in
        user_id: Owner of the connection
        now: Current instant

    Returns:
        List[LinkedAccount]: The linked accounts written

    Raises:
        ForbiddenError / ProviderError: listing accounts failed
    """
    now = as_utc(now)
    access_token = tokens["access_token"]
    refresh_token = tokens.get("refresh_token")
    token_expiry = now + timedelta(seconds=int(tokens.get("expires_in") or DEFAULT_EXPIRES_IN))
    reconnect_by = get_reconnect_by_date(now)

    accounts = client.get_accounts(access_token)
    logger.info(f"[SYNC] Fetched {len(accounts)} Monzo account(s) for user {user_id}")

    linked: List[LinkedAccount] = []
    for account_data in accounts:
        account_id = account_data["id"]
        balance = _fetch_balance(client, access_token, account_id)
        account_type = classify_account_type(
            account_data.get("type"), account_data.get("description")
        )

        account = (
            db.query(LinkedAccount).filter_by(user_id=user_id, account_id=account_id).first()
        )
        if account is None:
            account = LinkedAccount(user_id=user_id, account_id=account_id, connected_at=now)
            db.add(account)

        account.account_name = account_data.get("description") or f"{account_type} Account"
        account.account_type = account_type
        account.balance = balance
        account.access_token = access_token
        account.refresh_token = refresh_token
        account.token_expiry = token_expiry
        account.reconnect_by = reconnect_by
        account.last_synced = now
        account.is_active = True
        db.flush()

        pot_count = upsert_pots(db, account, _fetch_pots(client, access_token, account_id), now)
        logger.info(f"[SYNC] Account {account_id} ({account_type}): {pot_count} pot(s)")
        linked.append(account)

    db.commit()
    return linked


def refresh_linked_account(db: Session, client, account: LinkedAccount, now: datetime) -> LinkedAccount:
    """
    Refresh the cached balance and pots of an existing linked account.

    Unlike the initial sync, a failing balance call propagates here.
    """
    now = as_utc(now)
    access_token = ensure_access_token(db, client, account, now)
    balance_data = client.get_balance(access_token, account.account_id)
    account.balance = int(balance_data.get("balance") or 0)
    upsert_pots(db, account, _fetch_pots(client, access_token, account.account_id), now)
    account.last_synced = now
    db.commit()
    return account
