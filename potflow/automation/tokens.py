"""
Token custody for linked accounts: hand out a usable access token, refreshing it first when it is about to expire.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from potflow.automation.schedule import as_utc
from potflow.errors import AuthError
from potflow.models import LinkedAccount

logger = logging.getLogger(__name__)

# Refresh tokens that expire within this margin
REFRESH_MARGIN = timedelta(seconds=60)
DEFAULT_EXPIRES_IN = 3600


def token_needs_refresh(account: LinkedAccount, now: datetime) -> bool:
    expiry = as_utc(account.token_expiry)
    if expiry is None:
        return True
    return as_utc(now) >= expiry - REFRESH_MARGIN


def ensure_access_token(db: Session, client, account: LinkedAccount, now: datetime) -> str:
    """
    Return an access token for `account` that is valid for at least REFRESH_MARGIN.

    When a refresh happens the new access token, refresh token (Monzo may not
    rotate it) and expiry are written back to the account and committed.

    Raises:
        AuthError: refresh rejected or no refresh token stored
    """
    if not token_needs_refresh(account, now):
        return account.access_token

    if not account.refresh_token:
        raise AuthError(f"No refresh token stored for linked account {account.id}")

    logger.info(f"Refreshing access token for linked account {account.id}")
    tokens = client.refresh_access_token(account.refresh_token)

    access_token = tokens.get("access_token")
    if not access_token:
        raise AuthError("Token refresh response did not include an access token")

    expires_in = tokens.get("expires_in") or DEFAULT_EXPIRES_IN
    account.access_token = access_token
    account.refresh_token = tokens.get("refresh_token") or account.refresh_token
    account.token_expiry = as_utc(now) + timedelta(seconds=int(expires_in))
    db.commit()
    return access_token
