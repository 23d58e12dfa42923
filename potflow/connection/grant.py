"""
Connection grant state machine for linking a Monzo account.

Monzo issues tokens as soon as the OAuth code is exchanged, but those tokens
carry no permissions until the user approves the connection inside the Monzo
app. Until then every data call returns 403. The tokens are parked in a
PendingApproval row and the client polls verify_pending() until the approval
lands or the token expires. Nothing is kept in memory between polls.

    NO_CONNECTION -> TOKEN_ISSUED -> AUTHORIZED
                                  -> PENDING_APPROVAL -> AUTHORIZED
                                                      -> EXPIRED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from potflow.automation.schedule import as_utc
from potflow.automation.tokens import DEFAULT_EXPIRES_IN
from potflow.errors import AuthError, ForbiddenError, ProviderError
from potflow.models import PendingApproval
from potflow.monzo.sync import sync_monzo_to_db

logger = logging.getLogger(__name__)


class GrantState(Enum):
    NO_CONNECTION = "no_connection"
    TOKEN_ISSUED = "token_issued"
    PENDING_APPROVAL = "pending_approval"
    AUTHORIZED = "authorized"
    FAILED = "failed"
    EXPIRED = "expired"


# Machine-readable reason codes surfaced to the caller
TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
MISSING_REFRESH_TOKEN = "missing_refresh_token"
PROVIDER_ERROR = "provider_error"
PENDING_STORE_FAILED = "monzo_pending_approval"
PENDING_NOT_FOUND = "pending_not_found"
PENDING_FORBIDDEN = "forbidden"
TOKEN_EXPIRED = "token_expired"


@dataclass
class GrantResult:
    state: GrantState
    reason: Optional[str] = None
    pending_id: Optional[str] = None
    accounts_linked: int = 0

    @property
    def is_pending(self) -> bool:
        return self.state is GrantState.PENDING_APPROVAL

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"state": self.state.value, "pending": self.is_pending}
        if self.reason:
            data["error"] = self.reason
        if self.pending_id:
            data["pending_id"] = self.pending_id
        if self.state is GrantState.AUTHORIZED:
            data["success"] = True
            data["accounts_linked"] = self.accounts_linked
        return data


class ConnectionGrantService:
    """Drives a Monzo connection from code exchange to an authorised linked account."""

    def __init__(self, db: Session, monzo_client):
        self.db = db
        self.monzo_client = monzo_client

    def complete_authorization(
        self, user_id: str, code: str, redirect_uri: str, now: datetime
    ) -> GrantResult:
        """
        Handle the OAuth callback: exchange the code, then probe the new token.

        Returns:
            GrantResult: AUTHORIZED, PENDING_APPROVAL (with pending_id) or FAILED
        """
        now = as_utc(now)
        try:
            tokens = self.monzo_client.exchange_code_for_token(code, redirect_uri)
        except AuthError as e:
            logger.error(f"[MONZO-CALLBACK] Token exchange failed: {e}")
            return GrantResult(GrantState.FAILED, reason=TOKEN_EXCHANGE_FAILED)

        if not tokens.get("refresh_token"):
            # Only confidential Monzo clients receive refresh tokens
            logger.error("[MONZO-CALLBACK] No refresh token - ensure Monzo client is confidential")
            return GrantResult(GrantState.FAILED, reason=MISSING_REFRESH_TOKEN)

        logger.info(f"[MONZO-CALLBACK] {GrantState.TOKEN_ISSUED.value} for user {user_id}")
        return self._probe_issued_token(user_id, tokens, now)

    def _probe_issued_token(self, user_id: str, tokens: Dict[str, Any], now: datetime) -> GrantResult:
        access_token = tokens["access_token"]
        try:
            self.monzo_client.get_accounts(access_token)
        except ForbiddenError:
            logger.info("[MONZO-CALLBACK] 403 - storing tokens for pending approval flow")
            return self._store_pending(user_id, tokens, now)
        except ProviderError as e:
            logger.error(f"[MONZO-CALLBACK] Probing new token failed: {e}")
            return GrantResult(GrantState.FAILED, reason=PROVIDER_ERROR)

        return self._authorize(user_id, tokens, now)

    def _store_pending(self, user_id: str, tokens: Dict[str, Any], now: datetime) -> GrantResult:
        expires_in = int(tokens.get("expires_in") or DEFAULT_EXPIRES_IN)
        pending = PendingApproval(
            user_id=user_id,
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            token_expiry=now + timedelta(seconds=expires_in),
            created_at=now,
        )
        try:
            self.db.add(pending)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"[MONZO-CALLBACK] Failed to store pending approval: {e}")
            return GrantResult(GrantState.FAILED, reason=PENDING_STORE_FAILED)
        return GrantResult(GrantState.PENDING_APPROVAL, pending_id=pending.id)

    def _authorize(self, user_id: str, tokens: Dict[str, Any], now: datetime) -> GrantResult:
        # Older pending approvals of this user go away in the same commit as the sync
        stale = self.db.query(PendingApproval).filter_by(user_id=user_id).all()
        for pending in stale:
            self.db.delete(pending)
        try:
            linked = sync_monzo_to_db(self.db, self.monzo_client, tokens, user_id, now)
        except ProviderError as e:
            self.db.rollback()
            logger.error(f"[MONZO-CALLBACK] Account sync failed: {e}")
            return GrantResult(GrantState.FAILED, reason=PROVIDER_ERROR)
        logger.info(f"[MONZO-CALLBACK] Linked {len(linked)} account(s) for user {user_id}")
        return GrantResult(GrantState.AUTHORIZED, accounts_linked=len(linked))

    def verify_pending(self, pending_id: str, user_id: str, now: datetime) -> GrantResult:
        """
        One poll of a pending approval.

        Returns:
            GrantResult: PENDING_APPROVAL (still waiting), AUTHORIZED (promoted
            and record deleted), EXPIRED (record deleted), or FAILED with
            reason pending_not_found / forbidden / provider_error
        """
        now = as_utc(now)
        pending = self.db.query(PendingApproval).filter_by(id=pending_id).first()
        if pending is None:
            return GrantResult(GrantState.FAILED, reason=PENDING_NOT_FOUND)
        if pending.user_id != user_id:
            logger.warning(f"[VERIFY-PENDING] User {user_id} polled pending approval of another user")
            return GrantResult(GrantState.FAILED, reason=PENDING_FORBIDDEN)

        expiry = as_utc(pending.token_expiry)
        expires_in = int((expiry - now).total_seconds())
        if expires_in <= 0:
            logger.info(f"[VERIFY-PENDING] Pending approval {pending_id} expired")
            self.db.delete(pending)
            self.db.commit()
            return GrantResult(GrantState.EXPIRED, reason=TOKEN_EXPIRED)

        try:
            self.monzo_client.get_accounts(pending.access_token)
        except ForbiddenError:
            return GrantResult(GrantState.PENDING_APPROVAL, pending_id=pending_id)
        except ProviderError as e:
            logger.error(f"[VERIFY-PENDING] Probe failed for {pending_id}: {e}")
            return GrantResult(GrantState.FAILED, reason=PROVIDER_ERROR, pending_id=pending_id)

        tokens = {
            "access_token": pending.access_token,
            "refresh_token": pending.refresh_token,
            "expires_in": expires_in,
        }
        result = self._authorize(user_id, tokens, now)
        if result.state is GrantState.AUTHORIZED:
            logger.info(f"[VERIFY-PENDING] Pending approval {pending_id} promoted")
        return result
