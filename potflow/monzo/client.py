"""
MonzoClient for the Monzo HTTP API: OAuth token exchange/refresh, accounts, balances, pots and deposits.

Every data call takes the access token explicitly so the caller (token
custodian or pending-approval flow) decides which credential is used.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from potflow.errors import AuthError, ForbiddenError, ProviderError

logger = logging.getLogger(__name__)

MONZO_API_BASE = "https://api.monzo.com"
MONZO_AUTH_BASE = "https://auth.monzo.com"


class MonzoClient:
    """
    Thin wrapper around the Monzo REST API.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
        api_base: str = MONZO_API_BASE,
    ):
        if not client_id or not client_secret:
            raise ValueError("MonzoClient requires client_id and client_secret")
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri or ""
        self.timeout = timeout
        self.session = session or requests.Session()
        self.api_base = api_base.rstrip("/")

    def _request(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        **kwargs,
    ) -> requests.Response:
        headers = kwargs.pop("headers", {})
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        url = f"{self.api_base}{path}"
        try:
            return self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Monzo request {method} {path} failed: {e}")
            raise ProviderError(f"Monzo request failed: {e}") from e

    def _json(self, response: requests.Response, action: str) -> Dict[str, Any]:
        if response.status_code == 403:
            raise ForbiddenError(
                "Access token has no permissions yet. "
                "The user must approve the connection in their Monzo app."
            )
        if not response.ok:
            logger.warning(f"Monzo {action} failed with status {response.status_code}")
            raise ProviderError(
                f"Failed to {action}: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Failed to {action}: invalid JSON response") from e

    def _token_request(self, data: Dict[str, str], action: str) -> Dict[str, Any]:
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **data,
        }
        try:
            response = self._request("POST", "/oauth2/token", data=payload)
        except ProviderError as e:
            raise AuthError(f"Monzo {action} failed: {e}") from e
        if not response.ok:
            logger.error(f"Monzo {action} rejected with status {response.status_code}")
            raise AuthError(
                f"Monzo {action} failed: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise AuthError(f"Monzo {action} failed: invalid JSON response") from e

    def get_authorization_url(self, state: str) -> str:
        """
        Returns the Monzo OAuth authorization URL for user login.
        """
        if not self.redirect_uri:
            raise ValueError("MonzoClient requires redirect_uri for authorization URL")
        params = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "state": state,
            }
        )
        return f"{MONZO_AUTH_BASE}/?{params}"

    def exchange_code_for_token(self, code: str, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
        """
        Exchanges the OAuth code for access and refresh tokens.

        Returns:
            Dict with access_token, refresh_token (confidential clients only), expires_in, user_id
        """
        redirect_uri = redirect_uri or self.redirect_uri
        if not redirect_uri:
            raise ValueError("MonzoClient requires redirect_uri for token exchange")
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri,
                "code": code,
            },
            "token exchange",
        )

    def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Refreshes the access token using the refresh token.
        Monzo may or may not rotate the refresh token.
        """
        logger.info("Attempting to refresh access token")
        tokens = self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            "token refresh",
        )
        logger.info("Access token refreshed successfully")
        return tokens

    def get_accounts(self, access_token: str) -> List[Dict[str, Any]]:
        """
        Returns the user's accounts as dicts with id, description, type and created.

        Raises:
            ForbiddenError: the token has not been approved in the Monzo app yet
            ProviderError: any other failure
        """
        response = self._request("GET", "/accounts", access_token)
        return self._json(response, "fetch Monzo accounts").get("accounts", [])

    def get_balance(self, access_token: str, account_id: str) -> Dict[str, Any]:
        """
        Returns the balance payload for an account (balance, total_balance, currency, spend_today).
        """
        response = self._request(
            "GET", "/balance", access_token, params={"account_id": account_id}
        )
        return self._json(response, "fetch Monzo balance")

    def get_pots(self, access_token: str, account_id: str) -> List[Dict[str, Any]]:
        """
        Returns pots for a current account, including deleted ones.
        """
        response = self._request(
            "GET", "/pots", access_token, params={"current_account_id": account_id}
        )
        return self._json(response, "fetch Monzo pots").get("pots", [])

    def deposit_to_pot(
        self,
        access_token: str,
        pot_id: str,
        account_id: str,
        amount: int,
        dedupe_id: str,
    ) -> Dict[str, Any]:
        """
        Deposits money from an account into a pot.

        Monzo ignores repeated requests carrying the same dedupe_id, which
        makes a retried run safe.
        """
        response = self._request(
            "PUT",
            f"/pots/{pot_id}/deposit",
            access_token,
            data={
                "source_account_id": account_id,
                "amount": str(amount),
                "dedupe_id": dedupe_id,
            },
        )
        return self._json(response, "deposit into Monzo pot")
