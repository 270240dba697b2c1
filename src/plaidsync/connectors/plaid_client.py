"""
Plaid client — async access to the Plaid endpoints plaidsync needs.

Covers the category taxonomy, account listings, and the full transaction
history over a date window. Link/token management is out of scope: the
client expects access tokens that were issued elsewhere.

Plaid API docs:
  https://plaid.com/docs/api/
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from plaidsync.connectors.base import BaseConnector
from plaidsync.models.plaid import (
    AccountsResponse,
    CategoriesResponse,
    PlaidCategory,
    TransactionsResponse,
)

logger = logging.getLogger("plaidsync.connectors.plaid")

# Plaid environments
PLAID_ENVS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}

# Response schema the row builders are written against
PLAID_API_VERSION = "2019-05-29"

# transactions/get caps count at 500
TRANSACTIONS_PAGE_SIZE = 500


class PlaidAPIError(httpx.HTTPStatusError):
    """Plaid returned an error response."""

    def __init__(
        self,
        message: str,
        *,
        request: httpx.Request,
        response: httpx.Response,
        error_type: str = "UNKNOWN",
        error_code: str = "UNKNOWN",
    ) -> None:
        super().__init__(message, request=request, response=response)
        self.error_type = error_type
        self.error_code = error_code

    @property
    def status_code(self) -> int:
        return self.response.status_code


def mask_token(access_token: str) -> str:
    """Shorten an access token for log output."""
    if len(access_token) <= 8:
        return "****"
    return f"{access_token[:4]}…{access_token[-4:]}"


class PlaidClient(BaseConnector):
    """Fetch categories, accounts, and transactions from Plaid.

    Usage::

        async with PlaidClient(client_id="...", secret="...", environment="development") as plaid:
            categories = await plaid.get_categories()
            accounts = await plaid.get_accounts("access-development-...")

    Environments: "sandbox" (default), "development", "production"
    """

    name = "plaid"

    def __init__(
        self,
        client_id: str = "",
        secret: str = "",
        *,
        environment: str = "sandbox",
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if environment not in PLAID_ENVS:
            raise ValueError(f"Unknown Plaid environment '{environment}' (expected one of {sorted(PLAID_ENVS)})")

        self.client_id = client_id
        self.secret = secret
        self.environment = environment
        self.timeout = timeout

        self._base_url = PLAID_ENVS[environment]
        self._http = http_client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._http

    async def close(self) -> None:
        """Clean up HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    async def __aenter__(self) -> PlaidClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # API helpers
    # ------------------------------------------------------------------

    async def _api_post(
        self,
        endpoint: str,
        payload: dict[str, Any],
        *,
        authenticated: bool = True,
    ) -> dict[str, Any]:
        """POST to a Plaid endpoint and return the decoded JSON body."""
        client = await self._get_client()

        url = f"{self._base_url}/{endpoint}"

        # Plaid uses client_id + secret in the body, not headers
        if authenticated:
            payload = {
                "client_id": self.client_id,
                "secret": self.secret,
                **payload,
            }

        resp = await client.post(url, json=payload, headers={"Plaid-Version": PLAID_API_VERSION})

        # Plaid returns errors as 4xx/5xx with a JSON body
        if resp.status_code >= 400:
            try:
                error_data = resp.json()
            except ValueError:
                error_data = {}
            error_type = error_data.get("error_type", "UNKNOWN")
            error_code = error_data.get("error_code", "UNKNOWN")
            error_msg = error_data.get("error_message") or resp.text

            raise PlaidAPIError(
                f"Plaid API error [{error_code}] on {endpoint}: {error_msg}",
                request=resp.request,
                response=resp,
                error_type=error_type,
                error_code=error_code,
            )

        return resp.json()

    # ------------------------------------------------------------------
    # Data fetchers
    # ------------------------------------------------------------------

    async def get_categories(self) -> list[PlaidCategory]:
        """Fetch the category taxonomy (no access token needed)."""
        data = await self._api_post("categories/get", {}, authenticated=False)
        response = CategoriesResponse.model_validate(data)
        logger.debug("Fetched %d Plaid categories", len(response.categories))
        return response.categories

    async def get_accounts(self, access_token: str) -> AccountsResponse:
        """Fetch the accounts and item metadata for one linked institution."""
        data = await self._api_post("accounts/get", {"access_token": access_token})
        response = AccountsResponse.model_validate(data)
        logger.debug(
            "Fetched %d accounts for %s (institution %s)",
            len(response.accounts),
            mask_token(access_token),
            response.item.institution_id,
        )
        return response

    async def get_all_transactions(
        self,
        access_token: str,
        start_date: str,
        end_date: str,
    ) -> TransactionsResponse:
        """Fetch every transaction in the window, following offset pagination."""
        merged: TransactionsResponse | None = None
        offset = 0

        while True:
            data = await self._api_post(
                "transactions/get",
                {
                    "access_token": access_token,
                    "start_date": start_date,
                    "end_date": end_date,
                    "options": {
                        "count": TRANSACTIONS_PAGE_SIZE,
                        "offset": offset,
                    },
                },
            )
            page = TransactionsResponse.model_validate(data)

            if merged is None:
                merged = page
            else:
                merged.transactions.extend(page.transactions)

            offset += len(page.transactions)
            if not page.transactions or offset >= page.total_transactions:
                break

        logger.debug(
            "Fetched %d transactions for %s between %s and %s",
            len(merged.transactions),
            mask_token(access_token),
            start_date,
            end_date,
        )
        return merged
