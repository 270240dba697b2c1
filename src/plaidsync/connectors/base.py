"""
Base connector — the upstream capabilities the sync pipeline consumes.

The orchestrator only ever talks to this interface, so tests and
alternative sources (recorded fixtures, other aggregators) can stand in
for the live Plaid client.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from plaidsync.models.plaid import (
        AccountsResponse,
        PlaidCategory,
        TransactionsResponse,
    )


class BaseConnector(ABC):
    """Abstract upstream data source.

    To plug in a new source, subclass this and implement the three fetch
    methods. Failures (transport, auth, rate limits) are raised as-is; the
    pipeline does not retry.

    Example::

        class FixtureConnector(BaseConnector):
            name = "fixture"

            async def get_categories(self) -> list[PlaidCategory]:
                return [PlaidCategory(category_id="1", hierarchy=["Food"])]
            ...
    """

    name: str = "base"

    @abstractmethod
    async def get_categories(self) -> list[PlaidCategory]:
        """Return the full category taxonomy."""
        ...

    @abstractmethod
    async def get_accounts(self, access_token: str) -> AccountsResponse:
        """Return the accounts and item (institution) behind ``access_token``."""
        ...

    @abstractmethod
    async def get_all_transactions(
        self,
        access_token: str,
        start_date: str,
        end_date: str,
    ) -> TransactionsResponse:
        """Return every transaction in ``[start_date, end_date]`` (``YYYY-MM-DD``)."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
