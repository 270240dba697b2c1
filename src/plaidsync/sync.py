"""
plaidsync — sync orchestrator.

Runs the fetch -> rows -> SQL -> writer pipeline once per logical table:

- ``categories``   from the Plaid category taxonomy,
- ``institutions``, ``accounts`` and ``transactions`` from every linked
  institution in the configuration.

Institutions are fetched one after another and all rows are held in memory
until the loop finishes, so either every account table of a run is
written or none is.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from plaidsync.config import SyncConfig
from plaidsync.connectors.base import BaseConnector
from plaidsync.connectors.plaid_client import PlaidClient, mask_token
from plaidsync.exporters.writer import BaseTableWriter, FileTableWriter, write_table
from plaidsync.rows import Row, account_row, category_row, institution_row, transaction_row

logger = logging.getLogger("plaidsync.sync")

DATE_FORMAT = "%Y-%m-%d"


def subtract_months(day: date, months: int) -> date:
    """Step back ``months`` calendar months, clamping to the month's last day."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def history_window(months: int, today: date | None = None) -> tuple[str, str]:
    """Inclusive ``(start, end)`` dates covering the last ``months`` months."""
    end = today or date.today()
    start = subtract_months(end, months)
    return start.strftime(DATE_FORMAT), end.strftime(DATE_FORMAT)


@dataclass
class SyncResult:
    """Outcome of :meth:`PlaidSync.run`."""

    tables: list[str] = field(default_factory=list)
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class PlaidSync:
    """Top-level orchestrator for a sync run.

    Usage::

        from plaidsync import PlaidSync

        sync = PlaidSync.from_config("config.yaml")
        result = await sync.run_configured()

    Each top-level sync (categories, accounts) is an independent unit of
    work: :meth:`run` launches both and a failure in one never cancels the
    other.
    """

    client: BaseConnector
    writer: BaseTableWriter
    config: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def from_config(cls, config_path: str | None = None, **overrides: Any) -> PlaidSync:
        """Build a Plaid-backed, file-writing sync from a config file or keyword arguments."""
        config = SyncConfig.load(config_path, **overrides)
        client = PlaidClient(
            config.plaid.client_id,
            config.plaid.secret,
            environment=config.plaid.env,
            timeout=config.timeout,
        )
        return cls(client=client, writer=FileTableWriter(config.output_dir), config=config)

    async def sync_categories(self) -> list[str]:
        """Fetch the category taxonomy and write the ``categories`` table."""
        categories = await self.client.get_categories()
        rows = [category_row(category) for category in categories]
        write_table(self.writer, "categories", rows)
        return ["categories"]

    async def sync_accounts(
        self,
        institution_tokens: Mapping[str, str],
        history_months: int = 1,
    ) -> list[str]:
        """Fetch accounts and transactions for every institution, then write them.

        Institutions are processed sequentially. Tables are only written
        once every institution has been fetched; an error for any
        institution aborts the run with nothing written.
        """
        start_date, end_date = history_window(history_months)

        account_rows: list[Row] = []
        institution_rows: list[Row] = []
        transaction_rows: list[Row] = []

        for label, access_token in institution_tokens.items():
            logger.info("Downloading data for %s (%s)", label, mask_token(access_token))

            accounts = await self.client.get_accounts(access_token)
            institution_id = accounts.item.institution_id
            institution_rows.append(institution_row(accounts.item, label))
            account_rows.extend(account_row(account, institution_id) for account in accounts.accounts)

            transactions = await self.client.get_all_transactions(access_token, start_date, end_date)
            skipped = 0
            for transaction in transactions.transactions:
                row = transaction_row(transaction)
                if row is None:
                    skipped += 1
                    continue
                transaction_rows.append(row)

            logger.info(
                "%s: %d accounts, %d transactions (%d pending skipped)",
                label,
                len(accounts.accounts),
                len(transactions.transactions) - skipped,
                skipped,
            )

        write_table(self.writer, "accounts", account_rows)
        write_table(self.writer, "institutions", institution_rows)
        write_table(self.writer, "transactions", transaction_rows)
        return ["accounts", "institutions", "transactions"]

    async def run(
        self,
        institution_tokens: Mapping[str, str],
        history_months: int = 1,
        *,
        categories: bool = True,
        accounts: bool = True,
    ) -> SyncResult:
        """Run the selected syncs concurrently and collect their outcomes."""
        jobs: dict[str, Any] = {}
        if categories:
            jobs["categories"] = self.sync_categories()
        if accounts:
            jobs["accounts"] = self.sync_accounts(institution_tokens, history_months)

        outcomes = await asyncio.gather(*jobs.values(), return_exceptions=True)

        result = SyncResult()
        for name, outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Sync '%s' failed: %s", name, outcome, exc_info=outcome)
                result.errors[name] = outcome
            else:
                result.tables.extend(outcome)

        logger.info(
            "Sync finished: %d tables written, %d failed syncs",
            len(result.tables),
            len(result.errors),
        )
        return result

    async def run_configured(self, *, categories: bool = True, accounts: bool = True) -> SyncResult:
        """Run using the institutions and history window from :attr:`config`, then close the client."""
        try:
            return await self.run(
                self.config.plaid.institution_tokens,
                self.config.history_months,
                categories=categories,
                accounts=accounts,
            )
        finally:
            await self.client.close()

    def run_sync(self, **kwargs: Any) -> SyncResult:
        """Synchronous wrapper around :meth:`run_configured`."""
        return asyncio.run(self.run_configured(**kwargs))
