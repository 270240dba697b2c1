"""Tests for the sync orchestrator with a fake upstream connector."""

from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path

import pytest

from plaidsync.config import SyncConfig
from plaidsync.connectors.base import BaseConnector
from plaidsync.exporters.writer import BaseTableWriter, FileTableWriter
from plaidsync.models.plaid import (
    AccountsResponse,
    PlaidCategory,
    TransactionsResponse,
)
from plaidsync.sync import PlaidSync, history_window, subtract_months

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


ACCOUNTS = {
    "tok-chase": {
        "accounts": [
            {
                "account_id": "chk-1",
                "balances": {"current": 1200.0},
                "mask": "1111",
                "name": "Checking",
                "type": "depository",
                "subtype": "checking",
            },
            {
                "account_id": "cc-1",
                "balances": {"current": 300.0},
                "mask": "2222",
                "name": "Freedom",
                "official_name": "Chase Freedom Unlimited",
                "type": "credit",
                "subtype": "credit card",
            },
        ],
        "item": {"institution_id": "ins_3"},
    },
    "tok-amex": {
        "accounts": [
            {
                "account_id": "amex-1",
                "balances": {"current": 80.0},
                "mask": "3333",
                "name": "Gold",
                "type": "credit",
                "subtype": "credit card",
            },
        ],
        "item": {"institution_id": "ins_10"},
    },
}

TRANSACTIONS = {
    "tok-chase": [
        {
            "transaction_id": "t-1",
            "account_id": "chk-1",
            "name": "Ext Credit Card Debit STARBUCKS",
            "amount": 5.25,
            "date": "2020-02-01",
            "iso_currency_code": "USD",
            "location": {"city": "Seattle", "region": "WA", "country": None},
            "payment_channel": "in store",
            "pending": False,
        },
        {
            "transaction_id": "t-2",
            "account_id": "chk-1",
            "name": "Pending Thing",
            "amount": 1.0,
            "date": "2020-02-02",
            "pending": True,
        },
    ],
    "tok-amex": [
        {
            "transaction_id": "t-3",
            "account_id": "amex-1",
            "name": "Payroll",
            "amount": -2000.0,
            "date": "2020-02-03",
            "iso_currency_code": "USD",
            "pending": False,
        },
    ],
}


class FakeConnector(BaseConnector):
    name = "fake"

    def __init__(
        self,
        fail_on: str | None = None,
        fail_categories: bool = False,
        cancel_categories: bool = False,
    ) -> None:
        self.fail_on = fail_on
        self.fail_categories = fail_categories
        self.cancel_categories = cancel_categories
        self.calls: list[tuple] = []
        self.closed = False

    async def get_categories(self) -> list[PlaidCategory]:
        self.calls.append(("categories",))
        if self.fail_categories:
            raise ConnectionError("categories down")
        if self.cancel_categories:
            raise asyncio.CancelledError()
        return [
            PlaidCategory(category_id="1", group="special", hierarchy=["Bank Fees"]),
            PlaidCategory(category_id="2", group="place", hierarchy=["Food and Drink", "Restaurants"]),
        ]

    async def get_accounts(self, access_token: str) -> AccountsResponse:
        self.calls.append(("accounts", access_token))
        await asyncio.sleep(0)
        if access_token == self.fail_on:
            raise ConnectionError(f"boom for {access_token}")
        return AccountsResponse.model_validate(ACCOUNTS[access_token])

    async def get_all_transactions(self, access_token: str, start_date: str, end_date: str) -> TransactionsResponse:
        self.calls.append(("transactions", access_token, start_date, end_date))
        return TransactionsResponse.model_validate({"transactions": TRANSACTIONS[access_token]})

    async def close(self) -> None:
        self.closed = True


class MemoryWriter(BaseTableWriter):
    name = "memory"

    def __init__(self) -> None:
        self.tables: dict[str, str] = {}
        self.order: list[str] = []

    def write(self, table_name: str, sql_text: str) -> None:
        self.tables[table_name] = sql_text
        self.order.append(table_name)


TOKENS = {"Chase": "tok-chase", "Amex": "tok-amex"}


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestHistoryWindow:
    def test_simple(self) -> None:
        assert history_window(1, today=date(2020, 3, 15)) == ("2020-02-15", "2020-03-15")

    def test_clamps_month_end(self) -> None:
        assert subtract_months(date(2020, 3, 31), 1) == date(2020, 2, 29)
        assert subtract_months(date(2021, 3, 31), 1) == date(2021, 2, 28)

    def test_crosses_years(self) -> None:
        assert history_window(60, today=date(2020, 3, 15)) == ("2015-03-15", "2020-03-15")
        assert subtract_months(date(2020, 1, 10), 13) == date(2018, 12, 10)


class TestSyncCategories:
    @pytest.mark.asyncio
    async def test_writes_categories_table(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(), writer=writer)

        tables = await sync.sync_categories()

        assert tables == ["categories"]
        sql = writer.tables["categories"]
        assert sql.startswith("INSERT INTO `categories` (`id`, `group`, `category`, `category1`, `category2`) VALUES")
        assert '("1", "special", "Bank Fees", NULL, NULL),' in sql
        assert '("2", "place", "Food and Drink", "Restaurants", NULL)' in sql


class TestSyncAccounts:
    @pytest.mark.asyncio
    async def test_writes_three_tables_after_loop(self) -> None:
        writer = MemoryWriter()
        client = FakeConnector()
        sync = PlaidSync(client=client, writer=writer)

        tables = await sync.sync_accounts(TOKENS, history_months=2)

        assert tables == ["accounts", "institutions", "transactions"]
        assert writer.order == ["accounts", "institutions", "transactions"]

        institutions = writer.tables["institutions"]
        assert '("ins_3", "Chase"),' in institutions
        assert '("ins_10", "Amex")' in institutions

        accounts = writer.tables["accounts"]
        assert '("chk-1", "ins_3", 1200.0, "1111", "Checking", "depository", "checking")' in accounts
        assert '("cc-1", "ins_3", -300.0, "2222", "Chase Freedom Unlimited", "credit", "credit card")' in accounts
        assert '("amex-1", "ins_10", -80.0,' in accounts

        transactions = writer.tables["transactions"]
        assert '"t-2"' not in transactions
        assert '("t-1", "chk-1", "STARBUCKS", -5.25, "2020-02-01", NULL, "USD", "Seattle", "WA", "US", "in store")' in transactions
        assert '("t-3", "amex-1", "Payroll", 2000.0,' in transactions

    @pytest.mark.asyncio
    async def test_institutions_processed_sequentially(self) -> None:
        client = FakeConnector()
        sync = PlaidSync(client=client, writer=MemoryWriter())

        await sync.sync_accounts(TOKENS, history_months=1)

        kinds = [(c[0], c[1]) for c in client.calls]
        assert kinds == [
            ("accounts", "tok-chase"),
            ("transactions", "tok-chase"),
            ("accounts", "tok-amex"),
            ("transactions", "tok-amex"),
        ]

    @pytest.mark.asyncio
    async def test_history_window_passed(self) -> None:
        client = FakeConnector()
        sync = PlaidSync(client=client, writer=MemoryWriter())

        await sync.sync_accounts({"Chase": "tok-chase"}, history_months=3)

        start, end = history_window(3)
        assert client.calls[1] == ("transactions", "tok-chase", start, end)

    @pytest.mark.asyncio
    async def test_failure_writes_nothing(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(fail_on="tok-amex"), writer=writer)

        with pytest.raises(ConnectionError, match="tok-amex"):
            await sync.sync_accounts(TOKENS, history_months=1)

        assert writer.tables == {}

    @pytest.mark.asyncio
    async def test_no_institutions_writes_empty_tables(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(), writer=writer)

        await sync.sync_accounts({}, history_months=1)

        assert writer.tables == {"accounts": "", "institutions": "", "transactions": ""}


class TestRun:
    @pytest.mark.asyncio
    async def test_both_syncs(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(), writer=writer)

        result = await sync.run(TOKENS, history_months=1)

        assert result.ok
        assert sorted(result.tables) == ["accounts", "categories", "institutions", "transactions"]

    @pytest.mark.asyncio
    async def test_account_failure_does_not_abort_categories(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(fail_on="tok-chase"), writer=writer)

        result = await sync.run(TOKENS, history_months=1)

        assert not result.ok
        assert set(result.errors) == {"accounts"}
        assert result.tables == ["categories"]
        assert set(writer.tables) == {"categories"}

    @pytest.mark.asyncio
    async def test_category_failure_does_not_abort_accounts(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(fail_categories=True), writer=writer)

        result = await sync.run(TOKENS, history_months=1)

        assert set(result.errors) == {"categories"}
        assert set(writer.tables) == {"accounts", "institutions", "transactions"}

    @pytest.mark.asyncio
    async def test_cancelled_sync_recorded_as_error(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(cancel_categories=True), writer=writer)

        result = await sync.run(TOKENS, history_months=1)

        assert isinstance(result.errors["categories"], asyncio.CancelledError)
        assert sorted(result.tables) == ["accounts", "institutions", "transactions"]
        assert "categories" not in writer.tables

    @pytest.mark.asyncio
    async def test_select_single_sync(self) -> None:
        writer = MemoryWriter()
        sync = PlaidSync(client=FakeConnector(), writer=writer)

        result = await sync.run(TOKENS, categories=False)

        assert "categories" not in result.tables
        assert "categories" not in writer.tables

    @pytest.mark.asyncio
    async def test_run_configured_closes_client(self, tmp_path: Path) -> None:
        client = FakeConnector()
        config = SyncConfig.model_validate(
            {"plaid": {"institution_tokens": TOKENS}, "output_dir": str(tmp_path), "history_months": 1}
        )
        sync = PlaidSync(client=client, writer=FileTableWriter(tmp_path), config=config)

        result = await sync.run_configured()

        assert result.ok
        assert client.closed
        assert (tmp_path / "transactions.sql").read_text().startswith("INSERT INTO `transactions`")
        assert (tmp_path / "categories.sql").exists()


class TestFromConfig:
    def test_builds_plaid_client_and_file_writer(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(
            '{"plaid": {"clientId": "cid", "secret": "s", "env": "development",'
            ' "institutionTokens": {"Chase": "tok"}}}'
        )

        sync = PlaidSync.from_config(str(config_file), output_dir=str(tmp_path / "out"))

        assert sync.client.name == "plaid"
        assert sync.client.client_id == "cid"
        assert "development.plaid.com" in sync.client._base_url
        assert isinstance(sync.writer, FileTableWriter)
        assert sync.writer.output_dir == tmp_path / "out"
        assert sync.config.plaid.institution_tokens == {"Chase": "tok"}
