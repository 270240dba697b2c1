"""
Plaid record models — typed views over the upstream API responses.

Only the fields plaidsync reads are declared; everything else Plaid
returns is ignored. Every non-identifier field is optional so a sparse
payload never fails validation.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlaidRecord(BaseModel):
    """Base for upstream records: unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


class PlaidCategory(PlaidRecord):
    """An entry of the Plaid category taxonomy."""

    category_id: str
    group: str | None = None
    hierarchy: list[str] = Field(default_factory=list)

    @field_validator("hierarchy", mode="before")
    @classmethod
    def _null_hierarchy(cls, value: Any) -> Any:
        return [] if value is None else value


class PlaidBalances(PlaidRecord):
    current: float | None = None
    available: float | None = None
    limit: float | None = None
    iso_currency_code: str | None = None


class PlaidAccount(PlaidRecord):
    """A single account under a linked item."""

    account_id: str
    balances: PlaidBalances = Field(default_factory=PlaidBalances)
    mask: str | None = None
    name: str | None = None
    official_name: str | None = None
    type: str | None = None  # depository, credit, loan, investment, other
    subtype: str | None = None

    @field_validator("balances", mode="before")
    @classmethod
    def _null_balances(cls, value: Any) -> Any:
        return {} if value is None else value


class PlaidItem(PlaidRecord):
    """The linked login (one per institution and access token)."""

    item_id: str | None = None
    institution_id: str | None = None


class PlaidLocation(PlaidRecord):
    address: str | None = None
    city: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country: str | None = None


class PlaidTransaction(PlaidRecord):
    """A posted or pending transaction.

    Plaid reports outflows as positive amounts.
    """

    transaction_id: str
    account_id: str | None = None
    name: str | None = None
    amount: float | None = None
    date: str | None = None
    category_id: str | None = None
    iso_currency_code: str | None = None
    location: PlaidLocation = Field(default_factory=PlaidLocation)
    payment_channel: str | None = None
    pending: bool = False

    @field_validator("location", mode="before")
    @classmethod
    def _null_location(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("pending", mode="before")
    @classmethod
    def _null_pending(cls, value: Any) -> Any:
        return False if value is None else value


class CategoriesResponse(PlaidRecord):
    categories: list[PlaidCategory] = Field(default_factory=list)


class AccountsResponse(PlaidRecord):
    accounts: list[PlaidAccount] = Field(default_factory=list)
    item: PlaidItem = Field(default_factory=PlaidItem)


class TransactionsResponse(PlaidRecord):
    accounts: list[PlaidAccount] = Field(default_factory=list)
    transactions: list[PlaidTransaction] = Field(default_factory=list)
    item: PlaidItem = Field(default_factory=PlaidItem)
    total_transactions: int = 0
