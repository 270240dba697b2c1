"""
Row builders — flatten Plaid records into table rows.

Each builder maps one upstream record to one ``Row`` (an ordered dict of
column name to scalar). Builders are pure: they never mutate their input
and never raise on missing upstream fields, which simply become ``None``.

Column order matters: the SQL exporter takes the column list from the
first row of a batch, so every builder always emits the same keys in the
same order.
"""

from __future__ import annotations

import re
from typing import Any

from plaidsync.models.plaid import (
    PlaidAccount,
    PlaidCategory,
    PlaidItem,
    PlaidLocation,
    PlaidTransaction,
)

Row = dict[str, Any]

# Account types whose balance Plaid reports as an amount owed
LIABILITY_ACCOUNT_TYPES = frozenset({"credit", "loan"})

_VENDOR_PREFIX = re.compile(r"^Ext Credit Card (?:Debit|Credit) ")


def category_row(category: PlaidCategory) -> Row:
    """Unpack the first three hierarchy levels into separate columns."""
    levels = list(category.hierarchy[:3])
    levels += [None] * (3 - len(levels))
    return {
        "id": category.category_id,
        "group": category.group,
        "category": levels[0],
        "category1": levels[1],
        "category2": levels[2],
    }


def institution_row(item: PlaidItem, label: str) -> Row:
    """Institution row keyed by Plaid's id, named by the configured label."""
    return {
        "id": item.institution_id,
        "name": label,
    }


def account_row(account: PlaidAccount, institution_id: str | None) -> Row:
    """Build an account row.

    Liability balances (credit cards, loans) are sign-flipped so that a
    positive ``balance_current`` always means money owed to the holder.
    """
    balance = account.balances.current
    if balance is not None and account.type in LIABILITY_ACCOUNT_TYPES:
        balance = -balance or 0.0

    return {
        "id": account.account_id,
        "institution_id": institution_id,
        "balance_current": balance,
        "mask": account.mask,
        "name": account.official_name or account.name,
        "type": account.type,
        "subtype": account.subtype,
    }


def strip_vendor_prefix(name: str | None) -> str | None:
    """Drop the ``Ext Credit Card Debit/Credit`` prefix some banks add."""
    if not name:
        return name
    return _VENDOR_PREFIX.sub("", name, count=1)


def infer_country(location: PlaidLocation, currency_code: str | None) -> str | None:
    """Return the location country, assuming ``US`` for USD with a region."""
    if not location.country and currency_code == "USD" and location.region:
        return "US"
    return location.country


def transaction_row(transaction: PlaidTransaction) -> Row | None:
    """Build a transaction row, or ``None`` for a pending transaction.

    Amounts are negated so outflows come out negative.
    """
    if transaction.pending:
        return None

    amount = transaction.amount
    if amount is not None:
        amount = -amount or 0.0

    location = transaction.location
    return {
        "id": transaction.transaction_id,
        "account_id": transaction.account_id,
        "name": strip_vendor_prefix(transaction.name),
        "amount": amount,
        "date": transaction.date,
        "category_id": transaction.category_id,
        "currency_code": transaction.iso_currency_code,
        "location_city": location.city,
        "location_state": location.region,
        "location_country": infer_country(location, transaction.iso_currency_code),
        "payment_channel": transaction.payment_channel,
    }
