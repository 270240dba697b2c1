"""Connectors package — upstream data sources."""
from plaidsync.connectors.base import BaseConnector
from plaidsync.connectors.plaid_client import PlaidAPIError, PlaidClient

__all__ = [
    "BaseConnector",
    "PlaidAPIError",
    "PlaidClient",
]
