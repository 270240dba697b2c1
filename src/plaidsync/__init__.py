"""
plaidsync — Plaid accounts, categories and transactions as SQL upserts.

Fetch. Normalize. Serialize.
"""

__version__ = "0.1.0"
__all__ = ["PlaidSync", "SyncConfig", "serialize"]

from plaidsync.config import SyncConfig  # noqa: E402
from plaidsync.exporters.sql import serialize  # noqa: E402
from plaidsync.sync import PlaidSync  # noqa: E402
