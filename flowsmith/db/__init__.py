"""Database module."""

from flowsmith.db.ledger_store import (
    JsonLedgerStore,
    LedgerStore,
    SqliteLedgerStore,
    create_ledger_store,
)

__all__ = ["LedgerStore", "JsonLedgerStore", "SqliteLedgerStore", "create_ledger_store"]
