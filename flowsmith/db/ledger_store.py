"""Persistence backends for the change ledger.

Both backends implement the same explicit load/save interface so the ledger
service can be pointed at either one.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from flowsmith.errors import LedgerCorruption
from flowsmith.models.ledger import ChangeRecord, LedgerState
from flowsmith.storage.files import read_text, write_json

logger = logging.getLogger(__name__)


class LedgerStore(ABC):
    """Where ledger state is kept."""

    @abstractmethod
    async def load(self) -> LedgerState:
        """Load the full ledger state.

        Raises:
            LedgerCorruption: If persisted state exists but cannot be read.
        """
        ...

    @abstractmethod
    async def save(self, state: LedgerState) -> None:
        """Replace the persisted state."""
        ...


class JsonLedgerStore(LedgerStore):
    """Ledger kept in a single JSON file, rewritten atomically."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> LedgerState:
        if not self.path.exists():
            return LedgerState()
        try:
            raw = await read_text(self.path)
            return LedgerState.model_validate_json(raw)
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            raise LedgerCorruption(f"Cannot read ledger {self.path}: {e}") from e

    async def save(self, state: LedgerState) -> None:
        await write_json(self.path, state.model_dump(by_alias=True, mode="json"))


class SqliteLedgerStore(LedgerStore):
    """Ledger kept in a SQLite database. The schema is created on first use."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    async def _connect(self) -> aiosqlite.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.db_path)
        db.row_factory = aiosqlite.Row
        try:
            await self._create_schema(db)
        except aiosqlite.Error:
            await db.close()
            raise
        return db

    async def _create_schema(self, db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS change_records (
                path TEXT PRIMARY KEY,
                fingerprint TEXT NOT NULL,
                last_modified TEXT NOT NULL,
                deployed INTEGER NOT NULL DEFAULT 0,
                deployed_at TEXT,
                deployed_fingerprint TEXT
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS ledger_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        await db.commit()

    async def load(self) -> LedgerState:
        try:
            db = await self._connect()
        except aiosqlite.Error as e:
            raise LedgerCorruption(f"Cannot open ledger database {self.db_path}: {e}") from e
        try:
            state = LedgerState()
            async with db.execute("SELECT * FROM change_records") as cursor:
                async for row in cursor:
                    state.workflows[row["path"]] = ChangeRecord(
                        path=row["path"],
                        fingerprint=row["fingerprint"],
                        last_modified=row["last_modified"],
                        deployed=bool(row["deployed"]),
                        deployed_at=row["deployed_at"],
                        deployed_fingerprint=row["deployed_fingerprint"],
                    )
            async with db.execute(
                "SELECT value FROM ledger_meta WHERE key = 'last_check'"
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    state.last_check = row["value"]
            return state
        except aiosqlite.Error as e:
            raise LedgerCorruption(f"Cannot read ledger database {self.db_path}: {e}") from e
        finally:
            await db.close()

    async def save(self, state: LedgerState) -> None:
        db = await self._connect()
        try:
            await db.execute("DELETE FROM change_records")
            await db.executemany(
                """
                INSERT INTO change_records
                    (path, fingerprint, last_modified, deployed, deployed_at, deployed_fingerprint)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        record.path,
                        record.fingerprint,
                        record.last_modified,
                        int(record.deployed),
                        record.deployed_at,
                        record.deployed_fingerprint,
                    )
                    for record in state.workflows.values()
                ],
            )
            await db.execute(
                "INSERT OR REPLACE INTO ledger_meta (key, value) VALUES ('last_check', ?)",
                (state.last_check,),
            )
            await db.commit()
        finally:
            await db.close()
        logger.debug(f"Saved {len(state.workflows)} ledger record(s) to {self.db_path}")


def create_ledger_store(backend: str, json_path: Path, db_path: Path) -> LedgerStore:
    """Build the ledger store named by the ``ledger_backend`` setting."""
    if backend == "json":
        return JsonLedgerStore(json_path)
    if backend == "sqlite":
        return SqliteLedgerStore(db_path)
    raise ValueError(f"Unknown ledger backend '{backend}' (expected 'json' or 'sqlite')")
