"""Change ledger.

Tracks a sha256 fingerprint per flow file and decides which flows are stale
relative to what was last pushed successfully. Every read-modify-write of the
ledger state runs under one lock, so concurrent push tasks recording their
results cannot lose each other's updates.
"""

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from flowsmith.config import ProjectLayout
from flowsmith.db.ledger_store import JsonLedgerStore, LedgerStore
from flowsmith.errors import LedgerCorruption
from flowsmith.models.ledger import (
    ChangeRecord,
    DeploymentStatus,
    FlowStatus,
    LedgerState,
    LedgerSummary,
)
from flowsmith.storage.files import fingerprint_bytes, read_bytes

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _mtime(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, UTC).isoformat()


class ChangeLedger:
    """Deployment state of the flows of one project."""

    def __init__(self, layout: ProjectLayout, store: LedgerStore | None = None):
        self.layout = layout
        self.store = store or JsonLedgerStore(layout.ledger_file)
        self._lock = asyncio.Lock()

    def key(self, path: Path | str) -> str:
        """Ledger key of a flow file: its POSIX path relative to the project root."""
        path = Path(path)
        if path.is_absolute():
            return self.layout.relative(path)
        return path.as_posix()

    def path_for(self, key: str) -> Path:
        return self.layout.root / key

    async def _load(self) -> LedgerState:
        try:
            return await self.store.load()
        except LedgerCorruption as e:
            logger.error(f"{e}; treating ledger as empty")
            return LedgerState()

    async def _scan_into(self, state: LedgerState) -> None:
        seen: set[str] = set()
        for path in self.layout.flow_files():
            key = self.key(path)
            fingerprint = fingerprint_bytes(await read_bytes(path))
            seen.add(key)
            record = state.workflows.get(key)
            if record is None:
                state.workflows[key] = ChangeRecord(
                    path=key,
                    fingerprint=fingerprint,
                    last_modified=_mtime(path),
                )
                logger.debug(f"New flow tracked: {key}")
                continue
            if record.fingerprint != fingerprint:
                record.fingerprint = fingerprint
                record.last_modified = _mtime(path)
            if record.fingerprint != record.deployed_fingerprint:
                record.deployed = False

        for key in list(state.workflows):
            if key not in seen:
                logger.info(f"Flow {key} no longer exists, dropping from ledger")
                del state.workflows[key]
        state.last_check = _now()

    async def scan(self) -> LedgerState:
        """Refresh fingerprints of every flow file and persist the result."""
        async with self._lock:
            state = await self._load()
            await self._scan_into(state)
            await self.store.save(state)
            return state.model_copy(deep=True)

    async def dirty_paths(self) -> list[Path]:
        """Flow files that are new or changed since their last successful push."""
        state = await self.scan()
        dirty = [
            self.path_for(key)
            for key, record in sorted(state.workflows.items())
            if record.is_dirty
        ]
        logger.info(f"{len(dirty)} of {len(state.workflows)} flow(s) need deployment")
        return dirty

    async def mark_deployed(self, path: Path | str, pushed_fingerprint: str) -> bool:
        """Record a successful push.

        The file is re-hashed now. The entry only becomes deployed when the
        current bytes are the bytes that were pushed; an edit made while the
        push was in flight keeps the flow dirty.

        Args:
            path: Flow file that was pushed.
            pushed_fingerprint: Fingerprint of the bytes the pushed copy was compiled from.

        Returns:
            True if the flow is now recorded as deployed and clean.
        """
        key = self.key(path)
        file_path = self.path_for(key)
        async with self._lock:
            state = await self._load()
            try:
                current = fingerprint_bytes(await read_bytes(file_path))
            except FileNotFoundError:
                logger.warning(f"{key} was removed after it was pushed, not recording")
                return False

            record = state.workflows.get(key)
            if record is None:
                record = ChangeRecord(
                    path=key, fingerprint=current, last_modified=_mtime(file_path)
                )
                state.workflows[key] = record
            record.fingerprint = current
            record.deployed = True
            record.deployed_at = _now()
            record.deployed_fingerprint = pushed_fingerprint
            if current != pushed_fingerprint:
                record.last_modified = _mtime(file_path)
                logger.warning(f"{key} changed while it was being pushed, it stays pending")
            await self.store.save(state)
            return current == pushed_fingerprint

    async def mark_edited(self, path: Path | str) -> None:
        """Force a flow back to pending, e.g. after editing one of its content files."""
        key = self.key(path)
        file_path = self.path_for(key)
        async with self._lock:
            state = await self._load()
            record = state.workflows.get(key)
            if record is None:
                record = ChangeRecord(
                    path=key,
                    fingerprint=fingerprint_bytes(await read_bytes(file_path)),
                    last_modified=_mtime(file_path),
                )
                state.workflows[key] = record
            record.deployed = False
            await self.store.save(state)
        logger.info(f"Marked {key} as edited")

    async def reset(self) -> None:
        """Mark every tracked flow as pending."""
        async with self._lock:
            state = await self._load()
            for record in state.workflows.values():
                record.deployed = False
            await self.store.save(state)
        logger.info("Reset deployment state of all flows")

    async def clear(self) -> None:
        """Forget all ledger state."""
        async with self._lock:
            await self.store.save(LedgerState())
        logger.info("Cleared change ledger")

    async def status(self) -> LedgerSummary:
        """Per-flow deployment status with totals."""
        state = await self.scan()
        flows = [
            FlowStatus(
                name=Path(key).stem,
                path=key,
                status=record.status,
                last_modified=record.last_modified,
                deployed_at=record.deployed_at,
            )
            for key, record in sorted(state.workflows.items())
        ]
        deployed = sum(1 for f in flows if f.status == DeploymentStatus.DEPLOYED)
        return LedgerSummary(
            total=len(flows),
            deployed=deployed,
            pending=len(flows) - deployed,
            workflows=flows,
        )
