"""Metadata ledger for externalized content.

A single JSON file under the content root maps each document name to the
extraction records of its nodes. Concurrent externalizations of different
documents merge into the same file, so every update is a locked
read-modify-write.
"""

import asyncio
import json
import logging
from pathlib import Path

from flowsmith.models.content import ExtractionRecord
from flowsmith.storage.files import read_text, write_json

logger = logging.getLogger(__name__)


class MetadataStore:
    """Persists ExtractionRecords keyed by document name."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _load_raw(self) -> dict[str, list[dict]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(await read_text(self.path))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Metadata ledger {self.path} unreadable, starting fresh: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Metadata ledger {self.path} is not an object, starting fresh")
            return {}
        return data

    async def merge(self, document: str, records: list[ExtractionRecord]) -> None:
        """Add or replace the records of one document, matched by node name."""
        if not records:
            return
        async with self._lock:
            raw = await self._load_raw()
            existing = raw.get(document)
            entries = existing if isinstance(existing, list) else []
            replaced = {r.node for r in records}
            entries = [
                e for e in entries if not (isinstance(e, dict) and e.get("node") in replaced)
            ]
            entries.extend(r.model_dump(by_alias=True, mode="json") for r in records)
            raw[document] = entries
            await write_json(self.path, raw)
        logger.info(f"Recorded {len(records)} extraction(s) for '{document}'")
