"""Loading and saving stored workflow documents."""

import json
import logging
from pathlib import Path
from typing import Any

from flowsmith.errors import FlowsmithError
from flowsmith.storage.files import fingerprint_bytes, read_bytes, write_json

logger = logging.getLogger(__name__)


class LoadedDocument:
    """Raw document JSON together with the fingerprint of the bytes read."""

    def __init__(self, path: Path, data: dict[str, Any], fingerprint: str):
        self.path = path
        self.data = data
        self.fingerprint = fingerprint

    @property
    def stem(self) -> str:
        return self.path.stem


async def load_document(path: Path) -> LoadedDocument:
    """Read and parse a flow file.

    Raises:
        FlowsmithError: If the file is not a JSON object.
    """
    path = Path(path)
    raw = await read_bytes(path)
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FlowsmithError(f"Invalid JSON in {path.name}: {e}", document=path.name) from e
    if not isinstance(data, dict):
        raise FlowsmithError(
            f"{path.name} must contain a JSON object, got {type(data).__name__}",
            document=path.name,
        )
    return LoadedDocument(path, data, fingerprint_bytes(raw))


async def save_document(path: Path, data: dict[str, Any]) -> None:
    await write_json(Path(path), data)
    logger.debug(f"Saved {path}")
