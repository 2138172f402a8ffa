"""Async file helpers.

Blocking file I/O runs in the default executor so the event loop stays free
while a batch of documents is processed.
"""

import asyncio
import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SHORT_FINGERPRINT_LENGTH = 12


def fingerprint_bytes(data: bytes) -> str:
    """Full sha256 hex digest."""
    return hashlib.sha256(data).hexdigest()


def short_fingerprint(text: str) -> str:
    """Truncated sha256 of a text, used in content references."""
    return fingerprint_bytes(text.encode("utf-8"))[:SHORT_FINGERPRINT_LENGTH]


def sanitize_name(name: str, fallback: str = "node") -> str:
    """Reduce a display name to a safe file name component.

    Args:
        name: Node or document name.
        fallback: Used when nothing safe is left.

    Returns:
        Lower-case name with runs of unsafe characters collapsed to ``_``.
    """
    safe = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    return safe or fallback


def _read_bytes(path: Path) -> bytes:
    return path.read_bytes()


def _write_text_atomic(path: Path, text: str, mode: int | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


async def read_bytes(path: Path) -> bytes:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _read_bytes, Path(path))


async def read_text(path: Path) -> str:
    data = await read_bytes(path)
    return data.decode("utf-8")


async def write_text(path: Path, text: str, mode: int | None = None) -> None:
    """Write a text file atomically (temp file in the same directory + rename)."""
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _write_text_atomic, Path(path), text, mode)


def dump_json(data: Any) -> str:
    """Serialize the way stored documents are written: 2-space indent, trailing newline."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


async def write_json(path: Path, data: Any, mode: int | None = None) -> None:
    await write_text(path, dump_json(data), mode=mode)


async def unlink(path: Path) -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, lambda: Path(path).unlink(missing_ok=True))
