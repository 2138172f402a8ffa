"""Content compiler.

Builds a push-ready copy of a stored document: default top-level fields are
filled in and every content reference is replaced by the file content it
points at. The stored document is never modified.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from flowsmith.config import ProjectLayout
from flowsmith.errors import FlowsmithError, MissingExternalContent
from flowsmith.models.content import CONTENT_REF_KEY, ContentReference, ContentShape
from flowsmith.services import content_catalog, provenance
from flowsmith.storage.document_store import load_document
from flowsmith.storage.files import read_text, short_fingerprint, write_json

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {"executionOrder": "v1"}


@dataclass
class CompiledDocument:
    """An in-memory compiled copy of one flow file."""

    path: Path
    document: dict[str, Any]
    source_fingerprint: str
    injected: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        name = self.document.get("name")
        return name if isinstance(name, str) and name else self.path.stem


@dataclass
class CompileBatch:
    """Results of compiling every flow in a project."""

    compiled: list[CompiledDocument] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


def document_id_from_path(path: Path) -> str:
    """Stable document id derived from the file name."""
    return re.sub(r"[^a-z0-9-]", "-", Path(path).stem.lower())


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class ContentCompiler:
    """Compiles the flows of one project."""

    def __init__(self, layout: ProjectLayout):
        self.layout = layout

    def _apply_defaults(self, path: Path, data: dict[str, Any]) -> None:
        if not data.get("id"):
            data["id"] = document_id_from_path(path)
        if "active" not in data:
            data["active"] = False
        if not isinstance(data.get("settings"), dict):
            data["settings"] = dict(DEFAULT_SETTINGS)
        if data.get("connections") is None:
            data["connections"] = {}
        previous = data.get("updatedAt")
        if not data.get("createdAt"):
            data["createdAt"] = previous or _now()
        data["updatedAt"] = _now()

    def _resolve(self, reference: ContentReference, node_name: str) -> Path:
        root = self.layout.content_root.resolve()
        target = (root / reference.path).resolve()
        if not target.is_relative_to(root):
            raise MissingExternalContent(
                f"Content reference of '{node_name}' points outside the content root: "
                f"{reference.path}",
                node=node_name,
                path=reference.path,
            )
        return target

    async def _load_content(self, reference: ContentReference, node_name: str) -> str:
        target = self._resolve(reference, node_name)
        try:
            text = await read_text(target)
        except (OSError, UnicodeDecodeError) as e:
            raise MissingExternalContent(
                f"Content file for '{node_name}' cannot be read: {reference.path} ({e})",
                node=node_name,
                path=reference.path,
            ) from e
        extension = target.suffix.lstrip(".").lower()
        if extension in provenance.STYLES:
            text = provenance.strip_header(extension, text)
        if short_fingerprint(text) != reference.fingerprint:
            logger.debug(f"Content of '{node_name}' changed since extraction")
        return text

    def _content_field(
        self, node_type: str, reference: ContentReference
    ) -> content_catalog.ContentField:
        rule = content_catalog.rule_for(node_type)
        if rule is not None:
            known = content_catalog.field_for(rule, reference.field)
            if known is not None:
                return known
        shape = ContentShape.TEMPLATED_TEXT if reference.expression else ContentShape.SCALAR
        return content_catalog.ContentField(
            reference.field, shape, Path(reference.path).suffix.lstrip("."), reference.subtype
        )

    async def _inject(self, node: dict[str, Any], compiled: CompiledDocument) -> None:
        parameters = node["parameters"]
        raw_ref = parameters.pop(CONTENT_REF_KEY)
        node_name = node.get("name", "")
        try:
            reference = ContentReference.model_validate(raw_ref)
        except ValidationError:
            message = f"Node '{node_name}' has a malformed content reference, left empty"
            compiled.warnings.append(message)
            logger.warning(message)
            return

        try:
            text = await self._load_content(reference, node_name)
        except MissingExternalContent as e:
            e.document = compiled.name
            compiled.warnings.append(str(e))
            logger.warning(f"{compiled.name}: {e}")
            return

        content_field = self._content_field(node.get("type", ""), reference)
        value = content_catalog.from_file_text(content_field, text, reference.expression)
        content_catalog.set_path(parameters, reference.field, value)
        compiled.injected.append(node_name)

    async def compile_file(self, path: Path) -> CompiledDocument:
        """Compile one flow file into a push-ready copy.

        Missing content files produce warnings, not failures.

        Raises:
            FlowsmithError: If the flow file cannot be read or parsed.
        """
        loaded = await load_document(path)
        data = loaded.data
        compiled = CompiledDocument(
            path=loaded.path, document=data, source_fingerprint=loaded.fingerprint
        )
        self._apply_defaults(loaded.path, data)

        nodes = data.get("nodes")
        for node in nodes if isinstance(nodes, list) else []:
            if not isinstance(node, dict):
                continue
            parameters = node.get("parameters")
            if isinstance(parameters, dict) and CONTENT_REF_KEY in parameters:
                await self._inject(node, compiled)

        logger.info(
            f"Compiled {loaded.path.name}: {len(compiled.injected)} injected, "
            f"{len(compiled.warnings)} warning(s)"
        )
        return compiled

    async def compile_all(self, output_dir: Path | None = None) -> CompileBatch:
        """Compile every flow in the project.

        Args:
            output_dir: When given, compiled copies are also written there for inspection.
        """
        batch = CompileBatch()
        paths = self.layout.flow_files()
        outcomes = await asyncio.gather(
            *(self.compile_file(p) for p in paths), return_exceptions=True
        )
        for path, outcome in zip(paths, outcomes):
            if isinstance(outcome, (FlowsmithError, OSError)):
                logger.error(f"Failed to compile {path.name}: {outcome}")
                batch.failures[path.name] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                batch.compiled.append(outcome)

        if output_dir is not None:
            for compiled in batch.compiled:
                await write_json(Path(output_dir) / compiled.path.name, compiled.document)
            logger.info(f"Wrote {len(batch.compiled)} compiled document(s) to {output_dir}")
        return batch

    async def needs_compilation(self, path: Path) -> bool:
        """Whether a stored document holds any content reference."""
        loaded = await load_document(path)
        nodes = loaded.data.get("nodes")
        return any(
            isinstance(node, dict)
            and isinstance(node.get("parameters"), dict)
            and CONTENT_REF_KEY in node["parameters"]
            for node in (nodes if isinstance(nodes, list) else [])
        )
