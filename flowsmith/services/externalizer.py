"""Content externalizer.

Moves scripts, prompts, queries and templates out of node parameters into
files under the content root and leaves a content reference in their place.
Running it twice is a no-op: nodes that already hold a reference are skipped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from flowsmith.config import ProjectLayout
from flowsmith.errors import FlowsmithError
from flowsmith.models.content import CONTENT_REF_KEY, ContentReference, ExtractionRecord
from flowsmith.services import content_catalog, provenance
from flowsmith.storage.document_store import load_document, save_document
from flowsmith.storage.files import sanitize_name, short_fingerprint, write_text
from flowsmith.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Outcome of externalizing one document."""

    path: Path
    document_name: str
    records: list[ExtractionRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.records)


def document_key(path: Path) -> str:
    """Directory and file name component for a flow file."""
    return sanitize_name(Path(path).stem, fallback="workflow")


class ContentExternalizer:
    """Externalizes node content for the flows of one project."""

    def __init__(self, layout: ProjectLayout, metadata: MetadataStore | None = None):
        self.layout = layout
        self.metadata = metadata or MetadataStore(layout.metadata_file)

    def _reference_path(
        self,
        rule: content_catalog.ContentRule,
        doc_key: str,
        node_name: str,
        extension: str,
        taken: set[str],
    ) -> str:
        base = f"{rule.subdir}/{doc_key}/{doc_key}_{sanitize_name(node_name)}"
        candidate = f"{base}.{extension}"
        suffix = 2
        while candidate in taken:
            candidate = f"{base}_{suffix}.{extension}"
            suffix += 1
        taken.add(candidate)
        return candidate

    async def _extract_node(
        self,
        node: dict[str, Any],
        rule: content_catalog.ContentRule,
        doc_key: str,
        workflow_name: str,
        taken: set[str],
    ) -> ExtractionRecord | None:
        parameters = node.get("parameters")
        if not isinstance(parameters, dict):
            return None
        selected = content_catalog.select_field(rule, parameters)
        if selected is None:
            return None
        content_field, value = selected
        text, expression = content_catalog.to_file_text(content_field, value)

        rel_path = self._reference_path(rule, doc_key, node["name"], content_field.extension, taken)
        header = {
            "node": node["name"],
            "workflow": workflow_name,
            "subtype": content_field.subtype,
        }
        header.update(content_catalog.header_values(rule, node.get("type", ""), parameters))
        await write_text(
            self.layout.content_root / rel_path,
            provenance.with_header(content_field.extension, header, text),
        )

        fingerprint = short_fingerprint(text)
        reference = ContentReference(
            content_type=rule.content_type,
            subtype=content_field.subtype,
            path=rel_path,
            fingerprint=fingerprint,
            field=content_field.path,
            expression=expression,
        )
        content_catalog.set_path(
            parameters, content_field.path, content_catalog.empty_value(content_field.shape)
        )
        parameters[CONTENT_REF_KEY] = reference.to_parameter()
        logger.debug(f"Externalized '{node['name']}' to {rel_path}")

        return ExtractionRecord(
            node=node["name"],
            content_type=rule.content_type,
            subtype=content_field.subtype,
            path=rel_path,
            fingerprint=fingerprint,
            extracted_at=datetime.now(UTC).isoformat(),
        )

    async def externalize_file(self, path: Path) -> ExtractionResult:
        """Externalize the content of every classified node in one flow file.

        The document is saved only when at least one node was externalized.

        Raises:
            FlowsmithError: If the flow file cannot be parsed.
        """
        loaded = await load_document(path)
        data = loaded.data
        doc_key = document_key(loaded.path)
        workflow_name = data.get("name") if isinstance(data.get("name"), str) else loaded.stem
        result = ExtractionResult(path=loaded.path, document_name=workflow_name)

        nodes = data.get("nodes")
        if not isinstance(nodes, list):
            raise FlowsmithError(f"{loaded.path.name} has no node list", document=workflow_name)

        taken: set[str] = set()
        for node in nodes:
            if not isinstance(node, dict):
                continue
            parameters = node.get("parameters")
            if isinstance(parameters, dict) and isinstance(parameters.get(CONTENT_REF_KEY), dict):
                ref_path = parameters[CONTENT_REF_KEY].get("path")
                if isinstance(ref_path, str):
                    taken.add(ref_path)

        for node in nodes:
            if not isinstance(node, dict) or not isinstance(node.get("name"), str):
                continue
            rule = content_catalog.rule_for(node.get("type", ""))
            if rule is None:
                continue
            parameters = node.get("parameters")
            if isinstance(parameters, dict) and CONTENT_REF_KEY in parameters:
                result.skipped.append(node["name"])
                continue
            record = await self._extract_node(node, rule, doc_key, workflow_name, taken)
            if record:
                result.records.append(record)

        if result.changed:
            await save_document(loaded.path, data)
            await self.metadata.merge(workflow_name, result.records)
            logger.info(f"Externalized {len(result.records)} node(s) from {loaded.path.name}")
        else:
            logger.debug(f"Nothing to externalize in {loaded.path.name}")
        return result

    async def externalize_all(self) -> list[ExtractionResult]:
        """Externalize every flow in the project concurrently.

        A document that fails is reported in its result and does not stop the others.
        """
        paths = self.layout.flow_files()

        async def run(path: Path) -> ExtractionResult:
            try:
                return await self.externalize_file(path)
            except (FlowsmithError, OSError) as e:
                logger.error(f"Failed to externalize {path.name}: {e}")
                return ExtractionResult(path=path, document_name=path.stem, error=str(e))

        return list(await asyncio.gather(*(run(p) for p in paths)))
