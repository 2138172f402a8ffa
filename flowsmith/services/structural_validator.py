"""Structural validation and auto-fix of workflow documents.

Checks that a document is well-formed: required top-level fields, node
identity, capability type namespaces, connection integrity and the
combinator configuration. Errors block a push; warnings are reported only.
"""

import logging
from typing import Any

from pydantic import ValidationError

from flowsmith.models.capability import (
    COMBINATOR_TYPES,
    DEFAULT_TYPE_VERSIONS,
    FALLBACK_TYPE_VERSION,
    CapabilityFamily,
    has_allowed_prefix,
    is_entry_type,
)
from flowsmith.models.validation import FixResult, ValidationReport
from flowsmith.models.workflow import NodeRecord, WorkflowDocument

logger = logging.getLogger(__name__)

# Tokens that mark a capability type as a stand-in rather than a real node
BANNED_TYPE_TOKENS = frozenset(
    {"mock", "placeholder", "dummy", "test", "fake", "example", "sample", "todo"}
)

MAIN_PORT = "main"
MULTIPLEX_MODE = "multiplex"
COMBINE_MODE = "combine"
DEFAULT_COMBINATION_MODE = "mergeByPosition"

# Layout of backfilled positions
POSITION_START_X = 250
POSITION_STEP_X = 200
POSITION_ROW_GAP = 200
POSITION_DEFAULT_Y = 300

# Real node types whose names happen to contain a banned word
BANNED_TOKEN_EXEMPT_TYPES = frozenset({"n8n-nodes-base.todoist"})


def banned_tokens(node_type: str) -> set[str]:
    """Banned words found anywhere in a capability type, case-insensitively.

    ``mocknode`` and ``testNode`` both match ``mock``/``test``. Types listed in
    BANNED_TOKEN_EXEMPT_TYPES never match.
    """
    if node_type in BANNED_TOKEN_EXEMPT_TYPES:
        return set()
    lowered = node_type.lower()
    return {token for token in BANNED_TYPE_TOKENS if token in lowered}


class StructuralValidator:
    """Validates and auto-fixes document structure."""

    def __init__(self, extra_prefixes: tuple[str, ...] = ()):
        self.extra_prefixes = extra_prefixes

    def validate_raw(self, data: dict[str, Any]) -> ValidationReport:
        """Validate a document given as parsed JSON.

        Args:
            data: Document JSON object.

        Returns:
            ValidationReport with every error and warning found.
        """
        report = ValidationReport()
        if not isinstance(data, dict):
            report.error("malformed_document", "Document must be a JSON object")
            return report

        if not data.get("name"):
            report.error("missing_name", "Workflow must have a name", fix="Add a 'name' field")
        if "nodes" not in data:
            report.error("missing_nodes", "Workflow must have a nodes array")
        if "connections" not in data:
            report.error(
                "missing_connections",
                "Workflow must have a connections object",
                fix="Add 'connections': {}",
            )
        self._check_connection_shape(data.get("connections"), report)

        try:
            document = WorkflowDocument.model_validate(data)
        except ValidationError as e:
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                report.error("malformed_document", f"{loc}: {error['msg']}")
            return report

        report.extend(self.validate(document))
        return report

    def validate(self, document: WorkflowDocument) -> ValidationReport:
        """Validate nodes and connections of a parsed document."""
        report = ValidationReport()
        self._check_nodes(document, report)
        self._check_connections(document, report)
        self._check_reachability(document, report)
        self._check_combinators(document, report)
        logger.debug(
            f"Structural validation of '{document.name}': "
            f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )
        return report

    def _check_connection_shape(self, connections: Any, report: ValidationReport) -> None:
        if connections is None:
            return
        if not isinstance(connections, dict):
            report.error("malformed_connection", "connections must be an object")
            return
        for source, ports in connections.items():
            if not isinstance(ports, dict):
                report.error(
                    "malformed_connection",
                    f"Connections of '{source}' must map port names to output lists",
                    node_name=source,
                )
                continue
            for port, outputs in ports.items():
                if not isinstance(outputs, list) or not all(
                    isinstance(targets, list) for targets in outputs
                ):
                    report.error(
                        "malformed_connection",
                        f"Port '{port}' of '{source}' must be a list of target lists",
                        node_name=source,
                    )
                    continue
                for targets in outputs:
                    for target in targets:
                        if not isinstance(target, dict) or not isinstance(target.get("node"), str):
                            report.error(
                                "malformed_connection",
                                f"Connection from '{source}' has a target without a node name",
                                node_name=source,
                            )

    def _check_nodes(self, document: WorkflowDocument, report: ValidationReport) -> None:
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        has_entry = False

        for index, node in enumerate(document.nodes):
            label = node.name or node.id or f"#{index}"
            if not node.id:
                report.error("node_missing_id", f"Node {label} has no id", node_name=node.name)
            elif node.id in seen_ids:
                report.error(
                    "duplicate_node_id", f"Duplicate node id: {node.id}", node_name=node.name
                )
            else:
                seen_ids.add(node.id)

            if not node.name:
                report.error("node_missing_name", f"Node {label} has no name", node_id=node.id)
            elif node.name in seen_names:
                report.error(
                    "duplicate_node_name",
                    f"Duplicate node name: {node.name}",
                    node_name=node.name,
                    fix="Node names must be unique within a workflow",
                )
            else:
                seen_names.add(node.name)

            self._check_type(node, label, report)
            if node.type and is_entry_type(node.type):
                has_entry = True

            if node.type_version is None:
                report.warning(
                    "missing_type_version",
                    f"Node {label} has no typeVersion",
                    node_name=node.name,
                    field="typeVersion",
                )
            if not node.has_valid_position():
                report.warning(
                    "invalid_position",
                    f"Node {label} has no valid [x, y] position",
                    node_name=node.name,
                    field="position",
                )

        real_nodes = [n for n in document.nodes if n.family != CapabilityFamily.ANNOTATION]
        if real_nodes and not has_entry:
            report.warning("no_entry_node", "Workflow has no trigger or other entry node")

    def _check_type(self, node: NodeRecord, label: str, report: ValidationReport) -> None:
        if not node.type:
            report.error("node_missing_type", f"Node {label} has no type", node_name=node.name)
            return
        banned = banned_tokens(node.type)
        if banned:
            report.error(
                "banned_type_token",
                f"Node {label} uses stand-in type '{node.type}' ({', '.join(sorted(banned))})",
                node_name=node.name,
                field="type",
                fix="Use a real node type",
            )
            return
        if not has_allowed_prefix(node.type, self.extra_prefixes):
            report.error(
                "unknown_type_namespace",
                f"Node {label} has type '{node.type}' outside the allowed namespaces",
                node_name=node.name,
                field="type",
            )

    def _check_connections(self, document: WorkflowDocument, report: ValidationReport) -> None:
        names = document.node_names()
        for edge in document.edges():
            if edge.source not in names:
                report.error(
                    "connection_unknown_source",
                    f"Connection from non-existent node: {edge.source}",
                    node_name=edge.source,
                )
            if edge.target not in names:
                report.error(
                    "connection_unknown_target",
                    f"Connection references non-existent node: {edge.target}",
                    node_name=edge.source,
                )

    def _check_reachability(self, document: WorkflowDocument, report: ValidationReport) -> None:
        edges = document.edges()
        has_main_inbound = {e.target for e in edges if e.target_port == MAIN_PORT}
        # Sub-nodes (models, tools, memory) attach to a parent through non-main ports
        attached = {e.source for e in edges if e.source_port != MAIN_PORT}

        for node in document.nodes:
            if not node.name or node.name in has_main_inbound or node.name in attached:
                continue
            if node.disabled or node.family == CapabilityFamily.ANNOTATION:
                continue
            if node.type and is_entry_type(node.type):
                continue
            report.warning(
                "no_inbound_connection",
                f"Node {node.name} has no inbound connection and is not an entry node",
                node_name=node.name,
            )

    def _check_combinators(self, document: WorkflowDocument, report: ValidationReport) -> None:
        inbound_counts: dict[str, int] = {}
        for edge in document.edges():
            if edge.target_port == MAIN_PORT:
                inbound_counts[edge.target] = inbound_counts.get(edge.target, 0) + 1

        for node in document.nodes:
            if node.type not in COMBINATOR_TYPES:
                continue
            mode = node.parameters.get("mode")
            combination_mode = node.parameters.get("combinationMode")
            if mode == MULTIPLEX_MODE or (
                mode == COMBINE_MODE and combination_mode == MULTIPLEX_MODE
            ):
                report.error(
                    "combinator_multiplex",
                    f"Node {node.name} uses 'multiplex' mode which often outputs empty data",
                    node_name=node.name,
                    field="mode",
                    fix="Use mode='combine' with combinationMode='mergeByPosition'",
                )
            elif mode == COMBINE_MODE and not combination_mode:
                report.warning(
                    "combinator_missing_combination_mode",
                    f"Node {node.name} is missing combinationMode",
                    node_name=node.name,
                    field="combinationMode",
                )
            inputs = inbound_counts.get(node.name, 0)
            if inputs < 2:
                report.warning(
                    "combinator_inputs",
                    f"Merge node {node.name} has only {inputs} input(s), it needs at least 2",
                    node_name=node.name,
                )

    def auto_fix(self, data: dict[str, Any]) -> FixResult:
        """Apply deterministic fixes in place, then re-validate.

        Fixes combinator modes, backfills typeVersion and backfills positions
        on a new row below the positioned nodes.
        """
        changes: list[str] = []
        nodes = data.get("nodes") if isinstance(data, dict) else None
        node_dicts = [n for n in nodes if isinstance(n, dict)] if isinstance(nodes, list) else []

        for node in node_dicts:
            name = node.get("name", "")
            node_type = node.get("type", "")
            if node_type in COMBINATOR_TYPES and isinstance(node.get("parameters"), dict):
                changes.extend(self._fix_combinator(name, node["parameters"]))
            if node.get("typeVersion") is None and isinstance(node_type, str) and node_type:
                version = DEFAULT_TYPE_VERSIONS.get(node_type, FALLBACK_TYPE_VERSION)
                node["typeVersion"] = version
                changes.append(f"Fixed \"{name}\": Added typeVersion {version}")

        changes.extend(self._fix_positions(node_dicts))

        for change in changes:
            logger.info(change)
        report = self.validate_raw(data)
        if report.errors:
            logger.debug(f"Structural issues left after auto-fix: {report.codes()}")
        return FixResult(changes=changes, report=report)

    def _fix_combinator(self, name: str, parameters: dict[str, Any]) -> list[str]:
        mode = parameters.get("mode")
        combination_mode = parameters.get("combinationMode")
        if mode == MULTIPLEX_MODE:
            parameters["mode"] = COMBINE_MODE
            parameters["combinationMode"] = DEFAULT_COMBINATION_MODE
            return [f"Fixed \"{name}\": Changed from multiplex to combine with mergeByPosition"]
        if mode == COMBINE_MODE and combination_mode == MULTIPLEX_MODE:
            parameters["combinationMode"] = DEFAULT_COMBINATION_MODE
            return [f"Fixed \"{name}\": Changed combinationMode from multiplex to mergeByPosition"]
        if mode == COMBINE_MODE and not combination_mode:
            parameters["combinationMode"] = DEFAULT_COMBINATION_MODE
            return [f"Fixed \"{name}\": Added missing combinationMode: mergeByPosition"]
        return []

    def _fix_positions(self, node_dicts: list[dict[str, Any]]) -> list[str]:
        positioned = []
        missing = []
        for node in node_dicts:
            if NodeRecord(position=node.get("position")).has_valid_position():
                positioned.append(node)
            else:
                missing.append(node)
        if not missing:
            return []
        if positioned:
            row_y = max(n["position"][1] for n in positioned) + POSITION_ROW_GAP
        else:
            row_y = POSITION_DEFAULT_Y
        changes = []
        for i, node in enumerate(missing):
            node["position"] = [POSITION_START_X + i * POSITION_STEP_X, row_y]
            changes.append(f"Fixed \"{node.get('name', '')}\": Set position to {node['position']}")
        return changes

