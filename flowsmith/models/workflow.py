"""Pydantic models for workflow documents.

Documents use the engine's JSON shape: camelCase keys, connections stored as
``{source: {port: [[{node, type, index}, ...], ...]}}``. Keys the models do
not declare are kept as extras.
"""

from typing import Any

from pydantic import BaseModel
from pydantic import Field as PydanticField

from flowsmith.models.capability import CapabilityFamily, capability_family


class ConnectionEdge(BaseModel):
    """A directed edge between two named nodes."""

    source: str
    source_port: str = "main"
    source_index: int = 0
    target: str
    target_port: str = "main"
    target_index: int = 0

    model_config = {"frozen": True}


class NodeRecord(BaseModel):
    """A node in a workflow document."""

    id: str | None = None
    name: str = ""
    type: str = ""
    type_version: int | float | None = PydanticField(default=None, alias="typeVersion")
    position: Any = None
    parameters: dict[str, Any] = PydanticField(default_factory=dict)
    credentials: dict[str, Any] | None = None
    disabled: bool | None = None

    model_config = {"populate_by_name": True, "extra": "allow"}

    @property
    def family(self) -> CapabilityFamily:
        return capability_family(self.type)

    def has_valid_position(self) -> bool:
        pos = self.position
        return (
            isinstance(pos, (list, tuple))
            and len(pos) == 2
            and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in pos)
        )


class WorkflowDocument(BaseModel):
    """A workflow document: nodes, connections and settings."""

    id: str | None = None
    name: str = ""
    active: bool | None = None
    nodes: list[NodeRecord] = PydanticField(default_factory=list)
    connections: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None
    created_at: str | None = PydanticField(default=None, alias="createdAt")
    updated_at: str | None = PydanticField(default=None, alias="updatedAt")

    model_config = {"populate_by_name": True, "extra": "allow"}

    def node_names(self) -> set[str]:
        return {node.name for node in self.nodes if node.name}

    def edges(self) -> list[ConnectionEdge]:
        """Flatten the connection map, skipping malformed entries."""
        edges: list[ConnectionEdge] = []
        for source, ports in (self.connections or {}).items():
            if not isinstance(ports, dict):
                continue
            for port, outputs in ports.items():
                if not isinstance(outputs, list):
                    continue
                for source_index, targets in enumerate(outputs):
                    if not isinstance(targets, list):
                        continue
                    for target in targets:
                        if not isinstance(target, dict) or not isinstance(target.get("node"), str):
                            continue
                        index = target.get("index", 0)
                        edges.append(
                            ConnectionEdge(
                                source=source,
                                source_port=port,
                                source_index=source_index,
                                target=target["node"],
                                target_port=str(target.get("type", port)),
                                target_index=index if isinstance(index, int) else 0,
                            )
                        )
        return edges
