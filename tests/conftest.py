"""Pytest configuration and fixtures."""

import json
from pathlib import Path
from typing import Any

import pytest

from flowsmith.config import ProjectLayout

TRIGGER = "n8n-nodes-base.manualTrigger"
CODE = "n8n-nodes-base.code"
MERGE = "n8n-nodes-base.merge"
POSTGRES = "n8n-nodes-base.postgres"
CHAIN = "@n8n/n8n-nodes-langchain.chainLlm"
AGENT = "@n8n/n8n-nodes-langchain.agent"
HTML = "n8n-nodes-base.html"
OPENAI = "n8n-nodes-base.openAi"
ANTHROPIC = "n8n-nodes-base.anthropic"
LM_CHAT_OPENAI = "@n8n/n8n-nodes-langchain.lmChatOpenAi"
REPLICATE = "n8n-nodes-base.replicate"

SCRIPT = "const items = $input.all();\nreturn items.map(i => ({ json: { ok: true } }));\n"


def make_node(
    name: str,
    node_type: str,
    parameters: dict[str, Any] | None = None,
    position: list[int] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a node dict in the engine's JSON shape."""
    node = {
        "id": f"id-{name.lower().replace(' ', '-')}",
        "name": name,
        "type": node_type,
        "typeVersion": 1,
        "position": position if position is not None else [0, 0],
        "parameters": parameters or {},
    }
    node.update(extra)
    return node


def link(*pairs: tuple[str, str]) -> dict[str, Any]:
    """Build a main-port connection map from (source, target) pairs."""
    connections: dict[str, Any] = {}
    for source, target in pairs:
        outputs = connections.setdefault(source, {"main": [[]]})["main"]
        outputs[0].append({"node": target, "type": "main", "index": 0})
    return connections


def make_workflow(
    name: str, nodes: list[dict[str, Any]], connections: dict[str, Any] | None = None
) -> dict[str, Any]:
    return {"name": name, "nodes": nodes, "connections": connections or {}}


def code_workflow(name: str = "Order Sync", code: str = SCRIPT) -> dict[str, Any]:
    """Trigger feeding a single script node."""
    return make_workflow(
        name,
        [
            make_node("Start", TRIGGER, position=[0, 0]),
            make_node("Transform", CODE, {"jsCode": code}, position=[200, 0]),
        ],
        link(("Start", "Transform")),
    )


def write_flow(layout: ProjectLayout, filename: str, data: dict[str, Any]) -> Path:
    """Write a flow file the way stored documents are written."""
    path = layout.flows_dir / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")
    return path


def read_flow(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text())


@pytest.fixture
def layout(tmp_path: Path) -> ProjectLayout:
    """An empty project with a flows directory."""
    project = ProjectLayout(root=tmp_path)
    project.flows_dir.mkdir()
    return project
