"""Tests for the content externalizer."""

import json
from pathlib import Path

import pytest
from conftest import (
    AGENT,
    CHAIN,
    CODE,
    POSTGRES,
    SCRIPT,
    TRIGGER,
    code_workflow,
    link,
    make_node,
    make_workflow,
    read_flow,
    write_flow,
)

from flowsmith.errors import FlowsmithError
from flowsmith.models.content import CONTENT_REF_KEY
from flowsmith.services.compiler import ContentCompiler
from flowsmith.services.externalizer import ContentExternalizer, document_key
from flowsmith.services.provenance import GENERATOR_MARKER


class TestExternalizeFile:
    """Tests for externalizing a single flow file."""

    @pytest.mark.asyncio
    async def test_script_moved_to_file(self, layout):
        path = write_flow(layout, "order-sync.json", code_workflow())

        result = await ContentExternalizer(layout).externalize_file(path)

        assert result.changed
        assert [r.node for r in result.records] == ["Transform"]
        record = result.records[0]
        assert record.path == "scripts/order_sync/order_sync_transform.js"

        text = (layout.content_root / record.path).read_text()
        assert GENERATOR_MARKER in text
        assert text.endswith(SCRIPT)

        node = read_flow(path)["nodes"][1]
        assert node["parameters"]["jsCode"] == ""
        ref = node["parameters"][CONTENT_REF_KEY]
        assert ref["contentType"] == "script"
        assert ref["field"] == "jsCode"
        assert ref["fingerprint"] == record.fingerprint

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, layout):
        path = write_flow(layout, "order-sync.json", code_workflow())
        externalizer = ContentExternalizer(layout)
        await externalizer.externalize_file(path)
        stored = path.read_bytes()

        result = await externalizer.externalize_file(path)

        assert not result.changed
        assert result.skipped == ["Transform"]
        assert path.read_bytes() == stored

    @pytest.mark.asyncio
    async def test_unclassified_nodes_untouched(self, layout):
        data = make_workflow(
            "Plain",
            [
                make_node("Start", TRIGGER),
                make_node("Call", "n8n-nodes-base.httpRequest", {"url": "https://example.com"}),
            ],
            link(("Start", "Call")),
        )
        path = write_flow(layout, "plain.json", data)
        stored = path.read_bytes()

        result = await ContentExternalizer(layout).externalize_file(path)

        assert not result.changed
        assert path.read_bytes() == stored
        assert not layout.metadata_file.exists()

    @pytest.mark.asyncio
    async def test_colliding_node_names_get_suffix(self, layout):
        data = make_workflow(
            "Flow",
            [
                make_node("Fetch Data", CODE, {"jsCode": "return 1;"}),
                make_node("fetch-data", CODE, {"jsCode": "return 2;"}),
            ],
        )
        path = write_flow(layout, "flow.json", data)

        result = await ContentExternalizer(layout).externalize_file(path)

        assert [r.path for r in result.records] == [
            "scripts/flow/flow_fetch_data.js",
            "scripts/flow/flow_fetch_data_2.js",
        ]

    @pytest.mark.asyncio
    async def test_query_and_prompt(self, layout):
        data = make_workflow(
            "Reports",
            [
                make_node("Load", POSTGRES, {"operation": "executeQuery", "query": "SELECT 1;"}),
                make_node("Summarize", CHAIN, {"text": "=Summarize {{ $json.body }}"}),
                make_node("Helper", AGENT, {"options": {"systemMessage": "You are terse."}}),
            ],
        )
        path = write_flow(layout, "reports.json", data)

        result = await ContentExternalizer(layout).externalize_file(path)

        paths = {r.node: r.path for r in result.records}
        assert paths == {
            "Load": "queries/reports/reports_load.sql",
            "Summarize": "prompts/reports/reports_summarize.md",
            "Helper": "prompts/reports/reports_helper.md",
        }
        nodes = {n["name"]: n for n in read_flow(path)["nodes"]}
        assert nodes["Summarize"]["parameters"][CONTENT_REF_KEY]["expression"] is True
        assert nodes["Helper"]["parameters"]["options"] == {"systemMessage": ""}
        assert nodes["Helper"]["parameters"][CONTENT_REF_KEY]["field"] == "options.systemMessage"

        prompt = (layout.content_root / paths["Summarize"]).read_text()
        assert prompt.endswith("Summarize {{ $json.body }}")

    @pytest.mark.asyncio
    async def test_metadata_records_merged(self, layout):
        path = write_flow(layout, "order-sync.json", code_workflow())
        await ContentExternalizer(layout).externalize_file(path)

        metadata = json.loads(layout.metadata_file.read_text())
        assert list(metadata) == ["Order Sync"]
        assert metadata["Order Sync"][0]["node"] == "Transform"
        assert metadata["Order Sync"][0]["contentType"] == "script"

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, layout):
        path = layout.flows_dir / "broken.json"
        path.write_text("{not json")

        with pytest.raises(FlowsmithError):
            await ContentExternalizer(layout).externalize_file(path)


class TestExternalizeAll:
    """Tests for batch externalization."""

    @pytest.mark.asyncio
    async def test_failure_isolated(self, layout):
        write_flow(layout, "a.json", code_workflow("A"))
        write_flow(layout, "b.json", code_workflow("B"))
        (layout.flows_dir / "c.json").write_text("[]")

        results = await ContentExternalizer(layout).externalize_all()

        by_name = {r.path.name: r for r in results}
        assert by_name["a.json"].changed
        assert by_name["b.json"].changed
        assert by_name["c.json"].error
        metadata = json.loads(layout.metadata_file.read_text())
        assert set(metadata) == {"A", "B"}


class TestRoundTrip:
    """Externalize then compile gives back the original parameters."""

    @pytest.mark.asyncio
    async def test_scalar_and_templated(self, layout):
        original = make_workflow(
            "Mixed",
            [
                make_node("Start", TRIGGER),
                make_node("Transform", CODE, {"jsCode": SCRIPT, "mode": "runOnceForAllItems"}),
                make_node("Summarize", CHAIN, {"text": "=Hello {{ $json.name }}\n"}),
            ],
            link(("Start", "Transform"), ("Transform", "Summarize")),
        )
        path = write_flow(layout, "mixed.json", original)
        await ContentExternalizer(layout).externalize_file(path)

        compiled = await ContentCompiler(layout).compile_file(path)

        nodes = {n["name"]: n["parameters"] for n in compiled.document["nodes"]}
        assert nodes["Transform"] == {"jsCode": SCRIPT, "mode": "runOnceForAllItems"}
        assert nodes["Summarize"] == {"text": "=Hello {{ $json.name }}\n"}
        assert compiled.document["connections"] == original["connections"]
        assert sorted(compiled.injected) == ["Summarize", "Transform"]


def test_document_key():
    assert document_key(Path("flows/My Flow.json")) == "my_flow"
    assert document_key(Path("!!!.json")) == "workflow"
