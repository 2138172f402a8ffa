"""Tests for structural validation and auto-fix."""

import pytest
from conftest import CODE, MERGE, TRIGGER, code_workflow, link, make_node, make_workflow

from flowsmith.errors import StructuralError
from flowsmith.services.structural_validator import (
    StructuralValidator,
    banned_tokens,
)


@pytest.fixture
def validator():
    return StructuralValidator()


def merge_workflow(parameters: dict) -> dict:
    return make_workflow(
        "Merge Flow",
        [
            make_node("Start", TRIGGER),
            make_node("Left", CODE, {"jsCode": "return [];"}),
            make_node("Right", CODE, {"jsCode": "return [];"}),
            make_node("Merge", MERGE, parameters),
        ],
        link(("Start", "Left"), ("Start", "Right"), ("Left", "Merge"), ("Right", "Merge")),
    )


class TestBannedTokens:
    """Tests for banned token matching."""

    @pytest.mark.parametrize(
        "node_type, expected",
        [
            ("n8n-nodes-base.mocknode", {"mock"}),
            ("n8n-nodes-base.testnode", {"test"}),
            ("n8n-nodes-base.placeholdernode", {"placeholder"}),
            ("n8n-nodes-base.dummyapi", {"dummy"}),
            ("n8n-nodes-base.testNode", {"test"}),
        ],
    )
    def test_lowercase_compounds_matched(self, node_type, expected):
        assert banned_tokens(node_type) == expected

    def test_exempt_real_types(self):
        assert banned_tokens("n8n-nodes-base.todoist") == set()
        assert banned_tokens("n8n-nodes-base.httpRequest") == set()

    def test_banned(self):
        assert banned_tokens("n8n-nodes-base.mockApi") == {"mock"}
        assert banned_tokens("n8n-nodes-base.placeholder") == {"placeholder"}


class TestValidateRaw:
    """Tests for document-level checks."""

    def test_valid_document(self, validator):
        report = validator.validate_raw(code_workflow())
        assert report.valid
        assert report.warnings == []

    def test_missing_top_level_fields(self, validator):
        report = validator.validate_raw({"nodes": []})
        assert "missing_name" in report.codes()
        assert "missing_connections" in report.codes()
        assert not report.valid

    def test_missing_nodes(self, validator):
        report = validator.validate_raw({"name": "X", "connections": {}})
        assert report.codes() == ["missing_nodes"]

    def test_not_an_object(self, validator):
        report = validator.validate_raw([])
        assert report.codes() == ["malformed_document"]

    def test_malformed_node(self, validator):
        data = make_workflow("Flow", [{"name": ["not", "a", "string"], "type": CODE}])
        report = validator.validate_raw(data)
        assert "malformed_document" in report.codes()

    def test_malformed_connections(self, validator):
        data = code_workflow()
        data["connections"] = {"Start": {"main": "Transform"}}
        report = validator.validate_raw(data)
        assert "malformed_connection" in report.codes()

    def test_duplicate_names_and_ids(self, validator):
        data = make_workflow(
            "Flow",
            [make_node("Start", TRIGGER), make_node("Start", CODE, id="id-start")],
        )
        report = validator.validate_raw(data)
        assert "duplicate_node_name" in report.codes()
        assert "duplicate_node_id" in report.codes()

    def test_node_missing_identity(self, validator):
        node = make_node("Start", TRIGGER)
        del node["id"]
        node["type"] = ""
        report = validator.validate_raw(make_workflow("Flow", [node]))
        assert {"node_missing_id", "node_missing_type"} <= set(report.codes())

    def test_banned_type_rejected(self, validator):
        data = code_workflow()
        data["nodes"].append(make_node("Stub", "n8n-nodes-base.testNode"))
        data["connections"] = link(("Start", "Transform"), ("Transform", "Stub"))
        report = validator.validate_raw(data)
        assert [i.node_name for i in report.errors] == ["Stub"]
        assert report.errors[0].code == "banned_type_token"

    @pytest.mark.parametrize("suffix", ["mocknode", "placeholdernode", "dummyapi"])
    def test_lowercase_compound_type_rejected(self, validator, suffix):
        data = code_workflow()
        data["nodes"][1]["type"] = f"n8n-nodes-base.{suffix}"
        report = validator.validate_raw(data)
        assert report.codes() == ["banned_type_token"]

    def test_real_type_containing_banned_substring_allowed(self, validator):
        data = code_workflow()
        data["nodes"].append(make_node("Tasks", "n8n-nodes-base.todoist"))
        data["connections"] = link(("Start", "Transform"), ("Transform", "Tasks"))
        assert validator.validate_raw(data).valid

    def test_unknown_namespace(self, validator):
        data = code_workflow()
        data["nodes"][1]["type"] = "acme.transform"
        report = validator.validate_raw(data)
        assert report.codes() == ["unknown_type_namespace"]

    def test_extra_namespace_allowed(self):
        data = code_workflow()
        data["nodes"][1]["type"] = "acme.transform"
        assert StructuralValidator(extra_prefixes=("acme.",)).validate_raw(data).valid

    def test_unknown_connection_endpoints(self, validator):
        data = code_workflow()
        data["connections"] = link(("Start", "Transform"), ("Start", "Ghost"), ("Phantom", "Start"))
        report = validator.validate_raw(data)
        assert "connection_unknown_target" in report.codes()
        assert "connection_unknown_source" in report.codes()

    def test_unreachable_node_is_warning(self, validator):
        data = code_workflow()
        data["nodes"].append(make_node("Orphan", CODE, {"jsCode": "return [];"}))
        report = validator.validate_raw(data)
        assert report.valid
        assert [i.node_name for i in report.warnings] == ["Orphan"]

    def test_sub_node_not_reported_unreachable(self, validator):
        data = make_workflow(
            "Agent Flow",
            [
                make_node("Start", TRIGGER),
                make_node("Agent", "@n8n/n8n-nodes-langchain.agent"),
                make_node("Model", "@n8n/n8n-nodes-langchain.lmChatOpenAi"),
            ],
            link(("Start", "Agent")),
        )
        data["connections"]["Model"] = {
            "ai_languageModel": [[{"node": "Agent", "type": "ai_languageModel", "index": 0}]]
        }
        report = validator.validate_raw(data)
        assert "no_inbound_connection" not in report.codes()

    def test_no_entry_node_warning(self, validator):
        data = make_workflow("Flow", [make_node("Transform", CODE, {"jsCode": "return [];"})])
        report = validator.validate_raw(data)
        assert "no_entry_node" in report.codes()
        assert report.valid

    def test_missing_version_and_position_warnings(self, validator):
        data = code_workflow()
        del data["nodes"][1]["typeVersion"]
        data["nodes"][1]["position"] = "here"
        report = validator.validate_raw(data)
        assert report.valid
        assert sorted(report.codes()) == ["invalid_position", "missing_type_version"]

    def test_raise_for_structure(self, validator):
        report = validator.validate_raw({"nodes": [], "connections": {}})
        with pytest.raises(StructuralError) as exc_info:
            report.raise_for_structure(document="flow.json")
        assert exc_info.value.report is report
        assert exc_info.value.document == "flow.json"


class TestCombinator:
    """Tests for combinator mode checks and fixes."""

    def test_multiplex_is_error(self, validator):
        report = validator.validate_raw(merge_workflow({"mode": "multiplex"}))
        assert report.codes() == ["combinator_multiplex"]

    def test_combine_multiplex_is_error(self, validator):
        data = merge_workflow({"mode": "combine", "combinationMode": "multiplex"})
        assert validator.validate_raw(data).codes() == ["combinator_multiplex"]

    def test_missing_combination_mode_warning(self, validator):
        report = validator.validate_raw(merge_workflow({"mode": "combine"}))
        assert report.valid
        assert report.codes() == ["combinator_missing_combination_mode"]

    def test_single_input_warning(self, validator):
        data = merge_workflow({"mode": "append"})
        data["connections"] = link(("Start", "Left"), ("Start", "Right"), ("Left", "Merge"))
        report = validator.validate_raw(data)
        assert report.codes() == ["combinator_inputs"]

    def test_auto_fix_multiplex(self, validator):
        data = merge_workflow({"mode": "multiplex"})

        result = validator.auto_fix(data)

        assert result.fixed
        assert result.report.valid
        assert result.changes == [
            'Fixed "Merge": Changed from multiplex to combine with mergeByPosition'
        ]
        assert data["nodes"][3]["parameters"] == {
            "mode": "combine",
            "combinationMode": "mergeByPosition",
        }

    def test_auto_fix_idempotent(self, validator):
        data = merge_workflow({"mode": "multiplex"})
        validator.auto_fix(data)

        result = validator.auto_fix(data)

        assert not result.fixed


class TestAutoFix:
    """Tests for typeVersion and position backfill."""

    def test_backfills_type_version(self, validator):
        data = code_workflow()
        del data["nodes"][1]["typeVersion"]

        result = validator.auto_fix(data)

        assert data["nodes"][1]["typeVersion"] == 2
        assert result.report.warnings == []

    def test_backfills_positions_below_existing(self, validator):
        data = code_workflow()
        data["nodes"][0]["position"] = [0, 100]
        data["nodes"][1]["position"] = [200, 400]
        data["nodes"].append(make_node("A", CODE, {"jsCode": "1"}, position=[]))
        data["nodes"].append(make_node("B", CODE, {"jsCode": "2"}, position=[1]))
        data["connections"] = link(("Start", "Transform"), ("Transform", "A"), ("A", "B"))

        result = validator.auto_fix(data)

        assert data["nodes"][2]["position"] == [250, 600]
        assert data["nodes"][3]["position"] == [450, 600]
        assert len(result.changes) == 2
        assert result.report.warnings == []

    def test_positions_without_any_positioned_node(self, validator):
        data = make_workflow("Flow", [make_node("Start", TRIGGER, position=["x", "y"])])

        validator.auto_fix(data)

        assert data["nodes"][0]["position"] == [250, 300]

    def test_unfixable_errors_remain(self, validator):
        data = code_workflow()
        data["nodes"][1]["type"] = "n8n-nodes-base.dummyNode"

        result = validator.auto_fix(data)

        assert not result.fixed
        assert not result.report.valid
