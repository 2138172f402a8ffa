"""Tests for the command line interface."""

import json
import stat

import pytest
from conftest import MERGE, code_workflow, link, make_node, read_flow, write_flow

from flowsmith.cli import build_parser, run


@pytest.fixture
def project(layout, monkeypatch, tmp_path):
    """A project with one flow and a stand-in engine executable."""
    write_flow(layout, "order-sync.json", code_workflow())
    cli = tmp_path / "fake-n8n"
    cli.write_text('#!/bin/sh\necho "Successfully imported 1 workflow."\n')
    cli.chmod(cli.stat().st_mode | stat.S_IEXEC)
    artifacts = tmp_path / "artifacts"
    artifacts.mkdir()
    monkeypatch.setenv("N8N_CLI", str(cli))
    monkeypatch.setenv("FLOWSMITH_ARTIFACT_DIR", str(artifacts))
    monkeypatch.delenv("FLOWSMITH_LEDGER_BACKEND", raising=False)
    return layout


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


class TestCommands:
    """End-to-end command runs against a temporary project."""

    @pytest.mark.asyncio
    async def test_extract(self, project, capsys):
        code = await run(["--root", str(project.root), "extract"])

        assert code == 0
        assert "order_sync_transform.js" in capsys.readouterr().out
        assert (project.content_root / "scripts/order_sync/order_sync_transform.js").exists()

    @pytest.mark.asyncio
    async def test_compile_out(self, project, tmp_path):
        out_dir = tmp_path / "dist"

        code = await run(["--root", str(project.root), "compile", "--out", str(out_dir)])

        assert code == 0
        compiled = json.loads((out_dir / "order-sync.json").read_text())
        assert compiled["settings"] == {"executionOrder": "v1"}

    @pytest.mark.asyncio
    async def test_compile_out_defaults_to_dist(self, project):
        code = await run(["--root", str(project.root), "compile", "--out"])

        assert code == 0
        assert (project.dist_dir / "order-sync.json").exists()

    @pytest.mark.asyncio
    async def test_validate_reports_errors(self, project, capsys):
        data = code_workflow("Bad")
        data["nodes"][1]["type"] = "n8n-nodes-base.mockTransform"
        write_flow(project, "bad.json", data)

        code = await run(["--root", str(project.root), "validate"])

        assert code == 1
        assert "banned_type_token" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_validate_fix_writes_back(self, project):
        data = code_workflow("Merging")
        data["nodes"].append(make_node("Merge", MERGE, {"mode": "multiplex"}))
        data["connections"] = link(
            ("Start", "Transform"), ("Start", "Merge"), ("Transform", "Merge")
        )
        path = write_flow(project, "merging.json", data)

        code = await run(["--root", str(project.root), "validate", "--fix", "merging.json"])

        assert code == 0
        assert read_flow(path)["nodes"][2]["parameters"]["mode"] == "combine"

    @pytest.mark.asyncio
    async def test_deploy_then_status(self, project, capsys):
        code = await run(["--root", str(project.root), "deploy"])
        assert code == 0
        assert "Deployed 1/1" in capsys.readouterr().out

        code = await run(["--root", str(project.root), "deploy"])
        assert code == 0
        assert "Nothing to deploy" in capsys.readouterr().out

        await run(["--root", str(project.root), "status"])
        assert "Total: 1, deployed: 1, pending: 0" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_status_reset(self, project, capsys):
        await run(["--root", str(project.root), "deploy"])
        capsys.readouterr()

        await run(["--root", str(project.root), "status", "--reset"])

        assert "pending: 1" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_sqlite_backend(self, project, capsys):
        await run(["--root", str(project.root), "--ledger-backend", "sqlite", "deploy"])

        await run(["--root", str(project.root), "--ledger-backend", "sqlite", "status"])

        assert "deployed: 1" in capsys.readouterr().out
        assert project.ledger_db.exists()

    @pytest.mark.asyncio
    async def test_invalid_flow_file(self, project, capsys):
        (project.flows_dir / "broken.json").write_text("{")

        code = await run(["--root", str(project.root), "validate", "broken.json"])

        assert code == 1
        assert "Invalid JSON" in capsys.readouterr().out
