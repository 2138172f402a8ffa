"""Tests for settings and project layout."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from flowsmith.config import ProjectLayout, Settings

ENV_NAMES = (
    "FLOWSMITH_ROOT",
    "FLOWSMITH_PUSH_CONCURRENCY",
    "FLOWSMITH_PUSH_TIMEOUT",
    "FLOWSMITH_LEDGER_BACKEND",
    "N8N_API_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.push_concurrency == 4
        assert settings.ledger_backend == "json"
        assert settings.n8n_api_key is None

    def test_read_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FLOWSMITH_ROOT", str(tmp_path))
        monkeypatch.setenv("FLOWSMITH_PUSH_CONCURRENCY", "2")
        monkeypatch.setenv("FLOWSMITH_LEDGER_BACKEND", "sqlite")
        monkeypatch.setenv("N8N_API_KEY", "secret")

        settings = Settings()

        assert settings.root == tmp_path
        assert settings.push_concurrency == 2
        assert settings.ledger_backend == "sqlite"
        assert settings.n8n_api_key == "secret"
        assert settings.layout.flows_dir == tmp_path / "flows"

    def test_empty_value_ignored(self, monkeypatch):
        monkeypatch.setenv("N8N_API_KEY", "")
        assert Settings().n8n_api_key is None

    def test_invalid_value_rejected(self, monkeypatch):
        monkeypatch.setenv("FLOWSMITH_PUSH_CONCURRENCY", "0")
        with pytest.raises(ValidationError):
            Settings()


def test_layout_relative(tmp_path):
    layout = ProjectLayout(root=tmp_path)
    assert layout.relative(tmp_path / "flows" / "a.json") == "flows/a.json"
    with pytest.raises(ValueError):
        layout.relative(Path("/elsewhere/a.json"))
