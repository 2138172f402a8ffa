"""Configuration and project layout.

Settings are read from environment variables by pydantic-settings. Paths inside a project are
derived from a single root directory by ProjectLayout.
"""

import logging
import os
import sys
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Layout names relative to the project root
FLOWS_DIRNAME = "flows"
CONTENT_DIRNAME = "nodes"
DIST_DIRNAME = "dist"
STATE_DIRNAME = ".flowsmith"
METADATA_FILENAME = ".metadata.json"
LEDGER_JSON_FILENAME = "change-ledger.json"
LEDGER_SQLITE_FILENAME = "change-ledger.db"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for command line use."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )


class ProjectLayout(BaseModel):
    """Filesystem layout of a workflow project."""

    root: Path

    @property
    def flows_dir(self) -> Path:
        return self.root / FLOWS_DIRNAME

    @property
    def content_root(self) -> Path:
        return self.root / CONTENT_DIRNAME

    @property
    def metadata_file(self) -> Path:
        return self.content_root / METADATA_FILENAME

    @property
    def state_dir(self) -> Path:
        return self.root / STATE_DIRNAME

    @property
    def ledger_file(self) -> Path:
        return self.state_dir / LEDGER_JSON_FILENAME

    @property
    def ledger_db(self) -> Path:
        return self.state_dir / LEDGER_SQLITE_FILENAME

    @property
    def dist_dir(self) -> Path:
        return self.root / DIST_DIRNAME

    def flow_files(self) -> list[Path]:
        """List workflow document files, sorted by name."""
        if not self.flows_dir.is_dir():
            return []
        return sorted(
            p
            for p in self.flows_dir.glob("*.json")
            if p.is_file() and p.name != "package.json"
        )

    def relative(self, path: Path) -> str:
        """Ledger key for a flow file (POSIX path relative to the root)."""
        return Path(path).resolve().relative_to(self.root.resolve()).as_posix()


class Settings(BaseSettings):
    """Runtime settings, read from environment variables."""

    model_config = SettingsConfigDict(extra="ignore", env_ignore_empty=True)

    root: Path = Field(default_factory=Path.cwd, validation_alias="FLOWSMITH_ROOT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    push_concurrency: int = Field(
        default=4, ge=1, validation_alias="FLOWSMITH_PUSH_CONCURRENCY"
    )
    push_timeout: float = Field(default=60.0, gt=0, validation_alias="FLOWSMITH_PUSH_TIMEOUT")
    artifact_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        validation_alias="FLOWSMITH_ARTIFACT_DIR",
    )
    ledger_backend: str = Field(default="json", validation_alias="FLOWSMITH_LEDGER_BACKEND")
    n8n_api_url: str = Field(default="http://localhost:5678", validation_alias="N8N_API_URL")
    n8n_api_key: str | None = Field(default=None, validation_alias="N8N_API_KEY")
    n8n_cli: str = Field(default="n8n", validation_alias="N8N_CLI")

    @property
    def layout(self) -> ProjectLayout:
        return ProjectLayout(root=self.root)
