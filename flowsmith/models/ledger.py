"""Pydantic models for the change ledger."""

from enum import Enum

from pydantic import BaseModel
from pydantic import Field as PydanticField


class DeploymentStatus(str, Enum):
    """Deployment state of a flow file relative to its last push."""

    DEPLOYED = "deployed"
    PENDING = "pending"  # never deployed, or explicitly marked edited
    MODIFIED = "modified"  # recorded by a push whose file changed mid-flight, until next scan


class ChangeRecord(BaseModel):
    """Fingerprint and deployment state of one flow file."""

    path: str
    fingerprint: str
    last_modified: str = PydanticField(alias="lastModified")
    deployed: bool = False
    deployed_at: str | None = PydanticField(default=None, alias="deployedAt")
    deployed_fingerprint: str | None = PydanticField(default=None, alias="deployedFingerprint")

    model_config = {"populate_by_name": True}

    @property
    def is_dirty(self) -> bool:
        return not self.deployed or self.fingerprint != self.deployed_fingerprint

    @property
    def status(self) -> DeploymentStatus:
        if not self.deployed:
            return DeploymentStatus.PENDING
        if self.fingerprint != self.deployed_fingerprint:
            return DeploymentStatus.MODIFIED
        return DeploymentStatus.DEPLOYED


class LedgerState(BaseModel):
    """All change records, keyed by flow path."""

    workflows: dict[str, ChangeRecord] = PydanticField(default_factory=dict)
    last_check: str | None = PydanticField(default=None, alias="lastCheck")

    model_config = {"populate_by_name": True}


class FlowStatus(BaseModel):
    """Status line for one flow."""

    name: str
    path: str
    status: DeploymentStatus
    last_modified: str
    deployed_at: str | None = None


class LedgerSummary(BaseModel):
    """Deployment status across all flows."""

    total: int
    deployed: int
    pending: int
    workflows: list[FlowStatus]
