"""Pydantic models for flowsmith."""

from flowsmith.models.capability import CapabilityFamily, capability_family
from flowsmith.models.content import (
    CONTENT_REF_KEY,
    ContentReference,
    ContentShape,
    ContentType,
    ExtractionRecord,
)
from flowsmith.models.ledger import (
    ChangeRecord,
    DeploymentStatus,
    FlowStatus,
    LedgerState,
    LedgerSummary,
)
from flowsmith.models.push import (
    BatchPushReport,
    PushOutcome,
    PushRequest,
    PushResult,
    PushStage,
)
from flowsmith.models.validation import (
    FixResult,
    Severity,
    ValidationIssue,
    ValidationReport,
)
from flowsmith.models.workflow import ConnectionEdge, NodeRecord, WorkflowDocument

__all__ = [
    # Documents
    "WorkflowDocument",
    "NodeRecord",
    "ConnectionEdge",
    "CapabilityFamily",
    "capability_family",
    # Content
    "CONTENT_REF_KEY",
    "ContentReference",
    "ContentShape",
    "ContentType",
    "ExtractionRecord",
    # Ledger
    "ChangeRecord",
    "DeploymentStatus",
    "FlowStatus",
    "LedgerState",
    "LedgerSummary",
    # Validation
    "FixResult",
    "Severity",
    "ValidationIssue",
    "ValidationReport",
    # Push
    "BatchPushReport",
    "PushOutcome",
    "PushRequest",
    "PushResult",
    "PushStage",
]
