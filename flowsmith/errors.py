"""Exception taxonomy for the artifact pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowsmith.models.validation import ValidationReport


class FlowsmithError(Exception):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, document: str | None = None) -> None:
        super().__init__(message)
        self.document = document


class StructuralError(FlowsmithError):
    """Document is not well-formed. Blocks push."""

    def __init__(
        self,
        message: str,
        report: ValidationReport | None = None,
        document: str | None = None,
    ) -> None:
        super().__init__(message, document=document)
        self.report = report


class ParameterContractViolation(FlowsmithError):
    """Provider parameters break their contract. Blocks push unless auto-fixed."""

    def __init__(
        self,
        message: str,
        report: ValidationReport | None = None,
        document: str | None = None,
    ) -> None:
        super().__init__(message, document=document)
        self.report = report


class MissingExternalContent(FlowsmithError):
    """A content reference points at a file that cannot be read.

    Recoverable: compilation continues with an empty field.
    """

    def __init__(self, message: str, node: str, path: str, document: str | None = None) -> None:
        super().__init__(message, document=document)
        self.node = node
        self.path = path


class PushBoundaryFailure(FlowsmithError):
    """The push boundary rejected a compiled document."""

    def __init__(
        self,
        message: str,
        diagnostics: str = "",
        document: str | None = None,
        retriable: bool = False,
    ) -> None:
        super().__init__(message, document=document)
        self.diagnostics = diagnostics
        self.retriable = retriable


class LedgerCorruption(FlowsmithError):
    """The persisted ledger could not be read. Treated as an empty ledger."""

    pass
