"""Pydantic models for validation reports."""

from enum import Enum

from pydantic import BaseModel

from flowsmith.errors import ParameterContractViolation, StructuralError


class Severity(str, Enum):
    """Issue severity. Errors block a push, warnings do not."""

    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    """A single finding against a document or node."""

    severity: Severity
    code: str
    message: str
    node_name: str | None = None
    node_id: str | None = None
    field: str | None = None
    fix: str | None = None

    def format(self) -> str:
        """Format as a one-line message with an optional fix hint."""
        where = f"[{self.node_name}] " if self.node_name else ""
        line = f"{self.severity.value.upper()} {self.code}: {where}{self.message}"
        if self.fix:
            line += f" -> Fix: {self.fix}"
        return line


class ValidationReport(BaseModel):
    """Collected validation issues."""

    issues: list[ValidationIssue] = []

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def valid(self) -> bool:
        return not self.errors

    def add(
        self,
        severity: Severity,
        code: str,
        message: str,
        node_name: str | None = None,
        node_id: str | None = None,
        field: str | None = None,
        fix: str | None = None,
    ) -> None:
        self.issues.append(
            ValidationIssue(
                severity=severity,
                code=code,
                message=message,
                node_name=node_name,
                node_id=node_id,
                field=field,
                fix=fix,
            )
        )

    def error(self, code: str, message: str, **kwargs: str | None) -> None:
        self.add(Severity.ERROR, code, message, **kwargs)

    def warning(self, code: str, message: str, **kwargs: str | None) -> None:
        self.add(Severity.WARNING, code, message, **kwargs)

    def extend(self, other: "ValidationReport") -> None:
        self.issues.extend(other.issues)

    def codes(self) -> list[str]:
        return [i.code for i in self.issues]

    def raise_for_structure(self, document: str | None = None) -> None:
        """Raise StructuralError if the report holds errors."""
        if self.errors:
            raise StructuralError(
                f"{len(self.errors)} structural error(s): {self.errors[0].format()}",
                report=self,
                document=document,
            )

    def raise_for_contract(self, document: str | None = None) -> None:
        """Raise ParameterContractViolation if the report holds errors."""
        if self.errors:
            raise ParameterContractViolation(
                f"{len(self.errors)} parameter contract violation(s): {self.errors[0].format()}",
                report=self,
                document=document,
            )


class FixResult(BaseModel):
    """Outcome of an auto-fix pass followed by re-validation."""

    changes: list[str] = []
    report: ValidationReport

    @property
    def fixed(self) -> bool:
        return bool(self.changes)
