"""Parameter contract validation for language-model provider nodes.

Each provider names and bounds its sampling parameters differently. A
contract lists, for one provider and parameter scope, the required fields
with their defaults, numeric ranges, deprecated model patterns, synonyms
that should be renamed and fields that belong to another provider.

Nodes from the base namespace keep parameters at the top level in the
provider's own API spelling. Chat model sub-nodes keep them under
``options`` in camelCase, so they get their own contracts.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from flowsmith.models.capability import PROVIDER_TYPES
from flowsmith.models.content import EXPRESSION_MARKER
from flowsmith.models.validation import FixResult, ValidationReport

logger = logging.getLogger(__name__)

TOP_LEVEL = ()
OPTIONS = ("options",)

# Parameters that may name the model, checked in order
MODEL_KEYS = ("model", "modelId", "modelName")


@dataclass(frozen=True)
class NumericRange:
    """Inclusive numeric bounds."""

    minimum: float | None = None
    maximum: float | None = None

    def contains(self, value: float) -> bool:
        if self.minimum is not None and value < self.minimum:
            return False
        if self.maximum is not None and value > self.maximum:
            return False
        return True

    def clamp(self, value: float) -> float:
        if self.minimum is not None and value < self.minimum:
            return self.minimum
        if self.maximum is not None and value > self.maximum:
            return self.maximum
        return value

    def describe(self) -> str:
        low = "-inf" if self.minimum is None else f"{self.minimum:g}"
        high = "inf" if self.maximum is None else f"{self.maximum:g}"
        return f"[{low}, {high}]"


@dataclass(frozen=True)
class DeprecatedModel:
    pattern: str
    replacement: str

    def matches(self, model: str) -> bool:
        return re.search(self.pattern, model, re.IGNORECASE) is not None


@dataclass(frozen=True)
class ParameterContract:
    """Parameter rules of one provider in one scope."""

    provider: str
    required: dict[str, Any] = field(default_factory=dict)
    ranges: dict[str, NumericRange] = field(default_factory=dict)
    deprecated_models: tuple[DeprecatedModel, ...] = ()
    synonyms: dict[str, str] = field(default_factory=dict)
    foreign: frozenset[str] = frozenset()


_OPENAI_DEPRECATED = (DeprecatedModel(r"davinci|curie|babbage|\bada\b", "gpt-3.5-turbo"),)
_ANTHROPIC_DEPRECATED = (
    DeprecatedModel(r"^claude-(instant|1|2)", "claude-3-5-sonnet-20241022"),
)
_GOOGLE_DEPRECATED = (DeprecatedModel(r"palm|bison|gecko", "gemini-1.5-pro"),)

_GOOGLE_RANGES = {
    "temperature": NumericRange(0, 1),
    "maxOutputTokens": NumericRange(1, 8192),
    "topP": NumericRange(0, 1),
    "topK": NumericRange(1, 40),
    "candidateCount": NumericRange(1, 1),
}
_GOOGLE_SYNONYMS = {
    "max_tokens": "maxOutputTokens",
    "maxTokens": "maxOutputTokens",
    "max_output_tokens": "maxOutputTokens",
    "top_p": "topP",
    "top_k": "topK",
}

CONTRACTS: dict[tuple[str, tuple[str, ...]], ParameterContract] = {
    ("openai", TOP_LEVEL): ParameterContract(
        provider="openai",
        ranges={
            "temperature": NumericRange(0, 2),
            "max_tokens": NumericRange(1, 128000),
            "top_p": NumericRange(0, 1),
            "frequency_penalty": NumericRange(-2, 2),
            "presence_penalty": NumericRange(-2, 2),
        },
        deprecated_models=_OPENAI_DEPRECATED,
        synonyms={
            "maxTokens": "max_tokens",
            "max_length": "max_tokens",
            "topP": "top_p",
            "frequencyPenalty": "frequency_penalty",
            "presencePenalty": "presence_penalty",
        },
        foreign=frozenset({"num_beams", "do_sample", "length_penalty", "top_k", "topK"}),
    ),
    ("openai", OPTIONS): ParameterContract(
        provider="openai",
        ranges={
            "temperature": NumericRange(0, 2),
            "maxTokens": NumericRange(-1, 128000),
            "topP": NumericRange(0, 1),
            "frequencyPenalty": NumericRange(-2, 2),
            "presencePenalty": NumericRange(-2, 2),
        },
        deprecated_models=_OPENAI_DEPRECATED,
        synonyms={
            "max_tokens": "maxTokens",
            "top_p": "topP",
            "frequency_penalty": "frequencyPenalty",
            "presence_penalty": "presencePenalty",
        },
        foreign=frozenset({"topK", "top_k"}),
    ),
    ("anthropic", TOP_LEVEL): ParameterContract(
        provider="anthropic",
        required={"max_tokens": 1024},
        ranges={
            "max_tokens": NumericRange(1, 64000),
            "temperature": NumericRange(0, 1),
            "top_p": NumericRange(0, 1),
            "top_k": NumericRange(0, None),
        },
        deprecated_models=_ANTHROPIC_DEPRECATED,
        synonyms={
            "maxTokens": "max_tokens",
            "max_tokens_to_sample": "max_tokens",
            "topP": "top_p",
            "topK": "top_k",
        },
        foreign=frozenset({"frequency_penalty", "presence_penalty", "logprobs", "best_of"}),
    ),
    ("anthropic", OPTIONS): ParameterContract(
        provider="anthropic",
        ranges={
            "maxTokensToSample": NumericRange(1, 64000),
            "temperature": NumericRange(0, 1),
            "topP": NumericRange(0, 1),
            "topK": NumericRange(-1, None),
        },
        deprecated_models=_ANTHROPIC_DEPRECATED,
        synonyms={
            "max_tokens": "maxTokensToSample",
            "maxTokens": "maxTokensToSample",
            "top_p": "topP",
            "top_k": "topK",
        },
        foreign=frozenset(
            {
                "frequencyPenalty",
                "presencePenalty",
                "frequency_penalty",
                "presence_penalty",
                "logprobs",
            }
        ),
    ),
    ("google", TOP_LEVEL): ParameterContract(
        provider="google",
        ranges=_GOOGLE_RANGES,
        deprecated_models=_GOOGLE_DEPRECATED,
        synonyms=_GOOGLE_SYNONYMS,
        foreign=frozenset({"frequency_penalty", "presence_penalty", "logprobs"}),
    ),
    ("google", OPTIONS): ParameterContract(
        provider="google",
        ranges=_GOOGLE_RANGES,
        deprecated_models=_GOOGLE_DEPRECATED,
        synonyms=_GOOGLE_SYNONYMS,
        foreign=frozenset({"frequencyPenalty", "presencePenalty"}),
    ),
    ("cohere", TOP_LEVEL): ParameterContract(
        provider="cohere",
        ranges={
            "temperature": NumericRange(0, 5),
            "max_tokens": NumericRange(1, 4000),
            "p": NumericRange(0, 1),
            "k": NumericRange(0, 500),
            "frequency_penalty": NumericRange(0, 1),
            "presence_penalty": NumericRange(0, 1),
        },
        synonyms={"top_p": "p", "topP": "p", "top_k": "k", "topK": "k", "maxTokens": "max_tokens"},
    ),
    ("cohere", OPTIONS): ParameterContract(
        provider="cohere",
        ranges={"temperature": NumericRange(0, 5), "maxTokens": NumericRange(1, 4000)},
        synonyms={"max_tokens": "maxTokens"},
    ),
    ("replicate", TOP_LEVEL): ParameterContract(
        provider="replicate",
        ranges={
            # strictly positive, 0.01 is the smallest accepted value
            "temperature": NumericRange(0.01, 5),
            "max_new_tokens": NumericRange(1, 32768),
            "top_p": NumericRange(0, 1),
            "top_k": NumericRange(0, None),
            "repetition_penalty": NumericRange(0, None),
        },
        synonyms={
            "max_tokens": "max_new_tokens",
            "maxTokens": "max_new_tokens",
            "topP": "top_p",
            "topK": "top_k",
        },
    ),
}


def contract_for(node_type: str) -> tuple[ParameterContract, tuple[str, ...]] | None:
    """Contract and parameter scope for a provider capability type."""
    mapping = PROVIDER_TYPES.get(node_type)
    if mapping is None:
        return None
    provider, scope = mapping
    contract = CONTRACTS.get((provider, scope))
    if contract is None:
        return None
    return contract, scope


def _is_expression(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EXPRESSION_MARKER)


def _as_number(value: Any) -> float | None:
    """Numeric value of a literal parameter, or None if it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _scope_params(
    parameters: dict[str, Any], scope: tuple[str, ...], create: bool = False
) -> dict[str, Any] | None:
    current = parameters
    for key in scope:
        child = current.get(key)
        if not isinstance(child, dict):
            if not create:
                return None
            child = {}
            current[key] = child
        current = child
    return current


def _model_entry(parameters: dict[str, Any]) -> tuple[str, str | None]:
    """Parameter key holding the model and its name, for plain or resource-locator values."""
    for key in MODEL_KEYS:
        value = parameters.get(key)
        if isinstance(value, dict):
            value = value.get("value")
        if isinstance(value, str) and value:
            return key, value
    return MODEL_KEYS[0], None


class ContractValidator:
    """Validates and auto-fixes provider parameters."""

    def validate_node(self, node: dict[str, Any], report: ValidationReport) -> None:
        found = contract_for(node.get("type", ""))
        parameters = node.get("parameters")
        if found is None or not isinstance(parameters, dict):
            return
        contract, scope = found
        name = node.get("name", "")
        prefix = "".join(f"{key}." for key in scope)
        scoped = _scope_params(parameters, scope) or {}

        for key in contract.required:
            if key not in scoped:
                report.error(
                    "contract_missing_required",
                    f"{key} is required for {contract.provider}",
                    node_name=name,
                    field=f"{prefix}{key}",
                    fix=f"Add {key} (e.g. {contract.required[key]})",
                )

        for key, bounds in contract.ranges.items():
            if key not in scoped or _is_expression(scoped[key]):
                continue
            number = _as_number(scoped[key])
            if number is None:
                report.error(
                    "contract_not_numeric",
                    f"{key} must be a number, got {scoped[key]!r}",
                    node_name=name,
                    field=f"{prefix}{key}",
                )
            elif not bounds.contains(number):
                report.error(
                    "contract_out_of_range",
                    f"Invalid {key}: {scoped[key]}. Must be in {bounds.describe()} "
                    f"for {contract.provider}",
                    node_name=name,
                    field=f"{prefix}{key}",
                    fix=f"Set {key} to {bounds.clamp(number):g}",
                )

        model_key, model = _model_entry(parameters)
        if model and not _is_expression(model):
            for deprecated in contract.deprecated_models:
                if deprecated.matches(model):
                    report.error(
                        "contract_deprecated_model",
                        f"Model {model} is deprecated",
                        node_name=name,
                        field=model_key,
                        fix=f"Use {deprecated.replacement} instead",
                    )
                    break

        for key, canonical in contract.synonyms.items():
            if key in scoped:
                report.error(
                    "contract_wrong_name",
                    f"{contract.provider} uses {canonical}, not {key}",
                    node_name=name,
                    field=f"{prefix}{key}",
                    fix=f"Rename {key} to {canonical}",
                )

        for key in sorted(contract.foreign):
            if key in scoped:
                report.error(
                    "contract_foreign_field",
                    f"Parameter {key} is not valid for {contract.provider}",
                    node_name=name,
                    field=f"{prefix}{key}",
                    fix=f"Remove {key}",
                )

    def validate(self, data: dict[str, Any]) -> ValidationReport:
        """Check every provider node of a document."""
        report = ValidationReport()
        nodes = data.get("nodes") if isinstance(data, dict) else None
        for node in nodes if isinstance(nodes, list) else []:
            if isinstance(node, dict):
                self.validate_node(node, report)
        return report

    def fix_node(self, node: dict[str, Any]) -> list[str]:
        """Apply contract fixes to one node in place."""
        found = contract_for(node.get("type", ""))
        parameters = node.get("parameters")
        if found is None or not isinstance(parameters, dict):
            return []
        contract, scope = found
        name = node.get("name", "")
        changes: list[str] = []

        scoped = _scope_params(parameters, scope, create=bool(contract.required))
        if scoped is None:
            scoped = {}

        for key, canonical in contract.synonyms.items():
            if key in scoped and canonical not in scoped:
                scoped[canonical] = scoped.pop(key)
                changes.append(f"Fixed \"{name}\": Renamed {key} to {canonical}")

        for key, default in contract.required.items():
            if key not in scoped:
                scoped[key] = default
                changes.append(f"Fixed \"{name}\": Added {key}={default}")

        for key, bounds in contract.ranges.items():
            if key not in scoped or _is_expression(scoped[key]):
                continue
            number = _as_number(scoped[key])
            if number is None or bounds.contains(number):
                continue
            clamped = bounds.clamp(number)
            if isinstance(scoped[key], int) and float(clamped).is_integer():
                clamped = int(clamped)
            scoped[key] = clamped
            changes.append(f"Fixed \"{name}\": Clamped {key} from {number:g} to {clamped:g}")

        model_key, model = _model_entry(parameters)
        if model and not _is_expression(model):
            for deprecated in contract.deprecated_models:
                if deprecated.matches(model):
                    if isinstance(parameters.get(model_key), dict):
                        parameters[model_key]["value"] = deprecated.replacement
                    else:
                        parameters[model_key] = deprecated.replacement
                    changes.append(
                        f"Fixed \"{name}\": Replaced deprecated model {model} "
                        f"with {deprecated.replacement}"
                    )
                    break

        for key in sorted(contract.foreign):
            if key in scoped:
                del scoped[key]
                changes.append(f"Fixed \"{name}\": Removed {key}")

        return changes

    def auto_fix(self, data: dict[str, Any]) -> FixResult:
        """Fix every provider node in place, then re-validate.

        Violations that cannot be fixed deterministically (a synonym next to
        its canonical name, non-numeric literals) remain in the report.
        """
        changes: list[str] = []
        nodes = data.get("nodes") if isinstance(data, dict) else None
        for node in nodes if isinstance(nodes, list) else []:
            if isinstance(node, dict):
                changes.extend(self.fix_node(node))
        for change in changes:
            logger.info(change)
        return FixResult(changes=changes, report=self.validate(data))
