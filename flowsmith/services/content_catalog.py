"""Classification table for externalizable node content.

Maps each capability type that carries authored content to the content type,
the target subdirectory under the content root and the candidate parameter
fields, in priority order. Field paths are dotted (``options.systemMessage``).
"""

from dataclasses import dataclass, field
from typing import Any

from flowsmith.models.capability import (
    BASE,
    LANGCHAIN,
    PROMPT_PROVIDER_TYPES,
    PROVIDER_TYPES,
    type_kind,
)
from flowsmith.models.content import EXPRESSION_MARKER, ContentShape, ContentType

# Target subdirectory per content type
SUBDIRECTORIES: dict[ContentType, str] = {
    ContentType.SCRIPT: "scripts",
    ContentType.PROMPT: "prompts",
    ContentType.QUERY: "queries",
    ContentType.TEMPLATE: "templates",
}

DEFAULT_ROLE = "user"


@dataclass(frozen=True)
class ContentField:
    """A parameter field that may hold externalizable content."""

    path: str
    shape: ContentShape
    extension: str
    subtype: str
    # Key holding the text inside each message_list entry
    item_key: str = "content"


@dataclass(frozen=True)
class ContentRule:
    """How content of one capability type is externalized."""

    content_type: ContentType
    fields: tuple[ContentField, ...]
    header_keys: tuple[str, ...] = field(default=())

    @property
    def subdir(self) -> str:
        return SUBDIRECTORIES[self.content_type]


def _script_rule() -> ContentRule:
    return ContentRule(
        ContentType.SCRIPT,
        (
            ContentField("jsCode", ContentShape.SCALAR, "js", "javascript"),
            ContentField("pythonCode", ContentShape.SCALAR, "py", "python"),
            ContentField("functionCode", ContentShape.SCALAR, "js", "javascript"),
        ),
    )


def _query_rule(subtype: str) -> ContentRule:
    return ContentRule(
        ContentType.QUERY,
        (ContentField("query", ContentShape.SCALAR, "sql", subtype),),
        header_keys=("operation",),
    )


_PROMPT_HEADER_KEYS = ("model", "temperature")

_CHAIN_RULE = ContentRule(
    ContentType.PROMPT,
    (
        ContentField("text", ContentShape.TEMPLATED_TEXT, "md", "chain"),
        ContentField(
            "messages.messageValues",
            ContentShape.MESSAGE_LIST,
            "md",
            "chain_messages",
            item_key="message",
        ),
    ),
    header_keys=_PROMPT_HEADER_KEYS,
)

_AGENT_RULE = ContentRule(
    ContentType.PROMPT,
    (
        ContentField("text", ContentShape.TEMPLATED_TEXT, "md", "agent"),
        ContentField("options.systemMessage", ContentShape.TEMPLATED_TEXT, "md", "system"),
    ),
    header_keys=_PROMPT_HEADER_KEYS,
)


def _provider_prompt_rule(provider: str) -> ContentRule:
    return ContentRule(
        ContentType.PROMPT,
        (
            ContentField("messages.values", ContentShape.MESSAGE_LIST, "md", f"{provider}_chat"),
            ContentField("prompt.messages", ContentShape.MESSAGE_LIST, "md", f"{provider}_chat"),
            ContentField("messages", ContentShape.MESSAGE_LIST, "md", f"{provider}_chat"),
            ContentField("prompt", ContentShape.TEMPLATED_TEXT, "md", provider),
            ContentField("text", ContentShape.TEMPLATED_TEXT, "md", provider),
        ),
        header_keys=_PROMPT_HEADER_KEYS,
    )


_TEMPLATE_RULE = ContentRule(
    ContentType.TEMPLATE,
    (
        ContentField("html", ContentShape.TEMPLATED_TEXT, "html", "html"),
        ContentField("text", ContentShape.TEMPLATED_TEXT, "txt", "text"),
    ),
)

CONTENT_RULES: dict[str, ContentRule] = {
    f"{BASE}code": _script_rule(),
    f"{BASE}function": _script_rule(),
    f"{BASE}functionItem": _script_rule(),
    f"{BASE}postgres": _query_rule("postgres"),
    f"{BASE}mySql": _query_rule("mysql"),
    f"{BASE}microsoftSql": _query_rule("mssql"),
    f"{BASE}html": ContentRule(
        ContentType.TEMPLATE,
        (ContentField("html", ContentShape.TEMPLATED_TEXT, "html", "html"),),
    ),
    f"{BASE}emailSend": _TEMPLATE_RULE,
    f"{LANGCHAIN}chainLlm": _CHAIN_RULE,
    f"{LANGCHAIN}agent": _AGENT_RULE,
    f"{LANGCHAIN}conversationalAgent": _AGENT_RULE,
}
for _provider_type in PROMPT_PROVIDER_TYPES:
    CONTENT_RULES[_provider_type] = _provider_prompt_rule(PROVIDER_TYPES[_provider_type][0])


def rule_for(node_type: str) -> ContentRule | None:
    return CONTENT_RULES.get(node_type)


def field_for(rule: ContentRule, path: str) -> ContentField | None:
    for candidate in rule.fields:
        if candidate.path == path:
            return candidate
    return None


def get_path(parameters: dict[str, Any], path: str) -> Any:
    """Read a dotted path from a parameter map, None if any step is missing."""
    current: Any = parameters
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def set_path(parameters: dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted path, creating intermediate maps."""
    keys = path.split(".")
    current = parameters
    for key in keys[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value


def empty_value(shape: ContentShape) -> Any:
    """Value left in a field after its content has been moved out."""
    return [] if shape == ContentShape.MESSAGE_LIST else ""


def holds_content(content_field: ContentField, value: Any) -> bool:
    if content_field.shape == ContentShape.MESSAGE_LIST:
        return isinstance(value, list) and any(
            isinstance(entry, dict)
            and isinstance(entry.get(content_field.item_key), str)
            and entry[content_field.item_key].strip()
            for entry in value
        )
    if not isinstance(value, str):
        return False
    if content_field.shape == ContentShape.TEMPLATED_TEXT and value.startswith(EXPRESSION_MARKER):
        value = value[len(EXPRESSION_MARKER) :]
    return bool(value.strip())


def select_field(rule: ContentRule, parameters: dict[str, Any]) -> tuple[ContentField, Any] | None:
    """First candidate field that holds content, with its raw value."""
    for candidate in rule.fields:
        value = get_path(parameters, candidate.path)
        if holds_content(candidate, value):
            return candidate, value
    return None


def to_file_text(content_field: ContentField, value: Any) -> tuple[str, bool]:
    """Render a field value as file text.

    Returns:
        The text and whether a leading expression marker was removed.
    """
    if content_field.shape == ContentShape.SCALAR:
        return value, False
    if content_field.shape == ContentShape.TEMPLATED_TEXT:
        if value.startswith(EXPRESSION_MARKER):
            return value[len(EXPRESSION_MARKER) :], True
        return value, False

    key = content_field.item_key
    entries = [e for e in value if isinstance(e, dict) and isinstance(e.get(key), str)]
    if key == "content":
        text = "\n\n".join(f"### {e.get('role') or DEFAULT_ROLE}\n{e[key]}" for e in entries)
    else:
        text = "\n\n".join(e[key] for e in entries)
    expression = text.startswith(EXPRESSION_MARKER)
    if expression:
        text = text[len(EXPRESSION_MARKER) :]
    return text, expression


def from_file_text(content_field: ContentField, text: str, expression: bool) -> Any:
    """Re-embed file text into the shape the node parameter expects."""
    if content_field.shape == ContentShape.SCALAR:
        return text
    if expression:
        text = f"{EXPRESSION_MARKER}{text}"
    if content_field.shape == ContentShape.TEMPLATED_TEXT:
        return text
    if content_field.item_key == "content":
        return [{"role": DEFAULT_ROLE, "content": text}]
    return [{content_field.item_key: text}]


def header_values(rule: ContentRule, node_type: str, parameters: dict[str, Any]) -> dict[str, str]:
    """Extra provenance header values for a node."""
    values: dict[str, str] = {}
    for key in rule.header_keys:
        raw = parameters.get(key)
        if raw is None and isinstance(parameters.get("options"), dict):
            raw = parameters["options"].get(key)
        if isinstance(raw, dict):
            raw = raw.get("value")
        values[key] = "default" if raw is None or raw == "" else str(raw)
    if rule.content_type == ContentType.PROMPT and node_type in PROVIDER_TYPES:
        values["provider"] = PROVIDER_TYPES[node_type][0]
    values["type"] = type_kind(node_type) or node_type
    return values
