"""Capability type tables.

A capability type is the namespaced string in a node's ``type`` field. Every
table here is keyed by the exact type string; nothing is inferred from
substrings of free text.
"""

import re
from enum import Enum


class CapabilityFamily(str, Enum):
    """Tag of the node parameter union."""

    SCRIPT = "script"
    PROMPT = "prompt"
    QUERY = "query"
    TEMPLATE = "template"
    PROVIDER = "provider"
    COMBINATOR = "combinator"
    TRIGGER = "trigger"
    ANNOTATION = "annotation"
    OPAQUE = "opaque"


BASE = "n8n-nodes-base."
LANGCHAIN = "@n8n/n8n-nodes-langchain."

# Namespaces a capability type may live in
ALLOWED_TYPE_PREFIXES: tuple[str, ...] = (
    BASE,
    LANGCHAIN,
    "n8n-nodes-",
    "@n8n/",
    "@n8n_io/",
)

SCRIPT_TYPES = frozenset({f"{BASE}code", f"{BASE}function", f"{BASE}functionItem"})

QUERY_TYPES = frozenset({f"{BASE}postgres", f"{BASE}mySql", f"{BASE}microsoftSql"})

TEMPLATE_TYPES = frozenset({f"{BASE}html", f"{BASE}emailSend"})

PROMPT_TYPES = frozenset(
    {
        f"{LANGCHAIN}chainLlm",
        f"{LANGCHAIN}agent",
        f"{LANGCHAIN}conversationalAgent",
    }
)

# Provider type → (provider name, parameter scope path)
PROVIDER_TYPES: dict[str, tuple[str, tuple[str, ...]]] = {
    f"{BASE}openAi": ("openai", ()),
    f"{LANGCHAIN}openAi": ("openai", ()),
    f"{LANGCHAIN}lmChatOpenAi": ("openai", ("options",)),
    f"{BASE}anthropic": ("anthropic", ()),
    f"{LANGCHAIN}anthropic": ("anthropic", ()),
    f"{LANGCHAIN}lmChatAnthropic": ("anthropic", ("options",)),
    f"{BASE}googleAi": ("google", ()),
    f"{LANGCHAIN}googleAi": ("google", ()),
    f"{LANGCHAIN}lmChatGoogleGemini": ("google", ("options",)),
    f"{BASE}cohere": ("cohere", ()),
    f"{LANGCHAIN}lmCohere": ("cohere", ("options",)),
    f"{BASE}replicate": ("replicate", ()),
}

# Provider nodes that carry an inline prompt
PROMPT_PROVIDER_TYPES = frozenset(
    {
        f"{BASE}openAi",
        f"{LANGCHAIN}openAi",
        f"{BASE}anthropic",
        f"{LANGCHAIN}anthropic",
        f"{BASE}googleAi",
        f"{LANGCHAIN}googleAi",
        f"{BASE}cohere",
        f"{BASE}replicate",
    }
)

COMBINATOR_TYPES = frozenset({f"{BASE}merge"})

ENTRY_TYPES = frozenset(
    {
        f"{BASE}start",
        f"{BASE}webhook",
        f"{BASE}cron",
        f"{BASE}interval",
        f"{BASE}formTrigger",
        f"{BASE}manualTrigger",
        f"{BASE}scheduleTrigger",
        f"{BASE}executeWorkflowTrigger",
        f"{BASE}errorTrigger",
        f"{LANGCHAIN}chatTrigger",
        f"{LANGCHAIN}mcpTrigger",
    }
)

ANNOTATION_TYPES = frozenset({f"{BASE}stickyNote"})

# Default typeVersion per capability type, used to backfill missing versions
DEFAULT_TYPE_VERSIONS: dict[str, int | float] = {
    f"{BASE}code": 2,
    f"{BASE}httpRequest": 4.2,
    f"{BASE}merge": 3,
    f"{BASE}if": 2,
    f"{BASE}switch": 3,
    f"{BASE}set": 3.4,
    f"{BASE}webhook": 2,
    f"{BASE}scheduleTrigger": 1.2,
    f"{BASE}postgres": 2.5,
    f"{BASE}mySql": 2.4,
    f"{BASE}html": 1.2,
    f"{BASE}emailSend": 2.1,
    f"{LANGCHAIN}agent": 1.7,
    f"{LANGCHAIN}chainLlm": 1.5,
    f"{LANGCHAIN}openAi": 1.8,
    f"{LANGCHAIN}lmChatOpenAi": 1.2,
    f"{LANGCHAIN}lmChatAnthropic": 1.3,
}
FALLBACK_TYPE_VERSION = 1

_KIND_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")


def capability_family(node_type: str) -> CapabilityFamily:
    """Classify a capability type into its family."""
    if node_type in SCRIPT_TYPES:
        return CapabilityFamily.SCRIPT
    if node_type in QUERY_TYPES:
        return CapabilityFamily.QUERY
    if node_type in TEMPLATE_TYPES:
        return CapabilityFamily.TEMPLATE
    if node_type in PROMPT_TYPES:
        return CapabilityFamily.PROMPT
    if node_type in PROVIDER_TYPES:
        return CapabilityFamily.PROVIDER
    if node_type in COMBINATOR_TYPES:
        return CapabilityFamily.COMBINATOR
    if node_type in ANNOTATION_TYPES:
        return CapabilityFamily.ANNOTATION
    if is_entry_type(node_type):
        return CapabilityFamily.TRIGGER
    return CapabilityFamily.OPAQUE


def type_kind(node_type: str) -> str:
    """The part of a capability type after the last dot."""
    return node_type.rsplit(".", 1)[-1] if "." in node_type else ""


def is_entry_type(node_type: str) -> bool:
    """Whether a node of this type may start an execution without inbound edges.

    Explicitly listed entry types, plus any kind named ``*Trigger`` inside an
    allowed namespace.
    """
    if node_type in ENTRY_TYPES:
        return True
    return has_allowed_prefix(node_type) and type_kind(node_type).endswith("Trigger")


def has_allowed_prefix(node_type: str, extra_prefixes: tuple[str, ...] = ()) -> bool:
    """Whether the type lives in an allowed namespace and names a kind."""
    if not any(node_type.startswith(p) for p in ALLOWED_TYPE_PREFIXES + extra_prefixes):
        return False
    return bool(_KIND_PATTERN.match(type_kind(node_type)))
