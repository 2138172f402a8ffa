"""Pydantic models for externalized node content."""

from enum import Enum

from pydantic import BaseModel
from pydantic import Field as PydanticField

# Parameter key holding a node's content reference
CONTENT_REF_KEY = "_contentRef"

# Leading character marking an engine expression
EXPRESSION_MARKER = "="


class ContentType(str, Enum):
    """Kinds of content that can be moved out of a node."""

    SCRIPT = "script"
    PROMPT = "prompt"
    QUERY = "query"
    TEMPLATE = "template"


class ContentShape(str, Enum):
    """Structural shape of the parameter holding the content."""

    SCALAR = "scalar"
    TEMPLATED_TEXT = "templated_text"
    MESSAGE_LIST = "message_list"


class ContentReference(BaseModel):
    """Pointer from a node parameter map to an externalized file."""

    content_type: ContentType = PydanticField(alias="contentType")
    subtype: str
    path: str
    fingerprint: str
    field: str
    expression: bool = False

    model_config = {"populate_by_name": True}

    def to_parameter(self) -> dict[str, object]:
        """Serialized form stored under CONTENT_REF_KEY."""
        return self.model_dump(by_alias=True, mode="json")


class ExtractionRecord(BaseModel):
    """Provenance of one externalized node, kept in the metadata ledger."""

    node: str
    content_type: ContentType = PydanticField(alias="contentType")
    subtype: str
    path: str
    fingerprint: str
    extracted_at: str = PydanticField(alias="extractedAt")

    model_config = {"populate_by_name": True}
