"""Storage module for flow documents, content files and metadata."""

from flowsmith.storage.document_store import LoadedDocument, load_document, save_document
from flowsmith.storage.metadata_store import MetadataStore

__all__ = ["LoadedDocument", "MetadataStore", "load_document", "save_document"]
