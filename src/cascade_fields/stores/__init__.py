"""Record and metadata store interfaces with in-memory implementations."""

from cascade_fields.stores.base import (
    FieldMetadata,
    FieldType,
    MetadataStore,
    RecordStore,
    RelationshipMetadata,
)
from cascade_fields.stores.memory import InMemoryMetadataStore, InMemoryRecordStore

__all__ = [
    "FieldType",
    "FieldMetadata",
    "RelationshipMetadata",
    "RecordStore",
    "MetadataStore",
    "InMemoryRecordStore",
    "InMemoryMetadataStore",
]
