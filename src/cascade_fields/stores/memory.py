"""In-memory reference implementations of the record and metadata stores.

Both stores record every call in ``calls`` so that hosts and tests can
inspect the traffic an invocation produced. The record store supports
failure injection per record identifier.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from cascade_fields.core.context import EntityReference, Record
from cascade_fields.core.errors import RecordNotFoundError, RecordStoreError
from cascade_fields.evaluation.filters import FilterEvaluator, normalize_value
from cascade_fields.stores.base import FieldMetadata, FieldType, MetadataStore, RecordStore, RelationshipMetadata

logger = logging.getLogger(__name__)


class InMemoryMetadataStore(MetadataStore):
    """Metadata store backed by dictionaries.

    Examples:
        >>> metadata = InMemoryMetadataStore()
        >>> metadata.add_field("account", "name", FieldType.STRING, max_length=160)
        >>> metadata.get_field("account", "name").max_length
        160
    """

    def __init__(self):
        self._fields: Dict[Tuple[str, str], FieldMetadata] = {}
        self._relationships: Dict[str, RelationshipMetadata] = {}
        self._entities: set = set()
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []

    def add_field(
        self,
        entity_name: str,
        name: str,
        field_type: FieldType,
        writable: bool = True,
        targets: Iterable[str] = (),
        max_length: Optional[int] = None,
    ) -> FieldMetadata:
        """Register a field and return its metadata."""
        meta = FieldMetadata(entity_name, name, field_type, writable, tuple(targets), max_length)
        self._fields[(entity_name.lower(), name.lower())] = meta
        self._entities.add(entity_name.lower())
        return meta

    def add_relationship(
        self, name: str, referenced_entity: str, referencing_entity: str, referencing_attribute: str
    ) -> RelationshipMetadata:
        """Register a one-to-many relationship and return its metadata."""
        meta = RelationshipMetadata(name, referenced_entity, referencing_entity, referencing_attribute)
        self._relationships[name.lower()] = meta
        return meta

    def get_field(self, entity_name: str, field_name: str) -> Optional[FieldMetadata]:
        self.calls.append(("get_field", (entity_name, field_name)))
        return self._fields.get((entity_name.lower(), field_name.lower()))

    def get_relationship(self, name: str) -> Optional[RelationshipMetadata]:
        self.calls.append(("get_relationship", (name,)))
        return self._relationships.get(name.lower())

    def entity_exists(self, entity_name: str) -> bool:
        self.calls.append(("entity_exists", (entity_name,)))
        return entity_name.lower() in self._entities


class InMemoryRecordStore(RecordStore):
    """Record store backed by a dictionary of records.

    Attributes:
        calls: Every store call as (method, arguments), in call order.
        updates: Records passed to ``update``, in call order, including
            rejected ones.
    """

    def __init__(self, metadata: Optional[InMemoryMetadataStore] = None):
        """Initialize the store.

        Args:
            metadata: Metadata store consulted by ``query_by_relationship``
                to find the referencing attribute of a relationship.
        """
        self.metadata = metadata
        self._records: Dict[Tuple[str, UUID], Record] = {}
        self._failures: Dict[UUID, str] = {}
        self._evaluator = FilterEvaluator()
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.updates: List[Record] = []

    def add(self, record: Record) -> Record:
        """Insert or replace a record."""
        if record.id is None:
            raise RecordStoreError("records in the store need an identifier")
        self._records[(record.entity_name.lower(), record.id)] = record
        return record

    def get(self, entity_name: str, record_id: UUID) -> Optional[Record]:
        """Stored record, bypassing call recording."""
        return self._records.get((entity_name.lower(), record_id))

    def fail_updates(self, record_id: UUID, message: str = "update rejected") -> None:
        """Make every update of ``record_id`` raise ``RecordStoreError``."""
        self._failures[record_id] = message

    def reset_calls(self) -> None:
        self.calls.clear()
        self.updates.clear()

    def call_count(self, method: Optional[str] = None) -> int:
        return sum(1 for name, _ in self.calls if method is None or name == method)

    def retrieve(self, entity_name: str, record_id: UUID, columns: Sequence[str]) -> Record:
        self.calls.append(("retrieve", (entity_name, record_id, tuple(columns))))
        record = self.get(entity_name, record_id)
        if record is None:
            raise RecordNotFoundError(entity_name, record_id)
        return self._project(record, columns)

    def query_by_field(
        self,
        entity_name: str,
        field: str,
        value: UUID,
        conditions: Sequence = (),
        columns: Sequence[str] = (),
    ) -> List[Record]:
        self.calls.append(("query_by_field", (entity_name, field, value, tuple(conditions), tuple(columns))))
        return self._select(entity_name, field, value, conditions, columns)

    def query_by_relationship(
        self,
        relationship_name: str,
        parent: EntityReference,
        conditions: Sequence = (),
        columns: Sequence[str] = (),
    ) -> List[Record]:
        self.calls.append(("query_by_relationship", (relationship_name, parent, tuple(conditions), tuple(columns))))
        relationship = self.metadata.get_relationship(relationship_name) if self.metadata else None
        if relationship is None:
            raise RecordStoreError(f"relationship '{relationship_name}' is not known to the store")
        return self._select(
            relationship.referencing_entity, relationship.referencing_attribute, parent.id, conditions, columns
        )

    def update(self, record: Record) -> None:
        self.calls.append(("update", (record.entity_name, record.id, dict(record.attributes))))
        self.updates.append(record)
        if record.id in self._failures:
            raise RecordStoreError(f"{record.entity_name} {record.id}: {self._failures[record.id]}")
        stored = self.get(record.entity_name, record.id)
        if stored is None:
            raise RecordNotFoundError(record.entity_name, record.id)
        stored.attributes.update(record.attributes)
        logger.debug(f"Updated {record.entity_name} {record.id}: {sorted(record.attributes)}")

    def _select(
        self, entity_name: str, field: str, value: UUID, conditions: Sequence, columns: Sequence[str]
    ) -> List[Record]:
        matches = []
        for (stored_entity, _), record in self._records.items():
            if stored_entity != entity_name.lower():
                continue
            if normalize_value(record.get(field)) != value:
                continue
            if not self._evaluator.matches(conditions, record):
                continue
            matches.append(self._project(record, columns))
        return matches

    @staticmethod
    def _project(record: Record, columns: Sequence[str]) -> Record:
        if not columns:
            return Record(record.entity_name, record.id, record.attributes, record.formatted_values)
        return record.project(columns)
