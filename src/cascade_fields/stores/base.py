"""Collaborator interfaces consumed by the engine.

The engine never talks to the host platform directly. Record access and
schema metadata are reached through the two abstract stores defined here,
injected into ``CascadeEngine``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from cascade_fields.core.context import EntityReference, Record


class FieldType(str, Enum):
    """Declared types of record fields."""

    STRING = "string"
    MEMO = "memo"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    DOUBLE = "double"
    MONEY = "money"
    PICKLIST = "picklist"
    STATE = "state"
    STATUS = "status"
    LOOKUP = "lookup"
    CUSTOMER = "customer"
    OWNER = "owner"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    UNIQUEIDENTIFIER = "uniqueidentifier"
    MULTISELECT_PICKLIST = "multiselectpicklist"
    IMAGE = "image"
    FILE = "file"
    VIRTUAL = "virtual"

    @classmethod
    def parse(cls, value: str) -> Optional["FieldType"]:
        """Resolve a type name case-insensitively, or None if unknown."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class FieldMetadata:
    """Declared shape of one field.

    Attributes:
        entity_name: Record type owning the field.
        name: Field logical name.
        field_type: Declared type, or None if the host reported a type the
            engine does not know.
        writable: Whether the field accepts updates (False for calculated,
            read-only, or system-managed fields).
        targets: Record types a reference field may point to.
        max_length: Maximum length of text fields.
    """

    entity_name: str
    name: str
    field_type: Optional[FieldType]
    writable: bool = True
    targets: Tuple[str, ...] = ()
    max_length: Optional[int] = None

    def can_reference(self, entity_name: str) -> bool:
        return entity_name.lower() in (t.lower() for t in self.targets)


@dataclass(frozen=True)
class RelationshipMetadata:
    """A one-to-many relationship between two record types.

    Attributes:
        name: Relationship schema name.
        referenced_entity: The "one" side (parent).
        referencing_entity: The "many" side (child).
        referencing_attribute: Field on the child holding the parent link.
    """

    name: str
    referenced_entity: str
    referencing_entity: str
    referencing_attribute: str


class RecordStore(ABC):
    """Record query and update capability of the host platform."""

    @abstractmethod
    def retrieve(self, entity_name: str, record_id: UUID, columns: Sequence[str]) -> Record:
        """Read current field values of one record.

        Raises:
            RecordNotFoundError: If the record does not exist or is not accessible.
            RecordStoreError: On any other failure.
        """
        pass

    @abstractmethod
    def query_by_field(
        self,
        entity_name: str,
        field: str,
        value: UUID,
        conditions: Sequence = (),
        columns: Sequence[str] = (),
    ) -> List[Record]:
        """Records of ``entity_name`` whose ``field`` references ``value``.

        Args:
            entity_name: Record type to query.
            field: Reference field to match.
            value: Identifier the field must reference.
            conditions: Additional filter conditions, all of which must hold.
            columns: Fields to return on each record.
        """
        pass

    @abstractmethod
    def query_by_relationship(
        self,
        relationship_name: str,
        parent: EntityReference,
        conditions: Sequence = (),
        columns: Sequence[str] = (),
    ) -> List[Record]:
        """Records linked to ``parent`` through a one-to-many relationship."""
        pass

    @abstractmethod
    def update(self, record: Record) -> None:
        """Apply a partial update. Only the attributes carried by ``record`` change.

        Raises:
            RecordStoreError: If the update is rejected.
        """
        pass


class MetadataStore(ABC):
    """Schema metadata capability of the host platform."""

    @abstractmethod
    def get_field(self, entity_name: str, field_name: str) -> Optional[FieldMetadata]:
        """Metadata for one field, or None if the field does not exist.

        Raises:
            MetadataStoreError: If metadata cannot be read.
        """
        pass

    @abstractmethod
    def get_relationship(self, name: str) -> Optional[RelationshipMetadata]:
        """Metadata for a relationship, or None if it does not exist."""
        pass

    def entity_exists(self, entity_name: str) -> bool:
        """Whether the record type exists. Stores that cannot tell return True."""
        return True
