"""Execution context and record values for cascade-fields.

This module provides the values the host platform hands to the engine for
one lifecycle event: the record being saved, its prior-state snapshot, and
the pipeline coordinates (message, stage, depth) of the invocation.

Attribute values are plain Python values plus a few typed wrappers:
- ``EntityReference`` for record links (lookup, customer, owner fields)
- ``OptionSetValue`` for choice fields (option set, state, status reason)
- ``Money`` for currency fields
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, Optional, Union
from uuid import UUID


@dataclass(frozen=True)
class EntityReference:
    """Reference to a record of a given record type.

    Attributes:
        entity_name: Logical name of the referenced record type.
        id: Identifier of the referenced record.
        name: Optional display name of the referenced record.
    """

    entity_name: str
    id: UUID
    name: Optional[str] = None

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, EntityReference):
            return NotImplemented
        return self.id == other.id and self.entity_name.lower() == other.entity_name.lower()

    def __hash__(self) -> int:
        return hash((self.entity_name.lower(), self.id))


@dataclass(frozen=True)
class OptionSetValue:
    """Integer code of a choice field."""

    value: int


@dataclass(frozen=True)
class Money:
    """Currency amount."""

    value: Decimal

    def __post_init__(self):
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", Decimal(str(self.value)))


class Message(str, Enum):
    """Lifecycle messages the engine reacts to."""

    CREATE = "Create"
    UPDATE = "Update"

    @classmethod
    def parse(cls, value: Union[str, "Message"]) -> Optional["Message"]:
        """Resolve a message name case-insensitively, or None if unsupported."""
        if isinstance(value, Message):
            return value
        for member in cls:
            if member.value.lower() == str(value).lower():
                return member
        return None


class Stage(IntEnum):
    """Pipeline stages of the host platform."""

    PRE_VALIDATION = 10
    PRE_OPERATION = 20
    POST_OPERATION = 40


class Record:
    """A record of some record type with a subset of its attribute values.

    Uses __slots__ for memory efficiency.

    Attributes:
        entity_name: Logical name of the record type.
        id: Record identifier, None for a record that is not yet created.
        attributes: Attribute values keyed by field name.
        formatted_values: Display strings for attributes, when the host has them.
    """

    __slots__ = ("entity_name", "id", "attributes", "formatted_values")

    def __init__(
        self,
        entity_name: str,
        id: Optional[UUID] = None,
        attributes: Optional[Dict[str, Any]] = None,
        formatted_values: Optional[Dict[str, str]] = None,
    ):
        self.entity_name = entity_name
        self.id = id
        self.attributes = dict(attributes or {})
        self.formatted_values = dict(formatted_values or {})

    def __contains__(self, field: str) -> bool:
        return field in self.attributes

    def __getitem__(self, field: str) -> Any:
        return self.attributes[field]

    def __setitem__(self, field: str, value: Any) -> None:
        self.attributes[field] = value

    def get(self, field: str, default: Any = None) -> Any:
        """Get an attribute value, or default if the record does not carry it."""
        return self.attributes.get(field, default)

    def get_reference(self) -> EntityReference:
        """Reference to this record."""
        return EntityReference(self.entity_name, self.id)

    def project(self, fields: Iterable[str]) -> "Record":
        """Copy of this record restricted to the given fields."""
        wanted = set(fields)
        return Record(
            self.entity_name,
            self.id,
            {k: v for k, v in self.attributes.items() if k in wanted},
            {k: v for k, v in self.formatted_values.items() if k in wanted},
        )

    def merged_over(self, base: Optional["Record"]) -> "Record":
        """Overlay this record's attributes on top of ``base``.

        Used to reconstruct a full record state from a prior-state snapshot
        and the changed fields of an update.
        """
        if base is None:
            return Record(self.entity_name, self.id, self.attributes, self.formatted_values)
        attributes = dict(base.attributes)
        attributes.update(self.attributes)
        formatted = dict(base.formatted_values)
        formatted.update(self.formatted_values)
        return Record(self.entity_name, self.id or base.id, attributes, formatted)

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary."""
        result = {"entity_name": self.entity_name, "attributes": dict(self.attributes)}
        if self.id is not None:
            result["id"] = str(self.id)
        if self.formatted_values:
            result["formatted_values"] = dict(self.formatted_values)
        return result

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return (
            self.entity_name == other.entity_name
            and self.id == other.id
            and self.attributes == other.attributes
        )

    def __repr__(self) -> str:
        return f"Record(entity_name={self.entity_name!r}, id={self.id!r}, attributes={self.attributes!r})"


class ExecutionContext:
    """Execution context for one lifecycle event.

    Supplied by the host pipeline. Only the execution gate inspects the
    pipeline coordinates; the propagation handlers receive the records.

    Attributes:
        entity_name: Logical name of the record type the event fired on.
        message: Lifecycle message (Create or Update), or the raw name if
            the host passed a message the engine does not handle.
        stage: Pipeline stage number.
        depth: Recursion depth of the invocation (1 for a user-initiated save).
        target: Post-change record. Carries all fields on Create and only the
            changed fields on Update.
        pre_image: Prior-state snapshot for Update events.
        correlation_id: Optional host correlation identifier.
    """

    __slots__ = ("entity_name", "message", "stage", "depth", "target", "pre_image", "correlation_id")

    def __init__(
        self,
        entity_name: str,
        message: Union[str, Message],
        stage: int,
        depth: int,
        target: Optional[Record],
        pre_image: Optional[Record] = None,
        correlation_id: Optional[str] = None,
    ):
        self.entity_name = entity_name
        self.message = Message.parse(message) or message
        self.stage = stage
        self.depth = depth
        self.target = target
        self.pre_image = pre_image
        self.correlation_id = correlation_id

    @property
    def message_name(self) -> str:
        """Message name as supplied by the host."""
        return self.message.value if isinstance(self.message, Message) else str(self.message)

    @property
    def primary_id(self) -> Optional[UUID]:
        """Identifier of the record the event fired on."""
        if self.target is not None and self.target.id is not None:
            return self.target.id
        return self.pre_image.id if self.pre_image is not None else None

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(entity_name={self.entity_name!r}, message={self.message_name!r}, "
            f"stage={self.stage}, depth={self.depth})"
        )
