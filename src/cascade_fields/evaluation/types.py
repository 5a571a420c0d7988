"""
Type compatibility between source (parent) and target (child) fields.

Rules, evaluated in order:

1. A target that is not writable is rejected.
2. Identical declared types are compatible; values pass through.
3. Text targets (single or multi-line) accept any source; values are
   rendered as text.
4. Types in the same group are compatible: numeric, choice, reference,
   boolean. Numbers are widened or narrowed; choice codes and references
   pass through unchanged.
5. Everything else is incompatible.

``check_compatibility`` is total: unknown or missing types yield an
incompatible decision, never an exception.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from cascade_fields.core.context import EntityReference, Money, OptionSetValue
from cascade_fields.stores.base import FieldMetadata, FieldType

logger = logging.getLogger(__name__)

ELLIPSIS = "…"


class TypeGroup(str, Enum):
    """Compatibility groups of field types."""

    TEXT = "text"
    NUMERIC = "numeric"
    CHOICE = "choice"
    REFERENCE = "reference"
    BOOLEAN = "boolean"
    OTHER = "other"


_GROUPS = {
    FieldType.STRING: TypeGroup.TEXT,
    FieldType.MEMO: TypeGroup.TEXT,
    FieldType.INTEGER: TypeGroup.NUMERIC,
    FieldType.BIGINT: TypeGroup.NUMERIC,
    FieldType.DECIMAL: TypeGroup.NUMERIC,
    FieldType.DOUBLE: TypeGroup.NUMERIC,
    FieldType.MONEY: TypeGroup.NUMERIC,
    FieldType.PICKLIST: TypeGroup.CHOICE,
    FieldType.STATE: TypeGroup.CHOICE,
    FieldType.STATUS: TypeGroup.CHOICE,
    FieldType.LOOKUP: TypeGroup.REFERENCE,
    FieldType.CUSTOMER: TypeGroup.REFERENCE,
    FieldType.OWNER: TypeGroup.REFERENCE,
    FieldType.BOOLEAN: TypeGroup.BOOLEAN,
}


def type_group(field_type: Optional[FieldType]) -> TypeGroup:
    """Compatibility group of a declared type."""
    return _GROUPS.get(field_type, TypeGroup.OTHER)


@dataclass(frozen=True)
class Compatibility:
    """Decision for one (source, target) pair.

    Attributes:
        compatible: Whether values may flow from source to target.
        reason: Why the pair was accepted or rejected.
    """

    compatible: bool
    reason: str

    def __bool__(self) -> bool:
        return self.compatible


def are_types_compatible(source_type: Optional[FieldType], target_type: Optional[FieldType]) -> bool:
    """Type-only compatibility decision (rules 2-5)."""
    if source_type is None or target_type is None:
        return False
    if source_type == target_type:
        return True
    target_group = type_group(target_type)
    if target_group == TypeGroup.TEXT:
        return True
    return target_group != TypeGroup.OTHER and type_group(source_type) == target_group


def check_compatibility(source: Optional[FieldMetadata], target: Optional[FieldMetadata]) -> Compatibility:
    """Decide whether a mapping from ``source`` to ``target`` is permitted."""
    if source is None or target is None:
        return Compatibility(False, "field metadata unavailable")
    if not target.writable:
        return Compatibility(False, f"target field '{target.name}' is not writable")
    if source.field_type is None or target.field_type is None:
        return Compatibility(False, "unknown field type")
    if source.field_type == target.field_type:
        return Compatibility(True, "identical types")
    if are_types_compatible(source.field_type, target.field_type):
        if type_group(target.field_type) == TypeGroup.TEXT:
            return Compatibility(True, "converted to text")
        return Compatibility(True, f"same {type_group(target.field_type).value} group")
    return Compatibility(
        False,
        f"{source.field_type.value} cannot be written to {target.field_type.value}",
    )


def to_text(value: Any, formatted_value: Optional[str] = None) -> Optional[str]:
    """Render a field value as text.

    References use their display name, then the formatted value, then the
    identifier. Choices use the formatted label, then the integer code.
    """
    if value is None:
        return None
    if isinstance(value, EntityReference):
        if value.name:
            return value.name
        return formatted_value or str(value.id)
    if isinstance(value, OptionSetValue):
        return formatted_value or str(value.value)
    if isinstance(value, Money):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def truncate(text: Optional[str], max_length: Optional[int]) -> Optional[str]:
    """Shorten text to ``max_length`` characters, ending with an ellipsis."""
    if not text or not max_length or max_length <= 0 or len(text) <= max_length:
        return text
    return text[: max_length - 1] + ELLIPSIS


def _to_number(value: Any) -> Decimal:
    if isinstance(value, Money):
        return value.value
    if isinstance(value, bool):
        raise TypeError("boolean is not a number")
    return Decimal(str(value))


def convert_value(
    value: Any,
    source: FieldMetadata,
    target: FieldMetadata,
    formatted_value: Optional[str] = None,
) -> Any:
    """Coerce a source value into a value acceptable for the target field.

    The pair must already be compatible (see ``check_compatibility``).

    Raises:
        ValueError: If the value cannot be represented in the target type.
    """
    if value is None:
        return None

    target_type = target.field_type
    if type_group(target_type) == TypeGroup.TEXT:
        if source.field_type == target_type and isinstance(value, str):
            text = value
        else:
            text = to_text(value, formatted_value)
        shortened = truncate(text, target.max_length)
        if shortened != text:
            logger.debug(f"Value for {target.name} truncated to {target.max_length} characters")
        return shortened

    if source.field_type == target_type:
        return value

    group = type_group(target_type)
    if group == TypeGroup.NUMERIC:
        try:
            number = _to_number(value)
        except (InvalidOperation, TypeError) as e:
            raise ValueError(f"cannot convert {value!r} to {target_type.value}") from e
        if target_type in (FieldType.INTEGER, FieldType.BIGINT):
            try:
                return int(number)
            except (OverflowError, ValueError) as e:
                raise ValueError(f"cannot convert {value!r} to {target_type.value}") from e
        if target_type == FieldType.DOUBLE:
            return float(number)
        if target_type == FieldType.MONEY:
            return Money(number)
        return number

    if group == TypeGroup.CHOICE:
        if isinstance(value, OptionSetValue):
            return value
        return OptionSetValue(int(value))

    if group == TypeGroup.REFERENCE:
        if not isinstance(value, EntityReference):
            raise ValueError(f"expected a record reference, got {type(value).__name__}")
        return value

    if group == TypeGroup.BOOLEAN:
        return bool(value)

    raise ValueError(f"no conversion from {source.field_type} to {target_type}")
