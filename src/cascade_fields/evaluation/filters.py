"""
Filter expressions restricting which child records take part in a cascade.

A filter is a compact string of AND-ed conditions::

    statecode|eq|0;address1_country|ne|null;name|like|%contoso%

Each condition is ``field|operator|value``. Supported operators (closed set):

- ``eq``, ``ne``, ``gt``, ``lt``, ``ge``, ``le`` - comparisons
- ``like`` - substring test, or pattern match when the value has ``%`` wildcards
- ``null``, ``notnull`` - existence checks; their value is ignored and
  serialized as the ``null`` placeholder

Operator aliases (``equal``, ``=``, ``contains``, ...) are accepted when
parsing. Parsing never raises: segments that cannot be understood are
returned as dropped conditions with a reason.
"""

import logging
import operator
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from uuid import UUID

from cascade_fields.core.context import EntityReference, Money, OptionSetValue, Record
from cascade_fields.core.errors import FilterSyntaxError, MetadataStoreError

logger = logging.getLogger(__name__)

CONDITION_SEPARATOR = ";"
PART_SEPARATOR = "|"
NULL_PLACEHOLDER = "null"

_FIELD_NAME = re.compile(r"^[A-Za-z0-9_]+$")
_INTEGER = re.compile(r"^-?\d+$")
_DECIMAL = re.compile(r"^-?\d+\.\d+$")


class FilterOperator(str, Enum):
    """Operators of the filter language, valued by their canonical code."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    LT = "lt"
    GE = "ge"
    LE = "le"
    CONTAINS = "like"
    IS_NULL = "null"
    IS_NOT_NULL = "notnull"

    @property
    def takes_value(self) -> bool:
        return self not in (FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL)

    @classmethod
    def parse(cls, text: str) -> Optional["FilterOperator"]:
        """Resolve an operator code or alias, or None if it is not supported."""
        return _ALIASES.get((text or "").strip().lower())


_ALIASES: Dict[str, FilterOperator] = {
    "eq": FilterOperator.EQ,
    "equal": FilterOperator.EQ,
    "=": FilterOperator.EQ,
    "==": FilterOperator.EQ,
    "ne": FilterOperator.NE,
    "notequal": FilterOperator.NE,
    "!=": FilterOperator.NE,
    "<>": FilterOperator.NE,
    "gt": FilterOperator.GT,
    "greaterthan": FilterOperator.GT,
    ">": FilterOperator.GT,
    "lt": FilterOperator.LT,
    "lessthan": FilterOperator.LT,
    "<": FilterOperator.LT,
    "ge": FilterOperator.GE,
    "greaterequal": FilterOperator.GE,
    ">=": FilterOperator.GE,
    "le": FilterOperator.LE,
    "lessequal": FilterOperator.LE,
    "<=": FilterOperator.LE,
    "like": FilterOperator.CONTAINS,
    "contains": FilterOperator.CONTAINS,
    "null": FilterOperator.IS_NULL,
    "isnull": FilterOperator.IS_NULL,
    "notnull": FilterOperator.IS_NOT_NULL,
    "isnotnull": FilterOperator.IS_NOT_NULL,
}


def parse_literal(text: Optional[str]) -> Any:
    """Interpret the textual value of a condition.

    Recognizes ``null``, ``true``/``false``, integers, decimals and UUIDs;
    anything else stays a string.
    """
    if text is None:
        return None
    lowered = text.lower()
    if lowered == "null":
        return None
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INTEGER.match(text):
        return int(text)
    if _DECIMAL.match(text):
        try:
            return Decimal(text)
        except InvalidOperation:
            return text
    try:
        return UUID(text)
    except ValueError:
        return text


@dataclass(frozen=True)
class FilterCondition:
    """One ``field|operator|value`` condition.

    The value is kept as text so that serialization is lossless; use
    ``typed_value`` for comparisons.

    Raises:
        FilterSyntaxError: If the condition cannot be written in filter syntax.
    """

    field: str
    operator: Union[str, FilterOperator]
    value: Optional[str] = None

    def __post_init__(self):
        """Validate and normalize the condition."""
        op = self.operator
        if not isinstance(op, FilterOperator):
            op = FilterOperator.parse(str(op))
            if op is None:
                raise FilterSyntaxError(f"Unknown operator: {self.operator}")
            object.__setattr__(self, "operator", op)

        if not self.field or not _FIELD_NAME.match(self.field):
            raise FilterSyntaxError(f"Invalid field name: {self.field!r}")

        if not op.takes_value:
            object.__setattr__(self, "value", None)
            return

        value = "" if self.value is None else str(self.value)
        if CONDITION_SEPARATOR in value or PART_SEPARATOR in value:
            raise FilterSyntaxError(f"Value for {self.field} contains a separator character")
        if value != value.strip():
            raise FilterSyntaxError(f"Value for {self.field} has surrounding whitespace")
        object.__setattr__(self, "value", value)

    @property
    def typed_value(self) -> Any:
        return parse_literal(self.value)

    def to_string(self) -> str:
        """Serialize to ``field|operator|value``."""
        value = self.value if self.operator.takes_value else NULL_PLACEHOLDER
        return PART_SEPARATOR.join((self.field, self.operator.value, value))

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class DroppedCondition:
    """A filter segment that was not turned into a condition."""

    text: str
    reason: str


@dataclass
class FilterParseResult:
    """Outcome of parsing a filter string."""

    conditions: List[FilterCondition] = field(default_factory=list)
    dropped: List[DroppedCondition] = field(default_factory=list)


def parse_filter_detailed(text: Optional[str]) -> FilterParseResult:
    """Parse a filter string, keeping track of segments that were dropped.

    Pure function: never raises and never logs.

    Args:
        text: Filter string, may be None or empty.

    Returns:
        Parsed conditions in order plus dropped segments with reasons.
    """
    result = FilterParseResult()
    if not text:
        return result

    for segment in text.split(CONDITION_SEPARATOR):
        if not segment.strip():
            continue

        parts = segment.split(PART_SEPARATOR)
        if len(parts) != 3:
            result.dropped.append(
                DroppedCondition(segment, "expected format field|operator|value")
            )
            continue

        field_name, op_text, value = (p.strip() for p in parts)
        op = FilterOperator.parse(op_text)
        if op is None:
            result.dropped.append(DroppedCondition(segment, f"unknown operator '{op_text}'"))
            continue

        try:
            result.conditions.append(FilterCondition(field_name, op, value))
        except FilterSyntaxError as e:
            result.dropped.append(DroppedCondition(segment, str(e)))

    return result


def parse_filter(text: Optional[str]) -> List[FilterCondition]:
    """Parse a filter string into its well-formed conditions."""
    return parse_filter_detailed(text).conditions


def serialize_filter(conditions: Iterable[FilterCondition]) -> str:
    """Serialize conditions back to filter syntax."""
    return CONDITION_SEPARATOR.join(c.to_string() for c in conditions)


def normalize_value(value: Any) -> Any:
    """Reduce a record attribute value to a comparable primitive."""
    if isinstance(value, OptionSetValue):
        return value.value
    if isinstance(value, Money):
        return value.value
    if isinstance(value, EntityReference):
        return value.id
    return value


class FilterEvaluator:
    """
    Evaluates filter conditions against record values.

    Used as a result-membership test (in-memory stores, child-side checks);
    hosts with a native query language translate the conditions instead.

    Examples:
        >>> evaluator = FilterEvaluator()
        >>> conditions = parse_filter("statecode|eq|0")
        >>> evaluator.matches(conditions, {"statecode": OptionSetValue(0)})
        True
    """

    def __init__(self):
        """Initialize the evaluator with operator mappings and a pattern cache."""
        self.operators = {
            FilterOperator.GT: operator.gt,
            FilterOperator.LT: operator.lt,
            FilterOperator.GE: operator.ge,
            FilterOperator.LE: operator.le,
        }
        self._pattern_cache: Dict[str, re.Pattern] = {}

    def matches(
        self,
        conditions: Sequence[FilterCondition],
        record: Union[Record, Dict[str, Any]],
        skip_missing: bool = False,
    ) -> bool:
        """
        Whether a record satisfies all conditions.

        Args:
            conditions: Conditions to apply (AND-ed).
            record: Record or attribute dictionary.
            skip_missing: Do not evaluate conditions on fields the record
                does not carry, instead of treating them as null.

        Returns:
            True if every evaluated condition holds.
        """
        values = record.attributes if isinstance(record, Record) else record
        for condition in conditions:
            if condition.field not in values:
                if skip_missing:
                    continue
            if not self.evaluate(condition, values.get(condition.field)):
                return False
        return True

    def evaluate(self, condition: FilterCondition, raw_value: Any) -> bool:
        """Evaluate one condition against a single attribute value."""
        op = condition.operator
        value = normalize_value(raw_value)

        if op == FilterOperator.IS_NULL:
            return value is None
        if op == FilterOperator.IS_NOT_NULL:
            return value is not None

        if op == FilterOperator.EQ:
            return self._equals(value, condition)
        if op == FilterOperator.NE:
            return not self._equals(value, condition)

        if value is None:
            return False

        if op == FilterOperator.CONTAINS:
            return self._like(str(value), condition.value)

        compare_value = condition.typed_value
        if isinstance(value, str):
            value = value.casefold()
            compare_value = condition.value.casefold()
        try:
            return self.operators[op](value, compare_value)
        except (TypeError, KeyError):
            logger.warning(
                "Type error in filter comparison",
                extra={"field": condition.field, "operator": op.value, "value": condition.value},
            )
            return False

    def _equals(self, value: Any, condition: FilterCondition) -> bool:
        if isinstance(value, str):
            if condition.value.lower() == NULL_PLACEHOLDER:
                return False
            return value.casefold() == condition.value.casefold()
        expected = condition.typed_value
        if value is None or expected is None:
            return value is None and expected is None
        if isinstance(value, bool) != isinstance(expected, bool):
            return False
        if isinstance(value, UUID) and isinstance(expected, str):
            return str(value).lower() == expected.lower()
        return value == expected

    def _like(self, text: str, pattern: str) -> bool:
        if "%" not in pattern:
            return pattern.casefold() in text.casefold()
        compiled = self._pattern_cache.get(pattern)
        if compiled is None:
            regex = ".*".join(re.escape(part) for part in pattern.split("%"))
            compiled = re.compile(f"^{regex}$", re.IGNORECASE | re.DOTALL)
            self._pattern_cache[pattern] = compiled
        return bool(compiled.match(text))


def restrict_to_schema(
    conditions: Sequence[FilterCondition], entity_name: str, metadata, tracer=None
) -> List[FilterCondition]:
    """Drop conditions on fields that do not exist on ``entity_name``.

    Args:
        conditions: Parsed conditions.
        entity_name: Record type the conditions apply to.
        metadata: MetadataStore used to resolve fields.
        tracer: Optional CascadeTracer receiving a warning per dropped condition.

    Returns:
        Conditions whose field exists on the record type.
    """
    kept = []
    for condition in conditions:
        try:
            exists = metadata.get_field(entity_name, condition.field) is not None
        except MetadataStoreError as e:
            exists = False
            logger.debug(f"Metadata lookup failed for {entity_name}.{condition.field}: {e}")
        if exists:
            kept.append(condition)
        elif tracer is not None:
            tracer.warning(
                f"Filter condition '{condition}' dropped: field '{condition.field}' does not exist on '{entity_name}'"
            )
    return kept
