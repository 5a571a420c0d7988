"""Evaluation module for filters, change detection and type compatibility."""

from cascade_fields.evaluation.changes import TriggerDecision, evaluate_trigger, field_changed
from cascade_fields.evaluation.filters import (
    FilterCondition,
    FilterEvaluator,
    FilterOperator,
    FilterParseResult,
    parse_filter,
    parse_filter_detailed,
    serialize_filter,
)
from cascade_fields.evaluation.types import (
    Compatibility,
    TypeGroup,
    are_types_compatible,
    check_compatibility,
    convert_value,
)

__all__ = [
    "FilterCondition",
    "FilterEvaluator",
    "FilterOperator",
    "FilterParseResult",
    "parse_filter",
    "parse_filter_detailed",
    "serialize_filter",
    "TriggerDecision",
    "evaluate_trigger",
    "field_changed",
    "Compatibility",
    "TypeGroup",
    "are_types_compatible",
    "check_compatibility",
    "convert_value",
]
