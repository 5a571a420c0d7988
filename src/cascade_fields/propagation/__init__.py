"""Propagation module: parent-side cascade and child-side attach."""

from cascade_fields.propagation.child import AttachHandler, AttachResult
from cascade_fields.propagation.mapping import AppliedMapping, MappingEvaluation, MappingEvaluator, SkippedMapping
from cascade_fields.propagation.parent import CandidateOutcome, CascadeExecutor, CascadeSummary, OutcomeStatus
from cascade_fields.propagation.resolution import lookup_field_for, resolve_candidates

__all__ = [
    "CascadeExecutor",
    "CascadeSummary",
    "CandidateOutcome",
    "OutcomeStatus",
    "AttachHandler",
    "AttachResult",
    "MappingEvaluator",
    "MappingEvaluation",
    "AppliedMapping",
    "SkippedMapping",
    "resolve_candidates",
    "lookup_field_for",
]
