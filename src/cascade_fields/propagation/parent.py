"""Parent-side cascade: push changed parent values down to existing children.

For every related entity configuration the executor:

1. runs the trigger gate against the update and its prior snapshot,
2. evaluates the field mappings against the parent's values,
3. parses the filter and drops conditions on unknown fields,
4. locates candidate children,
5. updates each candidate with only the fields whose value differs.

Candidate updates are isolated: a failure on one child is logged and
counted, and the remaining children are still attempted.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from cascade_fields.core.config import CascadeConfiguration, RelatedEntityConfig
from cascade_fields.core.context import EntityReference, Record
from cascade_fields.core.tracing import CascadeTracer
from cascade_fields.evaluation.changes import TriggerDecision, evaluate_trigger
from cascade_fields.evaluation.filters import FilterEvaluator, parse_filter_detailed, restrict_to_schema
from cascade_fields.propagation.mapping import MappingEvaluator, SkippedMapping
from cascade_fields.propagation.resolution import lookup_field_for, resolve_candidates
from cascade_fields.stores.base import MetadataStore, RecordStore

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """Result of processing one candidate child."""

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class CandidateOutcome:
    """What happened to one candidate child.

    Attributes:
        record_id: Identifier of the child.
        status: Updated, unchanged (nothing differed) or failed.
        fields: Fields written (or attempted) on the child.
        error: Failure message for failed updates.
    """

    record_id: Optional[UUID]
    status: OutcomeStatus
    fields: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": str(self.record_id) if self.record_id else None,
            "status": self.status.value,
            "fields": list(self.fields),
            "error": self.error,
        }


@dataclass
class CascadeSummary:
    """Result of cascading to one related entity configuration.

    Attributes:
        entity_name: Child record type.
        triggered: Whether the trigger gate let the cascade run.
        reason: Human-readable gate decision.
        candidates: Number of candidate children found.
        outcomes: Per-candidate outcomes in processing order.
        skipped_mappings: Mappings that produced no value.
    """

    entity_name: str
    triggered: bool
    reason: str = ""
    candidates: int = 0
    outcomes: List[CandidateOutcome] = field(default_factory=list)
    skipped_mappings: List[SkippedMapping] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def attempted(self) -> int:
        """Candidates for which an update was issued."""
        return self._count(OutcomeStatus.UPDATED) + self._count(OutcomeStatus.FAILED)

    @property
    def succeeded(self) -> int:
        return self._count(OutcomeStatus.UPDATED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def unchanged(self) -> int:
        return self._count(OutcomeStatus.UNCHANGED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary."""
        return {
            "entity_name": self.entity_name,
            "triggered": self.triggered,
            "reason": self.reason,
            "candidates": self.candidates,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "unchanged": self.unchanged,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "skipped_mappings": [s.describe() for s in self.skipped_mappings],
        }


class CascadeExecutor:
    """Propagates a parent update to the parent's existing children.

    Attributes:
        records: Record store used to find and update children.
        metadata: Metadata store used for schema checks.
        tracer: Tracer of the current invocation.
    """

    def __init__(
        self,
        records: RecordStore,
        metadata: MetadataStore,
        tracer: CascadeTracer,
        evaluator: Optional[FilterEvaluator] = None,
    ):
        self.records = records
        self.metadata = metadata
        self.tracer = tracer
        self.evaluator = evaluator or FilterEvaluator()
        self.mappings = MappingEvaluator(metadata, tracer)

    def execute(
        self,
        configuration: CascadeConfiguration,
        target: Record,
        pre_image: Optional[Record] = None,
    ) -> List[CascadeSummary]:
        """Cascade a parent update to every related entity configuration.

        Args:
            configuration: Loaded cascade configuration.
            target: Changed fields of the parent.
            pre_image: Prior snapshot of the parent, if available.

        Returns:
            One summary per related entity configuration, in order.

        Raises:
            ConfigurationError: If any related entity configuration does not
                link the parent to its child record type. No child is
                written in that case.
        """
        self.tracer.start_operation("cascade to related entities")
        parent_id = target.id or (pre_image.id if pre_image is not None else None)
        if parent_id is None:
            self.tracer.warning("Parent record has no identifier, nothing to cascade")
            self.tracer.end_operation("cascade to related entities")
            return []

        # Every link is checked before the first child is written.
        for related in configuration.related_entities:
            lookup_field_for(related, configuration.parent_entity, self.metadata)

        parent = EntityReference(configuration.parent_entity, parent_id)
        summaries = [
            self.cascade_related(parent, related, target, pre_image) for related in configuration.related_entities
        ]

        total = sum(s.attempted for s in summaries)
        failed = sum(s.failed for s in summaries)
        self.tracer.info(f"Cascade finished: {total} child update(s) attempted, {failed} failed")
        self.tracer.end_operation("cascade to related entities")
        return summaries

    def cascade_related(
        self,
        parent: EntityReference,
        related: RelatedEntityConfig,
        target: Record,
        pre_image: Optional[Record] = None,
    ) -> CascadeSummary:
        """Cascade to the children of one related entity configuration."""
        decision: TriggerDecision = evaluate_trigger(related, target, pre_image)
        summary = CascadeSummary(related.entity_name, decision.triggered, decision.describe())
        if not decision.triggered:
            self.tracer.info(f"Skipping {related.entity_name}: {decision.describe()}")
            return summary
        self.tracer.info(f"Cascading to {related.entity_name}: {decision.describe()}")

        evaluation = self.mappings.evaluate(
            parent.entity_name, related.entity_name, related.field_mappings, target, pre_image
        )
        summary.skipped_mappings = evaluation.skipped
        values = evaluation.values
        if not values:
            self.tracer.info(f"No applicable mappings for {related.entity_name}")
            return summary

        conditions = self._conditions(related)
        columns = list(values)
        for condition in conditions:
            if condition.field not in columns:
                columns.append(condition.field)

        candidates = resolve_candidates(self.records, self.metadata, related, parent, conditions, columns)
        candidates = [c for c in candidates if self.evaluator.matches(conditions, c, skip_missing=True)]
        summary.candidates = len(candidates)
        self.tracer.info(f"Found {len(candidates)} {related.entity_name} record(s) to update")

        for candidate in candidates:
            summary.outcomes.append(self._apply(related.entity_name, candidate, values))

        self.tracer.info(
            f"{related.entity_name}: {summary.succeeded} updated, {summary.failed} failed, "
            f"{summary.unchanged} unchanged"
        )
        return summary

    def _conditions(self, related: RelatedEntityConfig):
        if not related.filter_criteria:
            return []
        parsed = parse_filter_detailed(related.filter_criteria)
        for dropped in parsed.dropped:
            self.tracer.warning(f"Filter condition '{dropped.text}' ignored: {dropped.reason}")
        conditions = restrict_to_schema(parsed.conditions, related.entity_name, self.metadata, self.tracer)
        self.tracer.debug(f"Filter for {related.entity_name}: {len(conditions)} condition(s)")
        return conditions

    @staticmethod
    def build_payload(candidate: Record, values: Dict[str, Any]) -> Dict[str, Any]:
        """Fields of ``values`` that differ from the candidate's current values."""
        return {
            name: value
            for name, value in values.items()
            if name not in candidate or candidate.get(name) != value
        }

    def _apply(self, entity_name: str, candidate: Record, values: Dict[str, Any]) -> CandidateOutcome:
        payload = self.build_payload(candidate, values)
        if not payload:
            self.tracer.debug(f"{entity_name} {candidate.id} already up to date")
            return CandidateOutcome(candidate.id, OutcomeStatus.UNCHANGED)

        try:
            self.records.update(Record(entity_name, candidate.id, payload))
        except Exception as e:
            self.tracer.error(f"Failed to update {entity_name} {candidate.id}", e)
            return CandidateOutcome(candidate.id, OutcomeStatus.FAILED, list(payload), str(e))

        self.tracer.debug(f"Updated {entity_name} {candidate.id}: {', '.join(payload)}")
        return CandidateOutcome(candidate.id, OutcomeStatus.UPDATED, list(payload))
