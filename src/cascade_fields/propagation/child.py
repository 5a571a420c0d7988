"""Child-side attach: pull parent values onto a child being linked to a parent.

Runs when a child is created with a parent link or re-linked to a different
parent. Values from every matching related entity configuration are
aggregated and written onto the in-flight child record when the handler
runs before the save, or issued as one follow-up update otherwise.

Nothing in here may fail the child's own save: every problem is traced and
the offending configuration is skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cascade_fields.core.config import CascadeConfiguration, RelatedEntityConfig
from cascade_fields.core.context import EntityReference, ExecutionContext, Message, Record, Stage
from cascade_fields.core.errors import ConfigurationError, RecordNotFoundError, RecordStoreError
from cascade_fields.core.tracing import CascadeTracer
from cascade_fields.evaluation.changes import field_changed
from cascade_fields.evaluation.filters import FilterEvaluator, parse_filter_detailed, restrict_to_schema
from cascade_fields.propagation.mapping import MappingEvaluator, SkippedMapping
from cascade_fields.propagation.resolution import lookup_field_for
from cascade_fields.stores.base import MetadataStore, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class AttachResult:
    """Result of the child-side attach for one child record.

    Attributes:
        applied_values: Target field -> value copied from the parent(s).
        matched: Related entity configurations whose parent values were read.
        skipped: Related entity configurations that were skipped, with reasons.
        skipped_mappings: Mappings that produced no value.
        written: Whether the values reached the child (in-flight or by update).
    """

    applied_values: Dict[str, Any] = field(default_factory=dict)
    matched: int = 0
    skipped: List[str] = field(default_factory=list)
    skipped_mappings: List[SkippedMapping] = field(default_factory=list)
    written: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied_values": {k: repr(v) for k, v in self.applied_values.items()},
            "matched": self.matched,
            "skipped": list(self.skipped),
            "skipped_mappings": [s.describe() for s in self.skipped_mappings],
            "written": self.written,
        }


class AttachHandler:
    """Copies parent values onto a child record that gets linked to the parent.

    Attributes:
        records: Record store used to read the parent (and update the child
            outside the pre-save stage).
        metadata: Metadata store used for schema checks.
        tracer: Tracer of the current invocation.
        in_flight_stage: Stage at which writes go onto the in-flight record.
    """

    def __init__(
        self,
        records: RecordStore,
        metadata: MetadataStore,
        tracer: CascadeTracer,
        evaluator: Optional[FilterEvaluator] = None,
        in_flight_stage: int = Stage.PRE_OPERATION,
    ):
        self.records = records
        self.metadata = metadata
        self.tracer = tracer
        self.evaluator = evaluator or FilterEvaluator()
        self.mappings = MappingEvaluator(metadata, tracer)
        self.in_flight_stage = in_flight_stage

    def handle(self, configuration: CascadeConfiguration, context: ExecutionContext) -> AttachResult:
        """Populate the child in ``context`` from its parent.

        Args:
            configuration: Loaded cascade configuration.
            context: Create or Update event on a child record type.

        Returns:
            Values applied and configurations skipped.
        """
        self.tracer.start_operation("populate from parent")
        result = AttachResult()
        related_configs = configuration.related_for(context.entity_name)

        for related in related_configs:
            try:
                values = self._values_for(configuration, related, context, result)
            except Exception as e:
                self.tracer.error(f"Attach for {related.entity_name} failed, configuration skipped", e)
                result.skipped.append(f"{related.entity_name}: {e}")
                continue
            if values is None:
                continue
            result.matched += 1
            for name, value in values.items():
                if name in result.applied_values and result.applied_values[name] != value:
                    self.tracer.warning(f"Field {name} mapped by more than one configuration, last value wins")
                result.applied_values[name] = value

        if result.applied_values:
            result.written = self._write(context, result.applied_values)
        else:
            self.tracer.info("No parent values to apply")

        self.tracer.end_operation("populate from parent")
        return result

    def _values_for(
        self,
        configuration: CascadeConfiguration,
        related: RelatedEntityConfig,
        context: ExecutionContext,
        result: AttachResult,
    ) -> Optional[Dict[str, Any]]:
        target = context.target
        parent_entity = configuration.parent_entity

        try:
            lookup_field = lookup_field_for(related, parent_entity, self.metadata)
        except ConfigurationError as e:
            self.tracer.error(f"Cannot link {related.entity_name} to {parent_entity}", e)
            result.skipped.append(f"{related.entity_name}: {e}")
            return None

        if context.message == Message.CREATE:
            if lookup_field not in target:
                return self._skip(result, related, f"{lookup_field} not set on create")
        elif not field_changed(lookup_field, target, context.pre_image):
            return self._skip(result, related, f"{lookup_field} unchanged")

        parent_ref = target.get(lookup_field)
        if parent_ref is None:
            return self._skip(result, related, f"{lookup_field} cleared")
        if not isinstance(parent_ref, EntityReference):
            self.tracer.warning(f"{lookup_field} does not hold a record reference: {parent_ref!r}")
            return self._skip(result, related, f"{lookup_field} is not a reference")
        if parent_ref.entity_name.lower() != parent_entity.lower():
            reason = f"{lookup_field} points to {parent_ref.entity_name}, not {parent_entity}"
            return self._skip(result, related, reason)

        if related.filter_criteria:
            parsed = parse_filter_detailed(related.filter_criteria)
            for dropped in parsed.dropped:
                self.tracer.warning(f"Filter condition '{dropped.text}' ignored: {dropped.reason}")
            conditions = restrict_to_schema(parsed.conditions, related.entity_name, self.metadata, self.tracer)
            known = target.merged_over(context.pre_image)
            if not self.evaluator.matches(conditions, known, skip_missing=True):
                return self._skip(result, related, "child does not match filter")

        try:
            parent = self.records.retrieve(parent_entity, parent_ref.id, related.source_fields)
        except RecordNotFoundError as e:
            self.tracer.warning(f"Parent {parent_entity} {parent_ref.id} not found: {e}")
            return self._skip(result, related, "parent not found")
        except RecordStoreError as e:
            self.tracer.warning(f"Parent {parent_entity} {parent_ref.id} could not be read: {e}")
            return self._skip(result, related, "parent could not be read")

        evaluation = self.mappings.evaluate(parent_entity, related.entity_name, related.field_mappings, parent)
        result.skipped_mappings.extend(evaluation.skipped)
        self.tracer.info(
            f"{len(evaluation.applied)} value(s) from {parent_entity} {parent_ref.id} for {related.entity_name}"
        )
        return evaluation.values

    def _skip(self, result: AttachResult, related: RelatedEntityConfig, reason: str) -> None:
        self.tracer.info(f"Skipping {related.entity_name}: {reason}")
        result.skipped.append(f"{related.entity_name}: {reason}")
        return None

    def _write(self, context: ExecutionContext, values: Dict[str, Any]) -> bool:
        target = context.target
        if context.stage == self.in_flight_stage:
            for name, value in values.items():
                target[name] = value
            self.tracer.info(f"Applied {len(values)} field(s) to in-flight {context.entity_name}")
            return True

        record_id = context.primary_id
        if record_id is None:
            self.tracer.warning(f"{context.entity_name} has no identifier yet, values not written")
            return False
        try:
            self.records.update(Record(context.entity_name, record_id, values))
        except Exception as e:
            self.tracer.error(f"Failed to update {context.entity_name} {record_id}", e)
            return False
        self.tracer.info(f"Updated {context.entity_name} {record_id} with {len(values)} field(s)")
        return True
