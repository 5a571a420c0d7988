"""Mapping evaluation shared by parent-side and child-side propagation.

Evaluating a list of field mappings against a source record yields two
channels: mappings that produce a value for the target field, and mappings
that were skipped together with the reason. Skips are never raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from cascade_fields.core.config import FieldMapping
from cascade_fields.core.context import Record
from cascade_fields.core.errors import MetadataStoreError
from cascade_fields.core.tracing import CascadeTracer
from cascade_fields.evaluation.types import check_compatibility, convert_value, to_text
from cascade_fields.stores.base import FieldMetadata, MetadataStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedMapping:
    """A mapping that produced a value for its target field."""

    mapping: FieldMapping
    value: Any


@dataclass(frozen=True)
class SkippedMapping:
    """A mapping that was not applied, and why."""

    mapping: FieldMapping
    reason: str

    def describe(self) -> str:
        return f"{self.mapping.source_field} -> {self.mapping.target_field}: {self.reason}"


@dataclass
class MappingEvaluation:
    """Applied and skipped mappings of one evaluation."""

    applied: List[AppliedMapping] = field(default_factory=list)
    skipped: List[SkippedMapping] = field(default_factory=list)

    @property
    def values(self) -> Dict[str, Any]:
        """Target field -> value for every applied mapping."""
        return {a.mapping.target_field: a.value for a in self.applied}


class MappingEvaluator:
    """Resolves, type-checks and converts mapped values.

    Attributes:
        metadata: Metadata store used to resolve field types.
        tracer: Tracer receiving one warning per skipped mapping.
    """

    def __init__(self, metadata: MetadataStore, tracer: CascadeTracer):
        self.metadata = metadata
        self.tracer = tracer

    def evaluate(
        self,
        source_entity: str,
        target_entity: str,
        mappings: Sequence[FieldMapping],
        source: Record,
        fallback: Optional[Record] = None,
    ) -> MappingEvaluation:
        """Evaluate mappings against a source record.

        Args:
            source_entity: Record type of the source (parent).
            target_entity: Record type of the target (child).
            mappings: Mappings to evaluate, in order.
            source: Record supplying source values.
            fallback: Record consulted for source fields ``source`` does not
                carry (the prior snapshot of an update).

        Returns:
            The applied and skipped mappings.
        """
        evaluation = MappingEvaluation()

        for mapping in mappings:
            if mapping.source_field in source:
                origin = source
            elif fallback is not None and mapping.source_field in fallback:
                origin = fallback
            else:
                self._skip(evaluation, mapping, f"source field not present on {source_entity} record", warn=False)
                continue

            source_meta = self._field(source_entity, mapping.source_field)
            if source_meta is None:
                self._skip(evaluation, mapping, f"field '{mapping.source_field}' does not exist on '{source_entity}'")
                continue
            target_meta = self._field(target_entity, mapping.target_field)
            if target_meta is None:
                self._skip(evaluation, mapping, f"field '{mapping.target_field}' does not exist on '{target_entity}'")
                continue

            compatibility = check_compatibility(source_meta, target_meta)
            if not compatibility:
                self._skip(evaluation, mapping, f"incompatible types: {compatibility.reason}")
                continue

            raw = origin.get(mapping.source_field)
            formatted = origin.formatted_values.get(mapping.source_field)
            try:
                value = convert_value(raw, source_meta, target_meta, formatted)
            except (ValueError, TypeError, OverflowError) as e:
                self._skip(evaluation, mapping, f"conversion failed: {e}")
                continue

            if self._truncated(value, raw, formatted):
                self.tracer.warning(
                    f"Value for {target_entity}.{mapping.target_field} truncated to {target_meta.max_length} characters"
                )
            evaluation.applied.append(AppliedMapping(mapping, value))
            self.tracer.debug(
                f"Mapping: {mapping.source_field} -> {mapping.target_field} = {value!r} ({compatibility.reason})"
            )

        return evaluation

    @staticmethod
    def _truncated(value: Any, raw: Any, formatted: Optional[str]) -> bool:
        if not isinstance(value, str):
            return False
        full = raw if isinstance(raw, str) else to_text(raw, formatted)
        return full is not None and len(value) < len(full)

    def _field(self, entity_name: str, field_name: str) -> Optional[FieldMetadata]:
        try:
            return self.metadata.get_field(entity_name, field_name)
        except MetadataStoreError as e:
            self.tracer.warning(f"Unable to retrieve metadata for {entity_name}.{field_name}: {e}")
            return None

    def _skip(self, evaluation: MappingEvaluation, mapping: FieldMapping, reason: str, warn: bool = True) -> None:
        skipped = SkippedMapping(mapping, reason)
        evaluation.skipped.append(skipped)
        if warn:
            self.tracer.warning(f"Mapping skipped: {skipped.describe()}")
        else:
            self.tracer.debug(f"Mapping skipped: {skipped.describe()}")
