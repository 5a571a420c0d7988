"""Change detection for parent-side cascades.

Decides, once per related entity configuration, whether an update of the
parent changed anything worth cascading.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from cascade_fields.core.config import RelatedEntityConfig
from cascade_fields.core.context import Record


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of the trigger gate for one related entity configuration.

    Attributes:
        triggered: Whether the cascade should run.
        changed_fields: Watched source fields whose value changed.
        implicit: True when no mapping is flagged as trigger and every mapped
            source field was watched instead.
    """

    triggered: bool
    changed_fields: Tuple[str, ...] = ()
    implicit: bool = False

    def describe(self) -> str:
        watched = "mapped" if self.implicit else "trigger"
        if not self.triggered:
            return f"no {watched} field changed"
        return f"{watched} fields changed: {', '.join(self.changed_fields)}"


def field_changed(field: str, target: Record, pre_image: Optional[Record]) -> bool:
    """Whether ``field`` changed between the prior snapshot and the update.

    Only fields carried by the update can have changed. A field absent from
    the prior snapshot was null, so setting it counts as a change and
    clearing it does not. Without any snapshot a carried field counts as
    changed.
    """
    if field not in target:
        return False
    if pre_image is None:
        return True
    return target.get(field) != pre_image.get(field)


def evaluate_trigger(related: RelatedEntityConfig, target: Record, pre_image: Optional[Record]) -> TriggerDecision:
    """Run the trigger gate for one related entity configuration.

    If any mapping is flagged as a trigger, only trigger fields are watched.
    Otherwise every mapped source field is watched.
    """
    triggers = related.trigger_mappings
    implicit = not triggers
    watched = related.source_fields if implicit else []
    if not implicit:
        for mapping in triggers:
            if mapping.source_field not in watched:
                watched.append(mapping.source_field)

    changed = tuple(f for f in watched if field_changed(f, target, pre_image))
    return TriggerDecision(triggered=bool(changed), changed_fields=changed, implicit=implicit)
