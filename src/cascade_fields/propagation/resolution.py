"""Locating the children of a parent record.

Two strategies exist: a declared one-to-many relationship, or equality on a
parent-link (lookup) field of the child. Both are validated against schema
metadata before any query is issued; a configuration that points at a
relationship or field that does not link the two record types is a
configuration error.
"""

from typing import List, Sequence

from cascade_fields.core.config import LookupFieldResolution, RelatedEntityConfig, RelationshipResolution
from cascade_fields.core.context import EntityReference, Record
from cascade_fields.core.errors import ConfigurationError, MetadataStoreError
from cascade_fields.evaluation.filters import FilterCondition
from cascade_fields.evaluation.types import TypeGroup, type_group
from cascade_fields.stores.base import MetadataStore, RecordStore, RelationshipMetadata


def _same(a: str, b: str) -> bool:
    return (a or "").lower() == (b or "").lower()


def verify_relationship(
    metadata: MetadataStore, relationship_name: str, parent_entity: str, child_entity: str
) -> RelationshipMetadata:
    """Check that ``relationship_name`` links ``parent_entity`` to ``child_entity``.

    Raises:
        ConfigurationError: If the relationship does not exist or links other
            record types.
    """
    try:
        relationship = metadata.get_relationship(relationship_name)
    except MetadataStoreError as e:
        raise ConfigurationError(f"relationship '{relationship_name}' could not be read: {e}") from e
    if relationship is None:
        raise ConfigurationError(f"relationship '{relationship_name}' does not exist")
    if not _same(relationship.referenced_entity, parent_entity) or not _same(
        relationship.referencing_entity, child_entity
    ):
        raise ConfigurationError(
            f"relationship '{relationship_name}' links {relationship.referenced_entity} -> "
            f"{relationship.referencing_entity}, not {parent_entity} -> {child_entity}"
        )
    return relationship


def verify_lookup_field(metadata: MetadataStore, lookup_field: str, parent_entity: str, child_entity: str) -> str:
    """Check that ``lookup_field`` on the child can reference the parent.

    Raises:
        ConfigurationError: If the field does not exist, is not a reference,
            or cannot point at ``parent_entity``.
    """
    try:
        field_meta = metadata.get_field(child_entity, lookup_field)
    except MetadataStoreError as e:
        raise ConfigurationError(f"lookup field '{lookup_field}' could not be read: {e}") from e
    if field_meta is None:
        raise ConfigurationError(f"lookup field '{lookup_field}' does not exist on '{child_entity}'")
    if type_group(field_meta.field_type) != TypeGroup.REFERENCE:
        raise ConfigurationError(f"field '{child_entity}.{lookup_field}' is not a reference field")
    if field_meta.targets and not field_meta.can_reference(parent_entity):
        raise ConfigurationError(
            f"field '{child_entity}.{lookup_field}' cannot reference '{parent_entity}'"
            f" (targets: {', '.join(field_meta.targets)})"
        )
    return lookup_field


def lookup_field_for(related: RelatedEntityConfig, parent_entity: str, metadata: MetadataStore) -> str:
    """Name of the child field that links a child to its parent.

    In relationship mode the field comes from the relationship's metadata;
    in lookup mode it is the configured field.

    Raises:
        ConfigurationError: If the link cannot be established.
    """
    resolution = related.resolution
    if isinstance(resolution, RelationshipResolution):
        relationship = verify_relationship(
            metadata, resolution.relationship_name, parent_entity, related.entity_name
        )
        return relationship.referencing_attribute
    return verify_lookup_field(metadata, resolution.lookup_field, parent_entity, related.entity_name)


def resolve_candidates(
    store: RecordStore,
    metadata: MetadataStore,
    related: RelatedEntityConfig,
    parent: EntityReference,
    conditions: Sequence[FilterCondition] = (),
    columns: Sequence[str] = (),
) -> List[Record]:
    """Children of ``parent`` for one related entity configuration.

    Args:
        store: Record store to query.
        metadata: Metadata store used to validate the link.
        related: Related entity configuration.
        parent: The parent record.
        conditions: Filter conditions the children must satisfy.
        columns: Fields to read on each child.

    Returns:
        Candidate child records.

    Raises:
        ConfigurationError: If the relationship or lookup field does not link
            the parent to the child record type.
    """
    resolution = related.resolution
    if isinstance(resolution, RelationshipResolution):
        verify_relationship(metadata, resolution.relationship_name, parent.entity_name, related.entity_name)
        return list(store.query_by_relationship(resolution.relationship_name, parent, conditions, columns))

    if isinstance(resolution, LookupFieldResolution):
        verify_lookup_field(metadata, resolution.lookup_field, parent.entity_name, related.entity_name)
        return list(
            store.query_by_field(related.entity_name, resolution.lookup_field, parent.id, conditions, columns)
        )

    raise ConfigurationError(f"unsupported resolution: {resolution!r}")
