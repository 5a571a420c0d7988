"""Configuration classes for the cascade-fields engine.

This module defines the typed form of one parent-entity cascade configuration:
the parent record type, the related child record types, how their children
are located, which children qualify, and the source -> target field mappings.

The wire format is the camelCase JSON document produced by the configurator::

    {
      "id": "...", "name": "...", "parentEntity": "account",
      "isActive": true, "enableTracing": true,
      "relatedEntities": [
        {"entityName": "contact", "relationshipName": null,
         "lookupFieldName": "parentcustomerid", "useRelationship": false,
         "filterCriteria": "statecode|eq|0",
         "fieldMappings": [{"sourceField": "address1_city",
                            "targetField": "address1_city",
                            "isTriggerField": true}]}
      ]
    }
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from cascade_fields.core.errors import ConfigurationError

try:
    import yaml

    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False

_LOGICAL_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _require_name(data: Dict[str, Any], key: str, path: str) -> str:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigurationError(f"'{key}' is required", _join(path, key))
    return _check_name(value, _join(path, key))


def _optional_name(data: Dict[str, Any], key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return _check_name(value, _join(path, key))


def _check_name(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"expected a string, got {type(value).__name__}", path)
    value = value.strip()
    if not _LOGICAL_NAME.match(value):
        raise ConfigurationError(f"'{value}' is not a valid logical name", path)
    return value


def _optional_bool(data: Dict[str, Any], key: str, default: bool, path: str) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(f"expected a boolean, got {type(value).__name__}", _join(path, key))
    return value


def _optional_str(data: Dict[str, Any], key: str, default: Optional[str], path: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigurationError(f"expected a string, got {type(value).__name__}", _join(path, key))
    return value


def _require_list(data: Dict[str, Any], key: str, path: str) -> List[Any]:
    location = _join(path, key)
    if key not in data or data[key] is None:
        raise ConfigurationError(f"'{key}' is required", location)
    if not isinstance(data[key], list):
        raise ConfigurationError(f"expected a list, got {type(data[key]).__name__}", location)
    return data[key]


def _require_object(data: Any, path: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigurationError(f"expected an object, got {type(data).__name__}", path)
    return data


@dataclass(frozen=True)
class FieldMapping:
    """Maps a field on the parent record to a field on the child record.

    Attributes:
        source_field: Field name on the parent record type.
        target_field: Field name on the child record type.
        is_trigger_field: Whether a change of the source field starts a cascade.
    """

    source_field: str
    target_field: str
    is_trigger_field: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert mapping to its wire form."""
        return {
            "sourceField": self.source_field,
            "targetField": self.target_field,
            "isTriggerField": self.is_trigger_field,
        }

    @classmethod
    def from_dict(cls, data: Any, path: str = "fieldMapping") -> "FieldMapping":
        """Create mapping from its wire form."""
        data = _require_object(data, path)
        return cls(
            source_field=_require_name(data, "sourceField", path),
            target_field=_require_name(data, "targetField", path),
            is_trigger_field=_optional_bool(data, "isTriggerField", False, path),
        )


@dataclass(frozen=True)
class RelationshipResolution:
    """Locate children through a declared one-to-many relationship."""

    relationship_name: str


@dataclass(frozen=True)
class LookupFieldResolution:
    """Locate children by equality on a parent-link field of the child."""

    lookup_field: str


Resolution = Union[RelationshipResolution, LookupFieldResolution]


@dataclass(frozen=True)
class RelatedEntityConfig:
    """Cascade settings for one child record type of the parent.

    Attributes:
        entity_name: Logical name of the child record type.
        relationship_name: One-to-many relationship from parent to child.
        lookup_field_name: Field on the child that references the parent.
        use_relationship: Locate children through the relationship (True) or
            by querying the lookup field (False).
        filter_criteria: Optional filter expression restricting children.
        field_mappings: Ordered source -> target mappings.
    """

    entity_name: str
    relationship_name: Optional[str] = None
    lookup_field_name: Optional[str] = None
    use_relationship: bool = True
    filter_criteria: Optional[str] = None
    field_mappings: List[FieldMapping] = field(default_factory=list)

    def __post_init__(self):
        """Validate related entity configuration."""
        if self.use_relationship and not self.relationship_name:
            raise ConfigurationError("'relationshipName' is required when 'useRelationship' is true")
        if not self.use_relationship and not self.lookup_field_name:
            raise ConfigurationError("'lookupFieldName' is required when 'useRelationship' is false")

        seen: Dict[str, int] = {}
        for index, mapping in enumerate(self.field_mappings):
            key = mapping.target_field.lower()
            if key in seen:
                raise ConfigurationError(
                    f"target field '{mapping.target_field}' is already mapped by fieldMappings[{seen[key]}]",
                    f"fieldMappings[{index}].targetField",
                )
            seen[key] = index

    @property
    def resolution(self) -> Resolution:
        """Strategy used to locate candidate children."""
        if self.use_relationship:
            return RelationshipResolution(self.relationship_name)
        return LookupFieldResolution(self.lookup_field_name)

    @property
    def trigger_mappings(self) -> List[FieldMapping]:
        return [m for m in self.field_mappings if m.is_trigger_field]

    @property
    def source_fields(self) -> List[str]:
        """Distinct source fields in mapping order."""
        fields: List[str] = []
        for mapping in self.field_mappings:
            if mapping.source_field not in fields:
                fields.append(mapping.source_field)
        return fields

    def to_dict(self) -> Dict[str, Any]:
        """Convert related entity config to its wire form."""
        return {
            "entityName": self.entity_name,
            "relationshipName": self.relationship_name,
            "lookupFieldName": self.lookup_field_name,
            "useRelationship": self.use_relationship,
            "filterCriteria": self.filter_criteria,
            "fieldMappings": [m.to_dict() for m in self.field_mappings],
        }

    @classmethod
    def from_dict(cls, data: Any, path: str = "relatedEntity") -> "RelatedEntityConfig":
        """Create related entity config from its wire form."""
        data = _require_object(data, path)
        entity_name = _require_name(data, "entityName", path)
        mappings = [
            FieldMapping.from_dict(item, f"{path}.fieldMappings[{i}]")
            for i, item in enumerate(_require_list(data, "fieldMappings", path))
        ]
        filter_criteria = _optional_str(data, "filterCriteria", None, path)
        try:
            return cls(
                entity_name=entity_name,
                relationship_name=_optional_name(data, "relationshipName", path),
                lookup_field_name=_optional_name(data, "lookupFieldName", path),
                use_relationship=_optional_bool(data, "useRelationship", True, path),
                filter_criteria=filter_criteria if filter_criteria and filter_criteria.strip() else None,
                field_mappings=mappings,
            )
        except ConfigurationError as e:
            raise ConfigurationError(e.reason, f"{path}.{e.path}" if e.path else path) from None


@dataclass(frozen=True)
class CascadeConfiguration:
    """Complete cascade configuration for one parent record type.

    Immutable for the duration of an invocation. An empty
    ``related_entities`` list is valid but inert.

    Attributes:
        parent_entity: Logical name of the parent record type.
        id: Configuration identifier.
        name: Display name.
        is_active: Whether the configuration runs at all.
        enable_tracing: Whether verbose diagnostics are recorded.
        related_entities: Ordered child record type configurations.
    """

    parent_entity: str
    id: str = ""
    name: str = ""
    is_active: bool = True
    enable_tracing: bool = True
    related_entities: List[RelatedEntityConfig] = field(default_factory=list)

    def __post_init__(self):
        """Validate cascade configuration."""
        if not self.parent_entity or not self.parent_entity.strip():
            raise ConfigurationError("'parentEntity' is required", "parentEntity")

    def is_applicable(self, entity_name: str) -> bool:
        """Whether an event on ``entity_name`` concerns this configuration."""
        if not self.is_active:
            return False
        return self.is_parent_entity(entity_name) or self.is_child_entity(entity_name)

    def is_parent_entity(self, entity_name: str) -> bool:
        return self.parent_entity.lower() == (entity_name or "").lower()

    def is_child_entity(self, entity_name: str) -> bool:
        return bool(self.related_for(entity_name))

    def related_for(self, entity_name: str) -> List[RelatedEntityConfig]:
        """Related configurations targeting ``entity_name``, in order."""
        name = (entity_name or "").lower()
        return [r for r in self.related_entities if r.entity_name.lower() == name]

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to its wire form."""
        return {
            "id": self.id,
            "name": self.name,
            "parentEntity": self.parent_entity,
            "isActive": self.is_active,
            "enableTracing": self.enable_tracing,
            "relatedEntities": [r.to_dict() for r in self.related_entities],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CascadeConfiguration":
        """Create configuration from its wire form.

        Unknown keys are ignored. Missing required keys raise
        ``ConfigurationError`` with the offending path.
        """
        data = _require_object(data, "$")
        parent_entity = _require_name(data, "parentEntity", "")
        related = [
            RelatedEntityConfig.from_dict(item, f"relatedEntities[{i}]")
            for i, item in enumerate(_require_list(data, "relatedEntities", ""))
        ]
        return cls(
            parent_entity=parent_entity,
            id=_optional_str(data, "id", "", "") or "",
            name=_optional_str(data, "name", "", "") or "",
            is_active=_optional_bool(data, "isActive", True, ""),
            enable_tracing=_optional_bool(data, "enableTracing", True, ""),
            related_entities=related,
        )

    @classmethod
    def from_json(cls, text: str) -> "CascadeConfiguration":
        """Parse a configuration blob.

        Raises:
            ConfigurationError: If the blob is empty, not JSON, or invalid.
        """
        if text is None or not str(text).strip():
            raise ConfigurationError("no configuration provided", "$")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})", "$") from e
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "CascadeConfiguration":
        """Load configuration from a JSON or YAML file.

        Args:
            path: Path to configuration file (.json or .yaml/.yml).

        Returns:
            Loaded cascade configuration.

        Raises:
            ConfigurationError: If the file format is unsupported or the
                content is invalid.
            ImportError: If YAML file provided but PyYAML not installed.
        """
        path = Path(path)
        suffix = path.suffix.lower()

        with open(path, "r", encoding="utf-8") as f:
            if suffix == ".json":
                return cls.from_json(f.read())
            elif suffix in (".yaml", ".yml"):
                if not YAML_AVAILABLE:
                    raise ImportError("PyYAML is required to load YAML files. Install with: pip install pyyaml")
                try:
                    data = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"invalid YAML: {e}", "$") from e
                return cls.from_dict(data)
            else:
                raise ConfigurationError(f"unsupported file format: {suffix}. Use .json, .yaml, or .yml", "$")

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to a JSON blob."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Convert configuration to YAML.

        Raises:
            ImportError: If PyYAML is not installed.
        """
        if not YAML_AVAILABLE:
            raise ImportError("PyYAML is required to export to YAML. Install with: pip install pyyaml")
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
