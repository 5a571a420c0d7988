"""Tests for configuration classes in cascade-fields.

Tests cover:
- FieldMapping and RelatedEntityConfig construction and validation
- CascadeConfiguration loading from dict/JSON/YAML with defaults
- Error paths for missing and malformed values
- Lossless round-trips through the wire format
"""

import json

import pytest

from cascade_fields.core.config import (
    CascadeConfiguration,
    FieldMapping,
    LookupFieldResolution,
    RelatedEntityConfig,
    RelationshipResolution,
)
from cascade_fields.core.errors import ConfigurationError


def _related(**overrides):
    data = {
        "entityName": "contact",
        "lookupFieldName": "parentcustomerid",
        "useRelationship": False,
        "fieldMappings": [{"sourceField": "address1_city", "targetField": "address1_city"}],
    }
    data.update(overrides)
    return data


class TestFieldMapping:
    """Tests for FieldMapping class."""

    def test_from_dict_defaults_trigger_flag(self):
        mapping = FieldMapping.from_dict({"sourceField": "name", "targetField": "description"})

        assert mapping.source_field == "name"
        assert mapping.target_field == "description"
        assert mapping.is_trigger_field is False

    def test_to_dict_uses_wire_names(self):
        mapping = FieldMapping("address1_city", "address1_city", True)

        assert mapping.to_dict() == {
            "sourceField": "address1_city",
            "targetField": "address1_city",
            "isTriggerField": True,
        }

    def test_missing_target_field(self):
        with pytest.raises(ConfigurationError) as exc_info:
            FieldMapping.from_dict({"sourceField": "name"}, "m")

        assert exc_info.value.path == "m.targetField"

    def test_invalid_logical_name(self):
        with pytest.raises(ConfigurationError, match="not a valid logical name"):
            FieldMapping.from_dict({"sourceField": "address 1", "targetField": "x"})

    def test_non_boolean_trigger_flag(self):
        with pytest.raises(ConfigurationError, match="expected a boolean"):
            FieldMapping.from_dict({"sourceField": "a", "targetField": "b", "isTriggerField": "yes"})


class TestRelatedEntityConfig:
    """Tests for RelatedEntityConfig class."""

    def test_lookup_mode_resolution(self):
        related = RelatedEntityConfig.from_dict(_related())

        assert related.use_relationship is False
        assert related.resolution == LookupFieldResolution("parentcustomerid")

    def test_relationship_mode_is_default(self):
        related = RelatedEntityConfig.from_dict(
            {"entityName": "contact", "relationshipName": "contact_customer_accounts", "fieldMappings": []}
        )

        assert related.use_relationship is True
        assert related.resolution == RelationshipResolution("contact_customer_accounts")

    def test_relationship_mode_requires_relationship_name(self):
        with pytest.raises(ConfigurationError, match="'relationshipName' is required"):
            RelatedEntityConfig.from_dict({"entityName": "contact", "fieldMappings": []}, "relatedEntities[0]")

    def test_lookup_mode_requires_lookup_field(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RelatedEntityConfig.from_dict(_related(lookupFieldName=None), "relatedEntities[0]")

        assert exc_info.value.path == "relatedEntities[0]"
        assert "'lookupFieldName' is required" in exc_info.value.reason

    def test_duplicate_target_field_rejected(self):
        data = _related(
            fieldMappings=[
                {"sourceField": "address1_city", "targetField": "address1_city"},
                {"sourceField": "name", "targetField": "Address1_City"},
            ]
        )

        with pytest.raises(ConfigurationError) as exc_info:
            RelatedEntityConfig.from_dict(data, "relatedEntities[0]")

        assert exc_info.value.path == "relatedEntities[0].fieldMappings[1].targetField"

    def test_blank_filter_is_none(self):
        related = RelatedEntityConfig.from_dict(_related(filterCriteria="   "))

        assert related.filter_criteria is None

    def test_trigger_mappings_and_source_fields(self):
        related = RelatedEntityConfig.from_dict(
            _related(
                fieldMappings=[
                    {"sourceField": "address1_city", "targetField": "address1_city", "isTriggerField": True},
                    {"sourceField": "name", "targetField": "description"},
                    {"sourceField": "address1_city", "targetField": "jobtitle"},
                ]
            )
        )

        assert [m.target_field for m in related.trigger_mappings] == ["address1_city"]
        assert related.source_fields == ["address1_city", "name"]

    def test_field_mappings_required(self):
        data = _related()
        del data["fieldMappings"]

        with pytest.raises(ConfigurationError) as exc_info:
            RelatedEntityConfig.from_dict(data, "relatedEntities[2]")

        assert exc_info.value.path == "relatedEntities[2].fieldMappings"


class TestCascadeConfiguration:
    """Tests for CascadeConfiguration class."""

    def test_from_dict(self, config_dict):
        config = CascadeConfiguration.from_dict(config_dict)

        assert config.id == "cfg-account-contact"
        assert config.name == "Account address to contacts"
        assert config.parent_entity == "account"
        assert config.is_active is True
        assert config.enable_tracing is True
        assert len(config.related_entities) == 1
        assert config.related_entities[0].filter_criteria == "statecode|eq|0"

    def test_defaults(self):
        config = CascadeConfiguration.from_dict({"parentEntity": "account", "relatedEntities": []})

        assert config.id == ""
        assert config.name == ""
        assert config.is_active is True
        assert config.enable_tracing is True
        assert config.related_entities == []

    def test_unknown_keys_ignored(self, config_dict):
        config_dict["futureSetting"] = {"nested": True}
        config_dict["relatedEntities"][0]["priority"] = 3

        config = CascadeConfiguration.from_dict(config_dict)

        assert config.parent_entity == "account"

    def test_missing_parent_entity(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CascadeConfiguration.from_dict({"relatedEntities": []})

        assert exc_info.value.path == "parentEntity"
        assert str(exc_info.value) == "parentEntity: 'parentEntity' is required"

    def test_missing_related_entities(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CascadeConfiguration.from_dict({"parentEntity": "account"})

        assert exc_info.value.path == "relatedEntities"

    def test_related_entities_must_be_list(self):
        with pytest.raises(ConfigurationError, match="expected a list"):
            CascadeConfiguration.from_dict({"parentEntity": "account", "relatedEntities": {}})

    def test_nested_error_path(self, config_dict):
        del config_dict["relatedEntities"][0]["fieldMappings"][0]["targetField"]

        with pytest.raises(ConfigurationError) as exc_info:
            CascadeConfiguration.from_dict(config_dict)

        assert exc_info.value.path == "relatedEntities[0].fieldMappings[0].targetField"

    def test_non_boolean_is_active(self, config_dict):
        config_dict["isActive"] = "true"

        with pytest.raises(ConfigurationError) as exc_info:
            CascadeConfiguration.from_dict(config_dict)

        assert exc_info.value.path == "isActive"

    def test_not_an_object(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CascadeConfiguration.from_dict(["account"])

        assert exc_info.value.path == "$"

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            CascadeConfiguration.from_dict({})

    def test_from_json(self, config_dict):
        config = CascadeConfiguration.from_json(json.dumps(config_dict))

        assert config.parent_entity == "account"
        assert config.related_entities[0].lookup_field_name == "parentcustomerid"

    @pytest.mark.parametrize("blob", [None, "", "   "])
    def test_from_json_empty(self, blob):
        with pytest.raises(ConfigurationError, match="no configuration provided"):
            CascadeConfiguration.from_json(blob)

    def test_from_json_invalid(self):
        with pytest.raises(ConfigurationError, match="invalid JSON") as exc_info:
            CascadeConfiguration.from_json("{not json")

        assert exc_info.value.path == "$"

    def test_round_trip_dict(self, configuration):
        assert CascadeConfiguration.from_dict(configuration.to_dict()) == configuration

    def test_round_trip_json(self, configuration):
        assert CascadeConfiguration.from_json(configuration.to_json()) == configuration

    def test_to_dict_wire_shape(self, configuration, config_dict):
        assert configuration.to_dict() == config_dict

    def test_round_trip_yaml(self, configuration, tmp_path):
        pytest.importorskip("yaml")
        path = tmp_path / "cascade.yaml"
        path.write_text(configuration.to_yaml(), encoding="utf-8")

        assert CascadeConfiguration.from_file(path) == configuration

    def test_from_json_file(self, configuration, tmp_path):
        path = tmp_path / "cascade.json"
        path.write_text(configuration.to_json(), encoding="utf-8")

        assert CascadeConfiguration.from_file(path) == configuration

    def test_from_file_unsupported_format(self, tmp_path):
        path = tmp_path / "cascade.txt"
        path.write_text("{}", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="unsupported file format"):
            CascadeConfiguration.from_file(path)

    def test_applicability(self, configuration):
        assert configuration.is_applicable("account")
        assert configuration.is_applicable("Contact")
        assert not configuration.is_applicable("lead")
        assert configuration.is_parent_entity("ACCOUNT")
        assert configuration.is_child_entity("contact")
        assert not configuration.is_child_entity("account")

    def test_inactive_configuration_not_applicable(self, config_dict):
        config_dict["isActive"] = False
        config = CascadeConfiguration.from_dict(config_dict)

        assert not config.is_applicable("account")
        assert not config.is_applicable("contact")

    def test_related_for_keeps_order(self, config_dict):
        second = dict(config_dict["relatedEntities"][0])
        second["filterCriteria"] = None
        config_dict["relatedEntities"].append(second)
        config = CascadeConfiguration.from_dict(config_dict)

        related = config.related_for("CONTACT")

        assert [r.filter_criteria for r in related] == ["statecode|eq|0", None]
