"""Tests for change detection and the trigger gate."""

import uuid

import pytest

from cascade_fields.core.config import FieldMapping, RelatedEntityConfig
from cascade_fields.core.context import Record
from cascade_fields.evaluation.changes import evaluate_trigger, field_changed

ACCOUNT_ID = uuid.uuid4()


def _related(*mappings):
    return RelatedEntityConfig(
        entity_name="contact",
        lookup_field_name="parentcustomerid",
        use_relationship=False,
        field_mappings=list(mappings),
    )


def _records(after, before):
    return Record("account", ACCOUNT_ID, after), Record("account", ACCOUNT_ID, before)


class TestFieldChanged:
    """Tests for field_changed."""

    def test_changed_value(self):
        target, pre = _records({"address1_city": "Denver"}, {"address1_city": "Austin"})

        assert field_changed("address1_city", target, pre)

    def test_same_value(self):
        target, pre = _records({"address1_city": "Austin"}, {"address1_city": "Austin"})

        assert not field_changed("address1_city", target, pre)

    def test_field_not_in_update(self):
        target, pre = _records({"name": "Contoso"}, {"address1_city": "Austin"})

        assert not field_changed("address1_city", target, pre)

    def test_newly_set(self):
        target, pre = _records({"address1_city": "Denver"}, {})

        assert field_changed("address1_city", target, pre)

    def test_newly_cleared(self):
        target, pre = _records({"address1_city": None}, {"address1_city": "Austin"})

        assert field_changed("address1_city", target, pre)

    def test_cleared_field_that_was_null(self):
        target, pre = _records({"address1_city": None}, {})

        assert not field_changed("address1_city", target, pre)

    def test_without_pre_image(self):
        target = Record("account", ACCOUNT_ID, {"address1_city": "Denver"})

        assert field_changed("address1_city", target, None)


class TestTriggerGate:
    """Tests for evaluate_trigger."""

    @pytest.fixture
    def flagged(self):
        return _related(
            FieldMapping("address1_city", "address1_city", is_trigger_field=True),
            FieldMapping("name", "description"),
        )

    @pytest.fixture
    def unflagged(self):
        return _related(
            FieldMapping("address1_city", "address1_city"),
            FieldMapping("name", "description"),
        )

    def test_trigger_field_change_fires(self, flagged):
        target, pre = _records({"address1_city": "Denver"}, {"address1_city": "Austin"})

        decision = evaluate_trigger(flagged, target, pre)

        assert decision.triggered
        assert decision.changed_fields == ("address1_city",)
        assert not decision.implicit

    def test_non_trigger_mapped_change_does_not_fire(self, flagged):
        target, pre = _records({"name": "Fabrikam"}, {"name": "Contoso"})

        decision = evaluate_trigger(flagged, target, pre)

        assert not decision.triggered
        assert decision.describe() == "no trigger field changed"

    def test_any_mapped_field_fires_when_none_flagged(self, unflagged):
        target, pre = _records({"name": "Fabrikam"}, {"name": "Contoso"})

        decision = evaluate_trigger(unflagged, target, pre)

        assert decision.triggered
        assert decision.implicit
        assert decision.describe() == "mapped fields changed: name"

    def test_unmapped_field_does_not_fire(self, unflagged):
        target, pre = _records({"telephone1": "555-0100"}, {"telephone1": "555-0199"})

        assert not evaluate_trigger(unflagged, target, pre).triggered

    def test_unchanged_value_does_not_fire(self, flagged):
        target, pre = _records({"address1_city": "Austin"}, {"address1_city": "Austin"})

        assert not evaluate_trigger(flagged, target, pre).triggered

    def test_no_mappings_never_fires(self):
        target, pre = _records({"address1_city": "Denver"}, {"address1_city": "Austin"})

        assert not evaluate_trigger(_related(), target, pre).triggered
