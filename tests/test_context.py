"""Tests for execution context and record values."""

import uuid
from decimal import Decimal

from cascade_fields.core.context import (
    EntityReference,
    ExecutionContext,
    Message,
    Money,
    OptionSetValue,
    Record,
    Stage,
)

RECORD_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")


class TestValues:
    """Tests for typed attribute values."""

    def test_entity_reference_equality_ignores_name_and_case(self):
        a = EntityReference("account", RECORD_ID, "Contoso")
        b = EntityReference("Account", RECORD_ID)

        assert a == b
        assert hash(a) == hash(b)

    def test_entity_reference_different_type(self):
        assert EntityReference("account", RECORD_ID) != EntityReference("contact", RECORD_ID)

    def test_money_coerces_to_decimal(self):
        money = Money(12.5)

        assert money.value == Decimal("12.5")
        assert Money("3.10") == Money(Decimal("3.10"))

    def test_option_set_value_equality(self):
        assert OptionSetValue(1) == OptionSetValue(1)
        assert OptionSetValue(1) != OptionSetValue(2)


class TestMessageAndStage:
    """Tests for Message and Stage."""

    def test_message_parse_case_insensitive(self):
        assert Message.parse("update") is Message.UPDATE
        assert Message.parse("CREATE") is Message.CREATE
        assert Message.parse(Message.UPDATE) is Message.UPDATE

    def test_message_parse_unknown(self):
        assert Message.parse("Delete") is None

    def test_stage_values(self):
        assert Stage.PRE_OPERATION == 20
        assert Stage.POST_OPERATION == 40


class TestRecord:
    """Tests for Record class."""

    def test_item_access(self):
        record = Record("contact", RECORD_ID, {"lastname": "Adams"})

        assert "lastname" in record
        assert record["lastname"] == "Adams"
        assert record.get("firstname") is None
        assert record.get("firstname", "n/a") == "n/a"

        record["firstname"] = "Ann"
        assert record.attributes == {"lastname": "Adams", "firstname": "Ann"}

    def test_attributes_are_copied(self):
        attributes = {"lastname": "Adams"}
        record = Record("contact", RECORD_ID, attributes)
        record["lastname"] = "Baker"

        assert attributes == {"lastname": "Adams"}

    def test_project(self):
        record = Record(
            "contact",
            RECORD_ID,
            {"lastname": "Adams", "address1_city": "Austin"},
            {"address1_city": "Austin, TX"},
        )

        projected = record.project(["address1_city", "missing"])

        assert projected.attributes == {"address1_city": "Austin"}
        assert projected.formatted_values == {"address1_city": "Austin, TX"}
        assert projected.id == RECORD_ID

    def test_merged_over(self):
        before = Record("contact", RECORD_ID, {"lastname": "Adams", "statecode": OptionSetValue(0)})
        change = Record("contact", None, {"lastname": "Baker"})

        merged = change.merged_over(before)

        assert merged.id == RECORD_ID
        assert merged.attributes == {"lastname": "Baker", "statecode": OptionSetValue(0)}

    def test_merged_over_none(self):
        change = Record("contact", None, {"lastname": "Baker"})

        assert change.merged_over(None) == change

    def test_get_reference(self):
        record = Record("account", RECORD_ID)

        assert record.get_reference() == EntityReference("account", RECORD_ID)

    def test_to_dict(self):
        record = Record("account", RECORD_ID, {"name": "Contoso"})

        assert record.to_dict() == {
            "entity_name": "account",
            "attributes": {"name": "Contoso"},
            "id": str(RECORD_ID),
        }


class TestExecutionContext:
    """Tests for ExecutionContext class."""

    def test_message_parsed(self):
        context = ExecutionContext("account", "update", 40, 1, Record("account", RECORD_ID))

        assert context.message is Message.UPDATE
        assert context.message_name == "Update"

    def test_unknown_message_kept_raw(self):
        context = ExecutionContext("account", "Assign", 40, 1, Record("account", RECORD_ID))

        assert context.message == "Assign"
        assert context.message_name == "Assign"

    def test_primary_id_from_pre_image(self):
        context = ExecutionContext(
            "account", "Update", 40, 1, Record("account", None), pre_image=Record("account", RECORD_ID)
        )

        assert context.primary_id == RECORD_ID

    def test_primary_id_missing(self):
        context = ExecutionContext("contact", "Create", 20, 1, Record("contact"))

        assert context.primary_id is None
