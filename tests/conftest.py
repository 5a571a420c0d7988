"""Pytest fixtures for cascade-fields tests.

This module provides in-memory stores seeded with ``account``/``contact``
metadata and records, a memory diagnostics sink, and the account -> contact
configuration used by the end-to-end scenarios.
"""

import uuid
from decimal import Decimal
from typing import Any, Dict

import pytest

from cascade_fields.core.config import CascadeConfiguration
from cascade_fields.core.context import EntityReference, ExecutionContext, Money, OptionSetValue, Record
from cascade_fields.core.engine import CascadeEngine
from cascade_fields.core.tracing import CascadeTracer, MemorySink
from cascade_fields.stores.base import FieldType
from cascade_fields.stores.memory import InMemoryMetadataStore, InMemoryRecordStore

ACCOUNT_X = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
ACCOUNT_Y = uuid.UUID("00000000-0000-0000-0000-0000000000a2")
ACCOUNT_MIAMI = uuid.UUID("00000000-0000-0000-0000-0000000000a3")
CONTACT_1 = uuid.UUID("00000000-0000-0000-0000-0000000000c1")
CONTACT_2 = uuid.UUID("00000000-0000-0000-0000-0000000000c2")
CONTACT_INACTIVE = uuid.UUID("00000000-0000-0000-0000-0000000000c3")


def account_ref(record_id: uuid.UUID, name: str = None) -> EntityReference:
    return EntityReference("account", record_id, name)


@pytest.fixture
def metadata() -> InMemoryMetadataStore:
    """Metadata for account and contact, plus the customer relationship."""
    store = InMemoryMetadataStore()

    store.add_field("account", "name", FieldType.STRING, max_length=160)
    store.add_field("account", "address1_city", FieldType.STRING, max_length=80)
    store.add_field("account", "revenue", FieldType.MONEY)
    store.add_field("account", "numberofemployees", FieldType.INTEGER)
    store.add_field("account", "industrycode", FieldType.PICKLIST)
    store.add_field("account", "creditonhold", FieldType.BOOLEAN)
    store.add_field("account", "statecode", FieldType.STATE)
    store.add_field("account", "primarycontactid", FieldType.LOOKUP, targets=["contact"])
    store.add_field("account", "description", FieldType.MEMO, max_length=2000)

    store.add_field("contact", "lastname", FieldType.STRING, max_length=50)
    store.add_field("contact", "address1_city", FieldType.STRING, max_length=80)
    store.add_field("contact", "jobtitle", FieldType.STRING, max_length=10)
    store.add_field("contact", "description", FieldType.MEMO, max_length=2000)
    store.add_field("contact", "creditlimit", FieldType.MONEY)
    store.add_field("contact", "numberofchildren", FieldType.INTEGER)
    store.add_field("contact", "preferredcontactmethodcode", FieldType.PICKLIST)
    store.add_field("contact", "donotemail", FieldType.BOOLEAN)
    store.add_field("contact", "statecode", FieldType.STATE)
    store.add_field("contact", "fullname", FieldType.STRING, writable=False, max_length=160)
    store.add_field("contact", "parentcustomerid", FieldType.CUSTOMER, targets=["account", "contact"])
    store.add_field("contact", "managerid", FieldType.LOOKUP, targets=["contact"])

    store.add_relationship("contact_customer_accounts", "account", "contact", "parentcustomerid")
    store.add_relationship("contact_managers", "contact", "contact", "managerid")
    return store


@pytest.fixture
def records(metadata) -> InMemoryRecordStore:
    """Record store with three accounts and three contacts of account X."""
    store = InMemoryRecordStore(metadata)

    store.add(Record("account", ACCOUNT_X, {"name": "Contoso", "address1_city": "Austin"}))
    store.add(
        Record(
            "account",
            ACCOUNT_Y,
            {"name": "Fabrikam", "address1_city": "Denver", "revenue": Money(Decimal("1500000.00"))},
        )
    )
    store.add(Record("account", ACCOUNT_MIAMI, {"name": "Northwind", "address1_city": "Miami"}))

    store.add(
        Record(
            "contact",
            CONTACT_1,
            {"lastname": "Adams", "address1_city": "Austin", "statecode": OptionSetValue(0),
             "parentcustomerid": account_ref(ACCOUNT_X)},
        )
    )
    store.add(
        Record(
            "contact",
            CONTACT_2,
            {"lastname": "Baker", "address1_city": "Austin", "statecode": OptionSetValue(0),
             "parentcustomerid": account_ref(ACCOUNT_X)},
        )
    )
    store.add(
        Record(
            "contact",
            CONTACT_INACTIVE,
            {"lastname": "Clark", "address1_city": "Austin", "statecode": OptionSetValue(1),
             "parentcustomerid": account_ref(ACCOUNT_X)},
        )
    )
    return store


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def tracer(sink) -> CascadeTracer:
    return CascadeTracer(sink)


@pytest.fixture
def config_dict() -> Dict[str, Any]:
    """Account -> contact configuration in wire form (lookup mode)."""
    return {
        "id": "cfg-account-contact",
        "name": "Account address to contacts",
        "parentEntity": "account",
        "isActive": True,
        "enableTracing": True,
        "relatedEntities": [
            {
                "entityName": "contact",
                "relationshipName": None,
                "lookupFieldName": "parentcustomerid",
                "useRelationship": False,
                "filterCriteria": "statecode|eq|0",
                "fieldMappings": [
                    {
                        "sourceField": "address1_city",
                        "targetField": "address1_city",
                        "isTriggerField": True,
                    }
                ],
            }
        ],
    }


@pytest.fixture
def configuration(config_dict) -> CascadeConfiguration:
    return CascadeConfiguration.from_dict(config_dict)


@pytest.fixture
def engine(records, metadata, sink) -> CascadeEngine:
    return CascadeEngine(records, metadata, sink)


@pytest.fixture
def parent_update():
    """Factory for a post-operation update of account X."""

    def _make(changes: Dict[str, Any], before: Dict[str, Any], depth: int = 1) -> ExecutionContext:
        return ExecutionContext(
            entity_name="account",
            message="Update",
            stage=40,
            depth=depth,
            target=Record("account", ACCOUNT_X, changes),
            pre_image=Record("account", ACCOUNT_X, before),
        )

    return _make
