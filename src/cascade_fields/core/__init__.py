"""Core module for the cascade-fields engine.

This module provides the configuration model, execution context, tracing,
error hierarchy and the execution gate that dispatches each invocation.
"""

from cascade_fields.core.config import (
    CascadeConfiguration,
    FieldMapping,
    LookupFieldResolution,
    RelatedEntityConfig,
    RelationshipResolution,
)
from cascade_fields.core.context import (
    EntityReference,
    ExecutionContext,
    Message,
    Money,
    OptionSetValue,
    Record,
    Stage,
)
from cascade_fields.core.errors import (
    CascadeError,
    CascadeExecutionError,
    ConfigurationError,
    FilterSyntaxError,
    MetadataStoreError,
    RecordNotFoundError,
    RecordStoreError,
)
from cascade_fields.core.tracing import CascadeTracer, DiagnosticsSink, LoggingSink, MemorySink
from cascade_fields.core.engine import CascadeEngine, ExecutionMode, InvocationResult, InvocationStatus

__all__ = [
    "CascadeEngine",
    "InvocationResult",
    "InvocationStatus",
    "ExecutionMode",
    "CascadeConfiguration",
    "RelatedEntityConfig",
    "FieldMapping",
    "RelationshipResolution",
    "LookupFieldResolution",
    "ExecutionContext",
    "Record",
    "EntityReference",
    "OptionSetValue",
    "Money",
    "Message",
    "Stage",
    "CascadeTracer",
    "DiagnosticsSink",
    "LoggingSink",
    "MemorySink",
    "CascadeError",
    "ConfigurationError",
    "FilterSyntaxError",
    "RecordStoreError",
    "RecordNotFoundError",
    "MetadataStoreError",
    "CascadeExecutionError",
]
