"""
cascade-fields - Configuration-driven propagation of field values from parent records to child records.

Pushes changed parent values down to existing children after a parent update,
and seeds children with their parent's values when they are created under or
re-linked to a parent.
"""

__version__ = "0.1.0"

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
from cascade_fields.evaluation.filters import (
    FilterCondition,
    FilterEvaluator,
    FilterOperator,
    parse_filter,
    serialize_filter,
)
from cascade_fields.evaluation.types import check_compatibility, convert_value
from cascade_fields.propagation import (
    AttachHandler,
    CascadeExecutor,
    CascadeSummary,
    CandidateOutcome,
    MappingEvaluation,
    OutcomeStatus,
    SkippedMapping,
)
from cascade_fields.stores import (
    FieldMetadata,
    FieldType,
    InMemoryMetadataStore,
    InMemoryRecordStore,
    MetadataStore,
    RecordStore,
    RelationshipMetadata,
)

__all__ = [
    # Version
    "__version__",
    # Engine
    "CascadeEngine",
    "InvocationResult",
    "InvocationStatus",
    "ExecutionMode",
    # Configuration
    "CascadeConfiguration",
    "RelatedEntityConfig",
    "FieldMapping",
    "RelationshipResolution",
    "LookupFieldResolution",
    # Context
    "ExecutionContext",
    "Record",
    "EntityReference",
    "OptionSetValue",
    "Money",
    "Message",
    "Stage",
    # Tracing
    "CascadeTracer",
    "DiagnosticsSink",
    "LoggingSink",
    "MemorySink",
    # Errors
    "CascadeError",
    "ConfigurationError",
    "FilterSyntaxError",
    "RecordStoreError",
    "RecordNotFoundError",
    "MetadataStoreError",
    "CascadeExecutionError",
    # Evaluation
    "FilterCondition",
    "FilterEvaluator",
    "FilterOperator",
    "parse_filter",
    "serialize_filter",
    "check_compatibility",
    "convert_value",
    # Propagation
    "CascadeExecutor",
    "CascadeSummary",
    "CandidateOutcome",
    "OutcomeStatus",
    "AttachHandler",
    "MappingEvaluation",
    "SkippedMapping",
    # Stores
    "RecordStore",
    "MetadataStore",
    "FieldType",
    "FieldMetadata",
    "RelationshipMetadata",
    "InMemoryRecordStore",
    "InMemoryMetadataStore",
]
