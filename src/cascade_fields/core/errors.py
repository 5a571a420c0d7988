"""Exception hierarchy for the cascade-fields engine.

Only conditions that abort work are exceptions. Per-mapping skips and
per-candidate failures are reported as values (see ``propagation``).
"""

from typing import Optional


class CascadeError(Exception):
    """Base class for all cascade-fields errors."""


class ConfigurationError(CascadeError, ValueError):
    """Raised when a cascade configuration is malformed or structurally invalid.

    Attributes:
        path: Location of the offending value inside the configuration
            document (e.g. ``relatedEntities[0].fieldMappings[1].targetField``).
        reason: Human readable description of the problem.
    """

    def __init__(self, reason: str, path: str = ""):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}" if path else reason)


class FilterSyntaxError(CascadeError, ValueError):
    """Raised when a filter condition cannot be represented in filter syntax."""


class RecordStoreError(CascadeError):
    """Raised by record store implementations when an operation fails."""


class RecordNotFoundError(RecordStoreError):
    """Raised when a record cannot be retrieved by identifier."""

    def __init__(self, entity_name: str, record_id):
        self.entity_name = entity_name
        self.record_id = record_id
        super().__init__(f"{entity_name} record {record_id} not found")


class MetadataStoreError(CascadeError):
    """Raised by metadata store implementations when metadata cannot be read."""


class CascadeExecutionError(CascadeError, RuntimeError):
    """Host-facing failure signal for unexpected errors during an invocation.

    Wraps the original exception with the invocation's identifying context.
    """

    def __init__(
        self,
        message: str,
        entity_name: Optional[str] = None,
        message_name: Optional[str] = None,
        configuration_id: Optional[str] = None,
    ):
        self.entity_name = entity_name
        self.message_name = message_name
        self.configuration_id = configuration_id
        super().__init__(
            f"{message} (entity={entity_name}, message={message_name}, "
            f"configuration={configuration_id or '<unknown>'})"
        )
