"""Cascade execution gate.

This module provides the entry point the host pipeline calls once per
lifecycle event. The gate is the only place that inspects pipeline
coordinates (message, stage, depth); it enforces the recursion ceiling,
loads the configuration, switches tracing verbosity and dispatches to the
parent-side executor or the child-side attach handler.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from cascade_fields.core.config import CascadeConfiguration
from cascade_fields.core.context import ExecutionContext, Message, Stage
from cascade_fields.core.errors import CascadeExecutionError, ConfigurationError
from cascade_fields.core.tracing import CascadeTracer, DiagnosticsSink, LoggingSink
from cascade_fields.evaluation.filters import FilterEvaluator
from cascade_fields.propagation.child import AttachHandler, AttachResult
from cascade_fields.propagation.parent import CascadeExecutor, CascadeSummary
from cascade_fields.stores.base import MetadataStore, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 2

ConfigurationSource = Union[CascadeConfiguration, str, Dict[str, Any]]


class InvocationStatus(str, Enum):
    """How an invocation ended."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    DEPTH_EXCEEDED = "depth_exceeded"
    CONFIGURATION_ERROR = "configuration_error"


class ExecutionMode(str, Enum):
    """Which handler an invocation was dispatched to."""

    NONE = "none"
    PARENT = "parent"
    CHILD = "child"


@dataclass
class InvocationResult:
    """Result of one engine invocation.

    Attributes:
        status: How the invocation ended.
        mode: Handler the invocation was dispatched to.
        summaries: Parent-side summaries, one per related entity configuration.
        applied_values: Child-side values copied onto the child record.
        message: Short explanation for skipped or failed invocations.
        attach: Full child-side result, when the child handler ran.
    """

    status: InvocationStatus
    mode: ExecutionMode = ExecutionMode.NONE
    summaries: List[CascadeSummary] = field(default_factory=list)
    applied_values: Dict[str, Any] = field(default_factory=dict)
    message: str = ""
    attach: Optional[AttachResult] = None

    @property
    def attempted(self) -> int:
        return sum(s.attempted for s in self.summaries)

    @property
    def succeeded(self) -> int:
        return sum(s.succeeded for s in self.summaries)

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.summaries)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "status": self.status.value,
            "mode": self.mode.value,
            "message": self.message,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "summaries": [s.to_dict() for s in self.summaries],
            "attach": self.attach.to_dict() if self.attach else None,
        }


class CascadeEngine:
    """Entry point for cascade invocations.

    The engine holds only its collaborators and tunables; every invocation
    builds its own tracer, configuration and handlers, so independent
    invocations may run concurrently.

    Uses __slots__ for memory efficiency.

    Attributes:
        records: Record store of the host platform.
        metadata: Metadata store of the host platform.
        sink: Diagnostics sink receiving trace lines.
        max_depth: Highest recursion depth that still runs.
        parent_stage: Stage the parent-side cascade is registered at.
        child_stage: Stage the child-side handler is registered at; writes at
            this stage go onto the in-flight record.
    """

    __slots__ = ("records", "metadata", "sink", "max_depth", "parent_stage", "child_stage")

    def __init__(
        self,
        record_store: RecordStore,
        metadata_store: MetadataStore,
        sink: Optional[DiagnosticsSink] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        parent_stage: int = Stage.POST_OPERATION,
        child_stage: int = Stage.PRE_OPERATION,
    ):
        """Initialize cascade engine.

        Args:
            record_store: Record query and update capability.
            metadata_store: Schema metadata capability.
            sink: Diagnostics sink; defaults to a ``LoggingSink``.
            max_depth: Recursion ceiling.
            parent_stage: Expected stage of parent updates.
            child_stage: Expected stage of child creates and updates.
        """
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.records = record_store
        self.metadata = metadata_store
        self.sink = sink if sink is not None else LoggingSink()
        self.max_depth = max_depth
        self.parent_stage = parent_stage
        self.child_stage = child_stage

    @staticmethod
    def load_configuration(configuration: ConfigurationSource) -> CascadeConfiguration:
        """Turn a configuration source into a ``CascadeConfiguration``.

        Raises:
            ConfigurationError: If the configuration is missing or invalid.
        """
        if isinstance(configuration, CascadeConfiguration):
            return configuration
        if isinstance(configuration, dict):
            return CascadeConfiguration.from_dict(configuration)
        if configuration is None or isinstance(configuration, str):
            return CascadeConfiguration.from_json(configuration)
        raise ConfigurationError(f"unsupported configuration source: {type(configuration).__name__}", "$")

    def execute(self, configuration: ConfigurationSource, context: ExecutionContext) -> InvocationResult:
        """Run one invocation.

        Args:
            configuration: Configuration object, JSON blob or parsed document.
            context: Execution context supplied by the host.

        Returns:
            The invocation result. Depth, configuration and applicability
            problems are reported here, never raised.

        Raises:
            CascadeExecutionError: If an unexpected error occurs.
        """
        tracer = CascadeTracer(self.sink)

        if context.depth > self.max_depth:
            tracer.warning(
                f"Depth {context.depth} exceeds maximum {self.max_depth}, exiting to prevent infinite loop"
            )
            return InvocationResult(
                InvocationStatus.DEPTH_EXCEEDED,
                message=f"depth {context.depth} exceeds maximum {self.max_depth}",
            )

        tracer.info("=== Execution Started ===")

        loaded: Optional[CascadeConfiguration] = None
        try:
            tracer.log_context(context)
            loaded = self.load_configuration(configuration)
            tracer.set_enabled(loaded.enable_tracing)
            tracer.info(
                f"Configuration loaded: {loaded.name or loaded.id or loaded.parent_entity} "
                f"({len(loaded.related_entities)} related entity configuration(s))"
            )
            result = self._dispatch(loaded, context, tracer)
        except ConfigurationError as e:
            tracer.error("Invalid cascade configuration, no cascade performed", e)
            return InvocationResult(InvocationStatus.CONFIGURATION_ERROR, message=str(e))
        except Exception as e:
            tracer.error("Unexpected error during cascade", e)
            logger.error(f"Cascade failed for {context.entity_name} {context.message_name}: {e}", exc_info=True)
            raise CascadeExecutionError(
                f"Cascade failed: {e}",
                entity_name=context.entity_name,
                message_name=context.message_name,
                configuration_id=loaded.id if loaded is not None else None,
            ) from e

        tracer.info(f"=== Execution Completed: {result.status.value} ===")
        return result

    def _dispatch(
        self, configuration: CascadeConfiguration, context: ExecutionContext, tracer: CascadeTracer
    ) -> InvocationResult:
        entity_name = context.entity_name

        if not configuration.is_active:
            tracer.info("Configuration is inactive")
            return InvocationResult(InvocationStatus.SKIPPED, message="configuration is inactive")
        if not configuration.is_applicable(entity_name):
            tracer.info(f"Configuration does not apply to {entity_name}")
            return InvocationResult(InvocationStatus.SKIPPED, message=f"not applicable to {entity_name}")
        if context.target is None:
            tracer.warning("No target record in execution context")
            return InvocationResult(InvocationStatus.SKIPPED, message="no target record")

        evaluator = FilterEvaluator()

        if configuration.is_parent_entity(entity_name) and context.message == Message.UPDATE:
            if context.stage != self.parent_stage:
                tracer.warning(
                    f"Parent cascade expected at stage {int(self.parent_stage)}, running at {int(context.stage)}"
                )
            if context.pre_image is None:
                tracer.warning("No pre-image available, every field in the update is treated as changed")
            executor = CascadeExecutor(self.records, self.metadata, tracer, evaluator)
            summaries = executor.execute(configuration, context.target, context.pre_image)
            return InvocationResult(InvocationStatus.COMPLETED, ExecutionMode.PARENT, summaries=summaries)

        if configuration.is_child_entity(entity_name) and context.message in (Message.CREATE, Message.UPDATE):
            if context.stage != self.child_stage:
                tracer.warning(
                    f"Child handler expected at stage {int(self.child_stage)}, running at {int(context.stage)}"
                )
            handler = AttachHandler(self.records, self.metadata, tracer, evaluator, in_flight_stage=self.child_stage)
            attach = handler.handle(configuration, context)
            return InvocationResult(
                InvocationStatus.COMPLETED,
                ExecutionMode.CHILD,
                applied_values=dict(attach.applied_values),
                attach=attach,
            )

        tracer.info(f"No applicable execution mode for {entity_name} {context.message_name}")
        return InvocationResult(
            InvocationStatus.SKIPPED,
            message=f"no handler for {entity_name} {context.message_name}",
        )
