"""Workflow orchestration runtime for FlowFlex messaging.

This package contains:
- schemas: Invocations, results, handles (shared data types)
- retry: RetryPolicy and execute_with_retry()
- registry: Explicit name -> handler tables
- store / broker: In-process invocation store and task queues
- context: The workflow's door to activities, settle waits and fan-out
- worker: Runs invocations from one task queue
- gateway: Idempotent start/lookup/wait entry point

Quick Start:
    from flowflex.registry import build_registry
    from flowflex.runtime import Gateway, LocalBackend, Worker
    from flowflex.runtime.task_queues import ORDER_CONFIRMATION_QUEUE

    registry = build_registry()
    backend = LocalBackend()
    async with Worker(ORDER_CONFIRMATION_QUEUE, registry, backend.store, backend.broker):
        outcome = await Gateway(backend, registry).start('order-confirmation', order, customer, org)
"""

# Re-export commonly used items
from flowflex.runtime.backend import LocalBackend, WorkflowBackend
from flowflex.runtime.errors import (
    ActivityError,
    ActivityFatalError,
    ActivityTransientError,
    BackendUnavailableError,
    DuplicateInvocationError,
    GatewayTimeoutError,
    NotRegisteredError,
    OrchestrationError,
    ValidationError,
)
from flowflex.runtime.gateway import Gateway
from flowflex.runtime.registry import ActivityDefinition, Registry
from flowflex.runtime.retry import DEFAULT_RETRY, GATEWAY_RETRY, NO_RETRY, RetryPolicy, execute_with_retry
from flowflex.runtime.schemas import (
    InvocationStatus,
    RunMode,
    StartOutcome,
    WorkflowHandle,
    WorkflowInvocation,
    WorkflowResult,
    WorkflowType,
)
from flowflex.runtime.worker import Worker

__all__ = [
    'DEFAULT_RETRY',
    'GATEWAY_RETRY',
    'NO_RETRY',
    'ActivityDefinition',
    'ActivityError',
    'ActivityFatalError',
    'ActivityTransientError',
    'BackendUnavailableError',
    'DuplicateInvocationError',
    'Gateway',
    'GatewayTimeoutError',
    'InvocationStatus',
    'LocalBackend',
    'NotRegisteredError',
    'OrchestrationError',
    'Registry',
    'RetryPolicy',
    'RunMode',
    'StartOutcome',
    'ValidationError',
    'Worker',
    'WorkflowBackend',
    'WorkflowHandle',
    'WorkflowInvocation',
    'WorkflowResult',
    'WorkflowType',
    'execute_with_retry',
]
