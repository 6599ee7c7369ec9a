"""Request and response bodies of the HTTP API."""

from datetime import datetime
from typing import Any

from pydantic import Field

from flowflex.runtime.schemas import (
    CamelModel,
    InvocationStatus,
    RunMode,
    StartOutcome,
    WorkflowInvocation,
    WorkflowProgress,
    WorkflowResult,
    WorkflowType,
)


class StartWorkflowRequest(CamelModel):
    """Start request, shared by every workflow type.

    `business_entity` is the order, catalogue or product; `customer` the
    recipient (a list of recipients for broadcasts). `extra` carries the
    type-specific rest: the message config for catalogue workflows,
    `variants` and `subscriptions` for back-in-stock.
    """

    business_entity: Any = None
    customer: Any = None
    org_context: Any = None
    extra: dict[str, Any] = Field(default_factory=dict)
    mode: RunMode | None = None
    timeout_seconds: float | None = Field(None, gt=0)

    def workflow_args(self, workflow_type: WorkflowType, shop_domain: str | None = None) -> tuple[Any, ...]:
        """Positional workflow arguments for `workflow_type`."""
        org = self.org_context
        if shop_domain and isinstance(org, dict) and not org.get('shopDomain'):
            org = {**org, 'shopDomain': shop_domain}

        if workflow_type in (WorkflowType.ORDER_CONFIRMATION, WorkflowType.ORDER_CANCELLATION):
            return (self.business_entity, self.customer, org)
        if workflow_type in (WorkflowType.CATALOGUE_MESSAGING, WorkflowType.CATALOGUE_BROADCAST):
            return (self.customer, self.business_entity, org, self.extra)
        if workflow_type == WorkflowType.BACK_IN_STOCK:
            return (self.business_entity, self.extra.get('variants'), self.extra.get('subscriptions'), org, self.extra)
        if workflow_type == WorkflowType.BACK_IN_STOCK_NOTIFICATION:
            return (self.business_entity, self.extra.get('variants'), self.customer, org, self.extra)
        raise ValueError(f'Unsupported workflow type: {workflow_type}')


class StartWorkflowResponse(CamelModel):
    success: bool
    workflow_id: str
    status: InvocationStatus
    deduplicated: bool = False
    message: str | None = None
    result: WorkflowResult | None = None

    @classmethod
    def from_outcome(cls, outcome: StartOutcome) -> 'StartWorkflowResponse':
        if outcome.result is not None:
            return cls(
                success=outcome.result.success,
                workflow_id=outcome.workflow_id,
                status=outcome.handle.status,
                deduplicated=outcome.deduplicated,
                message=outcome.result.message,
                result=outcome.result,
            )
        return cls(
            success=True,
            workflow_id=outcome.workflow_id,
            status=outcome.handle.status,
            deduplicated=outcome.deduplicated,
            message='Workflow started; poll its workflow ID for the result',
        )


class WorkflowStatusResponse(CamelModel):
    workflow_id: str
    workflow_type: WorkflowType
    task_queue: str
    status: InvocationStatus
    result: WorkflowResult | None = None
    attempts: int = Field(0, description='Activity attempts recorded for the invocation')
    progress: WorkflowProgress = Field(default_factory=WorkflowProgress)
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_invocation(cls, invocation: WorkflowInvocation) -> 'WorkflowStatusResponse':
        return cls(
            workflow_id=invocation.workflow_id,
            workflow_type=invocation.workflow_type,
            task_queue=invocation.task_queue,
            status=invocation.status,
            result=invocation.outcome,
            attempts=len(invocation.attempts),
            progress=invocation.progress,
            created_at=invocation.created_at,
            completed_at=invocation.completed_at,
        )


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    message: str


class HealthResponse(CamelModel):
    status: str
    timestamp: datetime
    backend: str
