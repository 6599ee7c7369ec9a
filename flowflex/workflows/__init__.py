"""Workflow definitions - deterministic orchestration of messaging activities.

Definitions validate their input, call activities through the WorkflowContext
and fold the outcome into a WorkflowResult. They run unchanged on the local
runtime and on Temporal.

To add a workflow:
1. Subclass WorkflowDefinition (see order_confirmation.py)
2. Add a WorkflowType value and pick a task queue
3. Add the class to WORKFLOW_DEFINITIONS below
"""

from flowflex.workflows.back_in_stock import BackInStockNotificationWorkflow, BackInStockWorkflow
from flowflex.workflows.base import WorkflowDefinition, require_list, require_object
from flowflex.workflows.catalogue_messaging import CatalogueBroadcastWorkflow, CatalogueMessagingWorkflow
from flowflex.workflows.order_cancellation import OrderCancellationWorkflow
from flowflex.workflows.order_confirmation import OrderConfirmationWorkflow

WORKFLOW_DEFINITIONS: list[type[WorkflowDefinition]] = [
    OrderConfirmationWorkflow,
    OrderCancellationWorkflow,
    CatalogueMessagingWorkflow,
    CatalogueBroadcastWorkflow,
    BackInStockWorkflow,
    BackInStockNotificationWorkflow,
]

__all__ = [
    'WORKFLOW_DEFINITIONS',
    'BackInStockNotificationWorkflow',
    'BackInStockWorkflow',
    'CatalogueBroadcastWorkflow',
    'CatalogueMessagingWorkflow',
    'OrderCancellationWorkflow',
    'OrderConfirmationWorkflow',
    'WorkflowDefinition',
    'require_list',
    'require_object',
]
