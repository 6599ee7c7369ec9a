"""Explicit registry of workflow definitions and activities.

Built once at process start (see `flowflex.registry.build_registry`) and
injected into Workers, the Gateway and workflow contexts. Nothing is looked up
through module globals at execution time.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from flowflex.runtime.errors import NotRegisteredError
from flowflex.runtime.retry import DEFAULT_RETRY, RetryPolicy
from flowflex.runtime.schemas import WorkflowType

if TYPE_CHECKING:
    from flowflex.workflows.base import WorkflowDefinition

logger = logging.getLogger('runtime.registry')


@dataclass(frozen=True)
class ActivityDefinition:
    """An activity implementation plus the options it runs under."""

    name: str
    fn: Callable[[Any], Awaitable[BaseModel]]
    input_type: type[BaseModel]
    output_type: type[BaseModel]
    retry_policy: RetryPolicy = field(default=DEFAULT_RETRY)
    start_to_close_timeout: float = 60.0

    async def __call__(self, input: BaseModel) -> BaseModel:
        return await self.fn(input)


class Registry:
    """Name -> handler tables for workflows and activities."""

    def __init__(self) -> None:
        self._workflows: dict[str, 'WorkflowDefinition'] = {}
        self._workflow_types: dict[WorkflowType, 'WorkflowDefinition'] = {}
        self._activities: dict[str, ActivityDefinition] = {}

    def register_workflow(self, definition: 'WorkflowDefinition') -> None:
        """Register a workflow definition under its name and type.

        Raises:
            ValueError: If the name or type is already registered
        """
        if definition.name in self._workflows:
            raise ValueError(f'Workflow "{definition.name}" is already registered')
        if definition.workflow_type in self._workflow_types:
            raise ValueError(f'Workflow type "{definition.workflow_type.value}" is already registered')
        self._workflows[definition.name] = definition
        self._workflow_types[definition.workflow_type] = definition
        logger.debug(f'Registered workflow: {definition.name} on {definition.task_queue}')

    def register_activity(self, activity: ActivityDefinition) -> None:
        """Register an activity.

        Raises:
            ValueError: If an activity with the same name is already registered
        """
        if activity.name in self._activities:
            raise ValueError(f'Activity "{activity.name}" is already registered')
        self._activities[activity.name] = activity
        logger.debug(f'Registered activity: {activity.name}')

    def get_workflow(self, name: str) -> 'WorkflowDefinition':
        """Get a workflow definition by name.

        Raises:
            NotRegisteredError: If no workflow has this name
        """
        definition = self._workflows.get(name)
        if definition is None:
            available = ', '.join(sorted(self._workflows)) or '(none)'
            raise NotRegisteredError(f'Workflow "{name}" not found. Available workflows: {available}')
        return definition

    def workflow_for_type(self, workflow_type: WorkflowType | str) -> 'WorkflowDefinition':
        """Get the workflow definition handling a workflow type.

        Raises:
            NotRegisteredError: If the type is unknown or has no definition
        """
        try:
            key = WorkflowType(workflow_type)
        except ValueError as e:
            raise NotRegisteredError(f'Unknown workflow type "{workflow_type}"') from e

        definition = self._workflow_types.get(key)
        if definition is None:
            raise NotRegisteredError(f'No workflow registered for type "{key.value}"')
        return definition

    def get_activity(self, name: str) -> ActivityDefinition:
        """Get an activity by name.

        Raises:
            NotRegisteredError: If no activity has this name
        """
        activity = self._activities.get(name)
        if activity is None:
            available = ', '.join(sorted(self._activities)) or '(none)'
            raise NotRegisteredError(f'Activity "{name}" not found. Available activities: {available}')
        return activity

    def workflows_for_queue(self, task_queue: str) -> list['WorkflowDefinition']:
        return [d for d in self._workflows.values() if d.task_queue == task_queue]

    def list_workflows(self) -> list['WorkflowDefinition']:
        return list(self._workflows.values())

    def list_activities(self) -> list[ActivityDefinition]:
        return list(self._activities.values())

    def task_queues(self) -> list[str]:
        return sorted({d.task_queue for d in self._workflows.values()})

    def __contains__(self, name: str) -> bool:
        return name in self._workflows or name in self._activities

    def __len__(self) -> int:
        return len(self._workflows) + len(self._activities)
