"""Base workflow definition and input validation helpers.

Provides:
- WorkflowDefinition: idempotency key derivation, validate -> execute -> result
- require_object() / require_list(): structural validation with the standard
  "Invalid <label>: ..." messages
- order/product helpers shared by several definitions

Definitions are deterministic: every side effect goes through the
`WorkflowContext` (activities, settle waits, child workflows). The same
definition runs unchanged on the local runtime and on Temporal.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from flowflex.runtime.context import WorkflowContext
from flowflex.runtime.errors import ActivityError, ValidationError
from flowflex.runtime.schemas import RunMode, WorkflowInvocation, WorkflowResult, WorkflowType


def require_object(value: Any, label: str, key: str) -> dict[str, Any]:
    """Require a mapping with a truthy `key`.

    Raises:
        ValidationError: e.g. "Invalid customerData: must be an object with a 'phone' property"
    """
    if not isinstance(value, dict) or not value.get(key):
        article = 'an' if key[0].lower() in 'aeiou' else 'a'
        raise ValidationError(
            f"Invalid {label}: must be an object with {article} '{key}' property",
            error=f'Invalid {label}',
        )
    return value


def require_list(value: Any, label: str) -> list[Any]:
    """Require a non-empty list.

    Raises:
        ValidationError: "Invalid <label>: must be a non-empty array"
    """
    if not isinstance(value, list) or not value:
        raise ValidationError(f'Invalid {label}: must be a non-empty array', error=f'Invalid {label}')
    return value


def entity_key(value: Any, key: str) -> str | None:
    """String form of `value[key]`, or None when absent."""
    if not isinstance(value, dict):
        return None
    raw = value.get(key)
    if raw is None or raw == '':
        return None
    return str(raw)


class WorkflowDefinition(ABC):
    """A named workflow: validate the input, call activities, fold a result.

    Subclasses set the class attributes and implement `entity_id`, `validate`
    and `execute`. `run` never raises: validation failures, activity failures
    and unexpected errors all become a failed `WorkflowResult`.
    """

    name: ClassVar[str]
    workflow_type: ClassVar[WorkflowType]
    task_queue: ClassVar[str]
    default_mode: ClassVar[RunMode] = RunMode.SYNC
    failure_message: ClassVar[str] = 'Workflow failed'

    @abstractmethod
    def entity_id(self, *args: Any) -> str | None:
        """Business entity ID of the arguments, or None if it cannot be derived."""

    @abstractmethod
    def validate(self, *args: Any) -> None:
        """Structural checks run before any activity.

        Raises:
            ValidationError: On malformed input
        """

    @abstractmethod
    async def execute(self, ctx: WorkflowContext, *args: Any) -> WorkflowResult:
        """Workflow body. Called only with validated arguments."""

    def workflow_id(self, *args: Any) -> str:
        """Idempotency key: `{workflow_type}-{entity_id}`.

        Raises:
            ValidationError: If no entity ID can be derived
        """
        entity = self.entity_id(*args)
        if not entity:
            raise ValidationError(
                f'Cannot derive an entity ID for {self.workflow_type.value} from the request',
                error='Missing entity ID',
            )
        return f'{self.workflow_type.value}-{entity}'

    def new_invocation(self, *args: Any, parent_id: str | None = None) -> WorkflowInvocation:
        return WorkflowInvocation(
            workflow_id=self.workflow_id(*args),
            workflow_type=self.workflow_type,
            workflow_name=self.name,
            task_queue=self.task_queue,
            args=tuple(args),
            parent_id=parent_id,
        )

    async def run(self, ctx: WorkflowContext, *args: Any) -> WorkflowResult:
        started_at = ctx.now()
        entity_id = self.entity_id(*args)

        try:
            self.validate(*args)
        except ValidationError as e:
            ctx.logger.warning(f'{ctx.workflow_id}: {e.message}')
            return WorkflowResult.failure(
                e.message,
                e.error,
                entity_id=entity_id,
                started_at=started_at,
                completed_at=ctx.now(),
            )

        ctx.logger.info(f'{ctx.workflow_id}: {self.name} started')
        try:
            result = await self.execute(ctx, *args)
        except ActivityError as e:
            ctx.logger.error(f'{ctx.workflow_id}: activity {e.activity_name} failed: {e.message}')
            result = WorkflowResult.failure(self.failure_message, e.message, entity_id=entity_id)
        except Exception as e:
            ctx.logger.exception(f'{ctx.workflow_id}: unexpected error')
            result = WorkflowResult.failure(self.failure_message, str(e) or type(e).__name__, entity_id=entity_id)

        result.entity_id = result.entity_id or entity_id
        result.timestamps.started_at = started_at
        result.timestamps.completed_at = ctx.now()

        if result.success:
            await self.settle(ctx)

        ctx.logger.info(f'{ctx.workflow_id}: {self.name} finished (success={result.success})')
        return result

    async def settle(self, ctx: WorkflowContext) -> None:
        """Hook run after a successful execution. No-op by default."""
