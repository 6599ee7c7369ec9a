"""FlowFlex HTTP API.

Starts workflows through the Gateway and exposes their status.

Usage:
    python -m flowflex.api
    uvicorn flowflex.api.app:create_app --factory --port 3003
"""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from flowflex.api.schemas import (
    ErrorResponse,
    HealthResponse,
    StartWorkflowRequest,
    StartWorkflowResponse,
    WorkflowStatusResponse,
)
from flowflex.core.configs import app_config
from flowflex.core.deps import logger
from flowflex.registry import build_registry
from flowflex.runtime.backend import LocalBackend
from flowflex.runtime.errors import (
    BackendUnavailableError,
    InvocationNotFoundError,
    NotRegisteredError,
    OrchestrationError,
    ValidationError,
)
from flowflex.runtime.gateway import Gateway
from flowflex.runtime.retry import GATEWAY_RETRY
from flowflex.runtime.schemas import utcnow
from flowflex.runtime.worker import Worker


def build_gateway() -> tuple[Gateway, list[Worker]]:
    """Gateway for the configured backend, plus the local workers it needs."""
    registry = build_registry()
    retry_policy = GATEWAY_RETRY.model_copy(update={'max_attempts': app_config.GATEWAY_START_ATTEMPTS})

    if app_config.ORCHESTRATION_BACKEND == 'temporal':
        from flowflex.temporal.client import TemporalBackend

        backend = TemporalBackend(registry)
        gateway = Gateway(
            backend, registry, retry_policy=retry_policy, sync_timeout=app_config.GATEWAY_SYNC_TIMEOUT_SECONDS
        )
        return gateway, []

    local = LocalBackend()
    workers = [
        Worker(
            task_queue,
            registry,
            local.store,
            local.broker,
            max_concurrent=app_config.WORKER_MAX_CONCURRENT,
            settle_delay=app_config.WORKFLOW_SETTLE_DELAY_SECONDS,
        )
        for task_queue in registry.task_queues()
    ]
    gateway = Gateway(local, registry, retry_policy=retry_policy, sync_timeout=app_config.GATEWAY_SYNC_TIMEOUT_SECONDS)
    return gateway, workers


def create_app(gateway: Gateway | None = None, workers: list[Worker] | None = None) -> FastAPI:
    """Build the API around a Gateway (the configured one by default)."""
    if gateway is None:
        gateway, default_workers = build_gateway()
        workers = default_workers if workers is None else workers
    workers = workers or []

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for worker in workers:
                await stack.enter_async_context(worker)
            logger.info('API started', backend=gateway.backend.name, workers=len(workers))
            yield
            logger.info('API shutting down')
        await gateway.close()

    app = FastAPI(
        title=app_config.PROJECT_NAME,
        description='Durable WhatsApp messaging workflows',
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    # =========================================================================
    # Error handlers
    # =========================================================================

    def error_response(status_code: int, error: str, message: str) -> JSONResponse:
        body = ErrorResponse(error=error, message=message)
        return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))

    @app.exception_handler(NotRegisteredError)
    async def not_registered_handler(request: Request, exc: NotRegisteredError) -> JSONResponse:
        return error_response(404, 'Unknown workflow type', str(exc))

    @app.exception_handler(InvocationNotFoundError)
    async def not_found_handler(request: Request, exc: InvocationNotFoundError) -> JSONResponse:
        return error_response(404, 'Workflow not found', str(exc))

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return error_response(422, exc.error, exc.message)

    @app.exception_handler(BackendUnavailableError)
    async def backend_unavailable_handler(request: Request, exc: BackendUnavailableError) -> JSONResponse:
        logger.error('Backend unavailable', error=str(exc))
        return error_response(503, 'Backend unavailable', str(exc))

    @app.exception_handler(OrchestrationError)
    async def orchestration_handler(request: Request, exc: OrchestrationError) -> JSONResponse:
        logger.error('Orchestration error', error=str(exc), path=request.url.path)
        return error_response(500, type(exc).__name__, str(exc))

    # =========================================================================
    # Routes
    # =========================================================================

    @app.post('/workflows/{workflow_type}', response_model=StartWorkflowResponse, response_model_by_alias=True)
    async def start_workflow(workflow_type: str, body: StartWorkflowRequest) -> JSONResponse:
        definition = gateway.registry.workflow_for_type(workflow_type)
        args = body.workflow_args(definition.workflow_type, shop_domain=app_config.SHOP_DOMAIN)

        outcome = await gateway.start(definition.workflow_type, *args, mode=body.mode, timeout=body.timeout_seconds)
        response = StartWorkflowResponse.from_outcome(outcome)
        logger.info(
            'Workflow start handled',
            workflow_id=outcome.workflow_id,
            status=outcome.handle.status.value,
            deduplicated=outcome.deduplicated,
        )
        status_code = 202 if outcome.still_running else 200
        return JSONResponse(status_code=status_code, content=response.model_dump(mode='json', by_alias=True))

    @app.get('/workflows/{workflow_id}', response_model=WorkflowStatusResponse, response_model_by_alias=True)
    async def get_workflow(workflow_id: str) -> JSONResponse:
        invocation = await gateway.get(workflow_id)
        if invocation is None:
            raise InvocationNotFoundError(f'No invocation for workflow ID {workflow_id}')
        response = WorkflowStatusResponse.from_invocation(invocation)
        return JSONResponse(content=response.model_dump(mode='json', by_alias=True))

    @app.get('/health', response_model=HealthResponse, response_model_by_alias=True)
    async def health() -> JSONResponse:
        try:
            healthy = await gateway.health()
        except Exception as e:
            logger.warning('Health check failed', error=str(e))
            healthy = False

        response = HealthResponse(
            status='ok' if healthy else 'degraded',
            timestamp=utcnow(),
            backend=gateway.backend.name,
        )
        return JSONResponse(
            status_code=200 if healthy else 503,
            content=response.model_dump(mode='json', by_alias=True),
        )

    return app
