"""Structured logging service."""

from contextlib import AbstractContextManager
from typing import Any

import structlog


def get_log_service() -> Any:
    """Return the application structlog logger.

    Importing the provider configures stdlib logging and structlog once.
    """
    from flowflex.core.services.log.providers.structlog.setup import logger

    return logger


def bind_invocation(workflow_id: str, workflow_type: str, worker_id: str) -> AbstractContextManager[Any]:
    """Attach invocation fields to every log line emitted inside the block."""
    return structlog.contextvars.bound_contextvars(
        workflow_id=workflow_id,
        workflow_type=workflow_type,
        worker_id=worker_id,
    )


__all__ = ['bind_invocation', 'get_log_service']
