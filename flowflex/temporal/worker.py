"""Temporal Worker - runs workflows and activities of one task queue.

Usage:
    python -m flowflex.temporal.worker --queue order-confirmation-queue
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any

from temporalio.worker import Worker

from flowflex.core.configs import app_config
from flowflex.core.services.log import get_log_service
from flowflex.runtime.task_queues import ALL_QUEUES
from flowflex.temporal.activities import TEMPORAL_ACTIVITIES
from flowflex.temporal.client import get_temporal_client
from flowflex.temporal.workflows import workflows_for_queue

# Configures the component loggers, temporal.* included
get_log_service()
logger = logging.getLogger('temporal.worker')


async def run_worker(task_queue: str) -> None:
    """Run the Temporal worker for `task_queue` until SIGINT/SIGTERM."""
    workflows = workflows_for_queue(task_queue)
    activity_names = [getattr(a, '__name__', str(a)) for a in TEMPORAL_ACTIVITIES]
    logger.info(f'Workflows for {task_queue}: {[w.definition.name for w in workflows]}')
    logger.info(f'Activities: {activity_names}')

    if not workflows:
        logger.warning(f'No workflows registered for {task_queue}!')

    client = await get_temporal_client()
    logger.info(f'Connected! Task queue: {task_queue}')

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=workflows,
        activities=TEMPORAL_ACTIVITIES,
        max_concurrent_activities=app_config.WORKER_MAX_CONCURRENT,
        max_concurrent_workflow_tasks=app_config.WORKER_MAX_CONCURRENT,
    )

    shutdown_event = asyncio.Event()

    def signal_handler(_sig: int, _frame: Any) -> None:
        logger.info('Shutting down...')
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info('Starting worker...')

    async with worker:
        logger.info(f'Worker started on {task_queue} ({len(workflows)} workflows)')
        await shutdown_event.wait()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Run a FlowFlex Temporal worker')
    parser.add_argument('--queue', required=True, choices=ALL_QUEUES, help='Task queue to serve')
    return parser.parse_args(argv)


def main() -> None:
    args = parse_args()
    try:
        asyncio.run(run_worker(args.queue))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == '__main__':
    main()
