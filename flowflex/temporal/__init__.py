"""Temporal backend for FlowFlex workflows.

This package contains:
- activities: Temporal adapters for the activities (error -> ApplicationError)
- workflows: One @workflow.defn class per workflow definition
- client: Singleton client and TemporalBackend for the Gateway
- worker: Worker process serving one task queue

Quick Start:
    # Start Temporal (dev mode)
    temporal server start-dev

    # Start a worker per task queue
    python -m flowflex.temporal.worker --queue order-confirmation-queue

    # Serve the API on Temporal
    ORCHESTRATION_BACKEND=temporal python -m flowflex.api
"""
