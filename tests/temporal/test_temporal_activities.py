"""Tests for the Temporal adapters of activities and workflows.

Activities run inside temporalio's ActivityEnvironment - no Temporal server
needed.

Run tests:
    pytest tests/temporal/test_temporal_activities.py -v
"""

from datetime import timedelta

import pytest
from temporalio.exceptions import ApplicationError
from temporalio.testing import ActivityEnvironment

from flowflex.activities import ACTIVITIES, LookupChannelInput, LookupChannelOutput
from flowflex.runtime.errors import ActivityFatalError, ActivityTransientError
from flowflex.runtime.retry import DEFAULT_RETRY
from flowflex.runtime.task_queues import ALL_QUEUES, BACK_IN_STOCK_QUEUE, CATALOGUE_MESSAGING_QUEUE
from flowflex.temporal.activities import (
    ACTIVITY_OPTIONS,
    FATAL_ERROR_TYPE,
    TEMPORAL_ACTIVITIES,
    TRANSIENT_ERROR_TYPE,
    to_application_error,
    to_temporal_retry_policy,
)
from flowflex.temporal.workflows import DEFINITIONS_BY_TYPE, TEMPORAL_WORKFLOWS, workflows_for_queue
from flowflex.workflows import WORKFLOW_DEFINITIONS

TEMPORAL_ACTIVITIES_BY_NAME = {a.__name__: a for a in TEMPORAL_ACTIVITIES}


class TestRetryPolicyTranslation:
    def test_default_policy(self):
        policy = to_temporal_retry_policy(DEFAULT_RETRY)

        assert policy.maximum_attempts == 3
        assert policy.initial_interval == timedelta(seconds=1)
        assert policy.maximum_interval == timedelta(seconds=10)
        assert policy.backoff_coefficient == 2.0
        assert policy.non_retryable_error_types == [FATAL_ERROR_TYPE]


class TestApplicationErrors:
    def test_fatal_is_non_retryable(self):
        error = to_application_error(ActivityFatalError('400 Bad Request', details={'status_code': 400}))

        assert error.non_retryable is True
        assert error.type == FATAL_ERROR_TYPE
        assert error.message == '400 Bad Request'
        assert error.details == ({'status_code': 400},)

    def test_transient_is_retryable(self):
        error = to_application_error(ActivityTransientError('503 Service Unavailable'))

        assert error.non_retryable is False
        assert error.type == TRANSIENT_ERROR_TYPE


class TestActivityWrappers:
    def test_every_activity_is_wrapped(self):
        assert sorted(TEMPORAL_ACTIVITIES_BY_NAME) == sorted([a.name for a in ACTIVITIES] + ['await_workflow_result'])
        assert set(ACTIVITY_OPTIONS) == {a.name for a in ACTIVITIES}

    @pytest.mark.usefixtures('directory')
    async def test_runs_activity(self):
        result = await ActivityEnvironment().run(
            TEMPORAL_ACTIVITIES_BY_NAME['lookup_channel'], LookupChannelInput(org_id='org-1')
        )

        assert isinstance(result, LookupChannelOutput)
        assert result.channel.channel_id == 'ch-1'

    @pytest.mark.usefixtures('directory')
    async def test_fatal_error_becomes_non_retryable(self):
        with pytest.raises(ApplicationError) as exc_info:
            await ActivityEnvironment().run(
                TEMPORAL_ACTIVITIES_BY_NAME['lookup_channel'], LookupChannelInput(org_id='org-unknown')
            )

        assert exc_info.value.non_retryable is True
        assert exc_info.value.type == FATAL_ERROR_TYPE


class TestWorkflowClasses:
    def test_one_class_per_definition(self):
        assert [w.definition.__class__ for w in TEMPORAL_WORKFLOWS] == WORKFLOW_DEFINITIONS
        assert len(DEFINITIONS_BY_TYPE) == len(WORKFLOW_DEFINITIONS)

    def test_workflows_for_queue(self):
        assert {w.definition.name for w in workflows_for_queue(CATALOGUE_MESSAGING_QUEUE)} == {
            'CatalogueMessagingWorkflow',
            'CatalogueBroadcastWorkflow',
        }
        assert {w.definition.name for w in workflows_for_queue(BACK_IN_STOCK_QUEUE)} == {
            'BackInStockWorkflow',
            'BackInStockNotificationWorkflow',
        }
        assert all(workflows_for_queue(queue) for queue in ALL_QUEUES)
