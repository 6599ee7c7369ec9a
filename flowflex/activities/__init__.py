"""Activities - the side-effecting tasks workflows are built from.

Each activity:
- Takes one pydantic input model and returns one pydantic output model
- Performs a single call to the channel or the directory
- Classifies its failures as transient (retried) or fatal (not retried)
- Runs under the retry policy and timeout declared below

`ACTIVITIES` is the full list; `flowflex.registry.build_registry()` registers it.
"""

from flowflex.activities.directory import (
    FetchCatalogueInput,
    FetchCatalogueOutput,
    FetchTemplateInput,
    FetchTemplateOutput,
    LookupChannelInput,
    LookupChannelOutput,
    MarkSubscriptionNotifiedInput,
    MarkSubscriptionNotifiedOutput,
    fetch_catalogue,
    fetch_template,
    lookup_channel,
    mark_subscription_notified,
)
from flowflex.activities.messaging import (
    SendCatalogueMessageInput,
    SendCatalogueTemplateInput,
    SendMessageOutput,
    SendTemplateMessageInput,
    send_catalogue_message,
    send_catalogue_template,
    send_template_message,
)
from flowflex.runtime.registry import ActivityDefinition
from flowflex.runtime.retry import DEFAULT_RETRY

LOOKUP_TIMEOUT = 30.0
SEND_TIMEOUT = 60.0
CATALOGUE_SEND_TIMEOUT = 120.0

ACTIVITIES: list[ActivityDefinition] = [
    ActivityDefinition(
        name='lookup_channel',
        fn=lookup_channel,
        input_type=LookupChannelInput,
        output_type=LookupChannelOutput,
        retry_policy=DEFAULT_RETRY,
        start_to_close_timeout=LOOKUP_TIMEOUT,
    ),
    ActivityDefinition(
        name='fetch_template',
        fn=fetch_template,
        input_type=FetchTemplateInput,
        output_type=FetchTemplateOutput,
        retry_policy=DEFAULT_RETRY,
        start_to_close_timeout=LOOKUP_TIMEOUT,
    ),
    ActivityDefinition(
        name='fetch_catalogue',
        fn=fetch_catalogue,
        input_type=FetchCatalogueInput,
        output_type=FetchCatalogueOutput,
        retry_policy=DEFAULT_RETRY,
        start_to_close_timeout=LOOKUP_TIMEOUT,
    ),
    ActivityDefinition(
        name='send_template_message',
        fn=send_template_message,
        input_type=SendTemplateMessageInput,
        output_type=SendMessageOutput,
        retry_policy=DEFAULT_RETRY,
        start_to_close_timeout=SEND_TIMEOUT,
    ),
    ActivityDefinition(
        name='send_catalogue_message',
        fn=send_catalogue_message,
        input_type=SendCatalogueMessageInput,
        output_type=SendMessageOutput,
        retry_policy=DEFAULT_RETRY,
        start_to_close_timeout=CATALOGUE_SEND_TIMEOUT,
    ),
    ActivityDefinition(
        name='send_catalogue_template',
        fn=send_catalogue_template,
        input_type=SendCatalogueTemplateInput,
        output_type=SendMessageOutput,
        retry_policy=DEFAULT_RETRY,
        start_to_close_timeout=CATALOGUE_SEND_TIMEOUT,
    ),
    ActivityDefinition(
        name='mark_subscription_notified',
        fn=mark_subscription_notified,
        input_type=MarkSubscriptionNotifiedInput,
        output_type=MarkSubscriptionNotifiedOutput,
        retry_policy=DEFAULT_RETRY,
        start_to_close_timeout=LOOKUP_TIMEOUT,
    ),
]

__all__ = [
    'ACTIVITIES',
    'FetchCatalogueInput',
    'FetchCatalogueOutput',
    'FetchTemplateInput',
    'FetchTemplateOutput',
    'LookupChannelInput',
    'LookupChannelOutput',
    'MarkSubscriptionNotifiedInput',
    'MarkSubscriptionNotifiedOutput',
    'SendCatalogueMessageInput',
    'SendCatalogueTemplateInput',
    'SendMessageOutput',
    'SendTemplateMessageInput',
    'fetch_catalogue',
    'fetch_template',
    'lookup_channel',
    'mark_subscription_notified',
    'send_catalogue_message',
    'send_catalogue_template',
    'send_template_message',
]
