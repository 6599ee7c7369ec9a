"""Directory activities: channel lookup, templates, catalogues, subscriptions.

The directory is read-only apart from flagging back-in-stock subscriptions.
A missing channel or template is fatal: retrying cannot make it appear.
"""

import logging

from pydantic import BaseModel, Field

from flowflex.core.services.channel.schemas import ChannelConfig
from flowflex.core.services.directory.exceptions import DirectoryError, DirectoryResponseError
from flowflex.core.services.directory.schemas import Catalogue, MessageTemplate
from flowflex.core.services.directory.service import get_directory
from flowflex.runtime.errors import ActivityError, ActivityFatalError, ActivityTransientError

logger = logging.getLogger('activities.directory')


def classify_directory_error(error: DirectoryError) -> ActivityError:
    """Malformed bodies and 4xx answers are fatal; everything else (5xx, network) is transient."""
    if isinstance(error, DirectoryResponseError):
        return ActivityFatalError(str(error), details={'status_code': error.status_code})
    if error.status_code is not None and 400 <= error.status_code < 500 and error.status_code not in (408, 429):
        return ActivityFatalError(str(error), details={'status_code': error.status_code})
    return ActivityTransientError(str(error), details={'status_code': error.status_code})


# =============================================================================
# Channel lookup
# =============================================================================


class LookupChannelInput(BaseModel):
    """Input for channel lookup activity."""

    org_id: str = Field(..., description='Organisation owning the channel')
    branch_id: str | None = Field(None, description='Branch, when the org has several channels')


class LookupChannelOutput(BaseModel):
    channel: ChannelConfig


async def lookup_channel(input: LookupChannelInput) -> LookupChannelOutput:
    """Find the active WhatsApp channel of an organisation."""
    try:
        channel = await get_directory().find_channel(input.org_id, input.branch_id)
    except DirectoryError as e:
        raise classify_directory_error(e) from e

    if channel is None:
        raise ActivityFatalError(f'No active WhatsApp channel found for org {input.org_id}')

    logger.info(f'Using channel {channel.channel_id} ({channel.bsp.value}) for org {input.org_id}')
    return LookupChannelOutput(channel=channel)


# =============================================================================
# Templates
# =============================================================================


class FetchTemplateInput(BaseModel):
    """Input for template lookup activity."""

    name: str = Field(..., description='Template name, e.g. order_confirmation')
    org_id: str
    branch_id: str | None = None


class FetchTemplateOutput(BaseModel):
    template: MessageTemplate


async def fetch_template(input: FetchTemplateInput) -> FetchTemplateOutput:
    """Fetch an approved template by name."""
    try:
        template = await get_directory().get_template(input.name, input.org_id, input.branch_id)
    except DirectoryError as e:
        raise classify_directory_error(e) from e

    if template is None:
        raise ActivityFatalError(
            f"Template '{input.name}' not found. Please create an approved template first.",
            details={'org_id': input.org_id, 'branch_id': input.branch_id},
        )
    return FetchTemplateOutput(template=template)


# =============================================================================
# Catalogues
# =============================================================================


class FetchCatalogueInput(BaseModel):
    catalogue_id: str
    org_id: str


class FetchCatalogueOutput(BaseModel):
    catalogue: Catalogue | None = Field(None, description='None when the directory does not know the catalogue')


async def fetch_catalogue(input: FetchCatalogueInput) -> FetchCatalogueOutput:
    """Fetch catalogue products; an unknown catalogue is not an error."""
    try:
        catalogue = await get_directory().get_catalogue(input.catalogue_id, input.org_id)
    except DirectoryError as e:
        raise classify_directory_error(e) from e

    if catalogue is None:
        logger.info(f'Catalogue {input.catalogue_id} unknown to directory, sending catalogue link instead')
    return FetchCatalogueOutput(catalogue=catalogue)


# =============================================================================
# Back-in-stock subscriptions
# =============================================================================


class MarkSubscriptionNotifiedInput(BaseModel):
    subscription_id: str


class MarkSubscriptionNotifiedOutput(BaseModel):
    subscription_id: str
    notified: bool = True


async def mark_subscription_notified(input: MarkSubscriptionNotifiedInput) -> MarkSubscriptionNotifiedOutput:
    """Flag a subscription as notified so it is not messaged again."""
    try:
        await get_directory().mark_subscription_notified(input.subscription_id)
    except DirectoryError as e:
        raise classify_directory_error(e) from e
    return MarkSubscriptionNotifiedOutput(subscription_id=input.subscription_id)
