"""Tests for messaging and directory activities.

Activities are plain async functions: they run here against the fake BSP and
the static directory, no worker needed.
"""

from unittest.mock import AsyncMock, patch

import pytest

from flowflex.activities import (
    FetchCatalogueInput,
    FetchTemplateInput,
    LookupChannelInput,
    SendCatalogueMessageInput,
    SendTemplateMessageInput,
    fetch_catalogue,
    fetch_template,
    lookup_channel,
    send_catalogue_message,
    send_template_message,
)
from flowflex.activities.directory import classify_directory_error
from flowflex.activities.messaging import classify_channel_error, render_catalogue_text
from flowflex.core.services.channel.exceptions import ChannelError, ChannelResponseError, ChannelTransportError
from flowflex.core.services.channel.schemas import ChannelConfig, ChannelProvider, SendResult
from flowflex.core.services.directory.exceptions import DirectoryError
from flowflex.core.services.directory.schemas import CatalogueProduct
from flowflex.runtime.errors import ActivityFatalError, ActivityTransientError


@pytest.fixture
def channel_config() -> ChannelConfig:
    return ChannelConfig(channel_id='ch-1', phone_number_id='1555000')


class TestClassifyChannelError:
    @pytest.mark.parametrize('status_code', [None, 408, 429, 500, 502, 503])
    def test_transient(self, status_code):
        error = classify_channel_error(ChannelError('failed', status_code=status_code))
        assert isinstance(error, ActivityTransientError)

    @pytest.mark.parametrize('status_code', [400, 401, 403, 404, 422])
    def test_fatal(self, status_code):
        error = classify_channel_error(ChannelError('failed', status_code=status_code, detail={'error': 'x'}))
        assert isinstance(error, ActivityFatalError)
        assert error.details == {'status_code': status_code, 'detail': {'error': 'x'}}

    def test_transport_errors_are_transient(self):
        assert isinstance(classify_channel_error(ChannelTransportError('timed out')), ActivityTransientError)

    def test_unusable_responses_are_fatal(self):
        error = ChannelResponseError('no message id', status_code=200)
        assert isinstance(classify_channel_error(error), ActivityFatalError)


class TestClassifyDirectoryError:
    def test_client_errors_are_fatal(self):
        assert isinstance(classify_directory_error(DirectoryError('bad', status_code=400)), ActivityFatalError)

    @pytest.mark.parametrize('status_code', [None, 429, 503])
    def test_other_errors_are_transient(self, status_code):
        error = classify_directory_error(DirectoryError('down', status_code=status_code))
        assert isinstance(error, ActivityTransientError)
        assert error.message == 'down'


@pytest.mark.usefixtures('directory')
class TestDirectoryActivities:
    async def test_lookup_channel(self):
        result = await lookup_channel(LookupChannelInput(org_id='org-1'))

        assert result.channel.channel_id == 'ch-1'
        assert result.channel.bsp == ChannelProvider.INTERAKT

    async def test_lookup_unknown_org_is_fatal(self):
        with pytest.raises(ActivityFatalError, match='No active WhatsApp channel found for org org-9'):
            await lookup_channel(LookupChannelInput(org_id='org-9'))

    async def test_fetch_template(self):
        result = await fetch_template(FetchTemplateInput(name='order_confirmation', org_id='org-1'))

        assert result.template.name == 'order_confirmation'

    async def test_fetch_missing_template_is_fatal(self):
        with pytest.raises(ActivityFatalError, match="Template 'promo' not found"):
            await fetch_template(FetchTemplateInput(name='promo', org_id='org-1'))

    async def test_fetch_unknown_catalogue_is_empty(self):
        result = await fetch_catalogue(FetchCatalogueInput(catalogue_id='cat-404', org_id='org-1'))

        assert result.catalogue is None

    async def test_directory_outage_is_transient(self, directory, monkeypatch):
        async def outage(org_id, branch_id=None):
            raise DirectoryError('Directory request GET /channels failed: connection refused')

        monkeypatch.setattr(directory, 'find_channel', outage)

        with pytest.raises(ActivityTransientError):
            await lookup_channel(LookupChannelInput(org_id='org-1'))


class TestSendActivities:
    async def test_send_template_message(self, channel, channel_config):
        result = await send_template_message(
            SendTemplateMessageInput(
                to='+15550000001',
                channel=channel_config,
                template_name='order_confirmation',
                parameters=['Asha', '#1001'],
                client_reference='order-confirmation-1001:send',
            )
        )

        assert result.message_id == 'wamid.1'
        assert result.channel_id == 'ch-1'
        assert result.provider == ChannelProvider.INTERAKT
        payload = channel.sent[0].to_payload()
        assert payload['template']['components'] == [
            {'type': 'body', 'parameters': [{'type': 'text', 'text': 'Asha'}, {'type': 'text', 'text': '#1001'}]}
        ]
        assert payload['biz_opaque_callback_data'] == 'order-confirmation-1001:send'

    async def test_template_without_parameters_has_no_components(self, channel, channel_config):
        await send_template_message(
            SendTemplateMessageInput(to='+15550000001', channel=channel_config, template_name='hello_world')
        )

        assert channel.sent[0].to_payload()['template']['components'] == []

    async def test_channel_error_is_classified(self, channel, channel_config):
        channel.fail('+15550000001', ChannelError('interakt HTTP error: 401', status_code=401))

        with pytest.raises(ActivityFatalError, match='401'):
            await send_template_message(
                SendTemplateMessageInput(to='+15550000001', channel=channel_config, template_name='order_confirmation')
            )

    async def test_misconfigured_channel_is_fatal(self, channel, channel_config):
        channel.fail('+15550000001', ValueError('Channel ch-1 has no Gupshup app_id'))

        with pytest.raises(ActivityFatalError, match='app_id'):
            await send_template_message(
                SendTemplateMessageInput(to='+15550000001', channel=channel_config, template_name='order_confirmation')
            )

    async def test_send_catalogue_message(self, channel, channel_config):
        await send_catalogue_message(
            SendCatalogueMessageInput(
                to='+15550000001',
                channel=channel_config,
                catalogue_id='cat-1',
                products=[CatalogueProduct(name='Cap', price='₹499')],
            )
        )

        payload = channel.sent[0].to_payload()
        assert payload['type'] == 'text'
        assert payload['text']['preview_url'] is True
        assert '1. *Cap*' in payload['text']['body']


class TestRenderCatalogueText:
    def test_without_products_links_to_catalogue(self):
        text = render_catalogue_text('Hello!', 'cat-1', [])

        assert text == (
            '🛍️ Hello!\n\n📦 *Our Latest Products:*\n\n'
            '📦 Browse our products: https://www.facebook.com/commerce/products/?catalog_id=cat-1'
        )

    def test_numbers_products(self):
        text = render_catalogue_text('Hello!', 'cat-1', [CatalogueProduct(name='A'), CatalogueProduct(name='B')])

        assert '1. *A*\n\n2. *B*\n\n💬 Reply with the product number to order!' in text


class TestProviderRouting:
    async def test_send_uses_the_channel_bsp(self):
        gupshup = ChannelConfig(channel_id='ch-2', phone_number_id='1666000', bsp=ChannelProvider.GUPSHUP, app_id='app')

        with patch('flowflex.activities.messaging.get_channel') as mock_get_channel:
            mock_get_channel.return_value.send = AsyncMock(
                return_value=SendResult(message_id='wamid.9', provider=ChannelProvider.GUPSHUP, to='+15550000001')
            )

            output = await send_template_message(
                SendTemplateMessageInput(to='+15550000001', channel=gupshup, template_name='order_confirmation')
            )

        mock_get_channel.assert_called_once_with(ChannelProvider.GUPSHUP)
        message = mock_get_channel.return_value.send.await_args.args[0]
        assert message.to_payload()['template']['components'] == []
        assert output.message_id == 'wamid.9'
        assert output.channel_id == 'ch-2'
