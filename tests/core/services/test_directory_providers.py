"""Directory service tests: static lookups and the HTTP provider."""

import json

import httpx
import pytest

from flowflex.activities import LookupChannelInput, lookup_channel
from flowflex.core.configs import app_config
from flowflex.core.services.channel.schemas import ChannelConfig
from flowflex.core.services.directory.exceptions import DirectoryError, DirectoryResponseError
from flowflex.core.services.directory.providers.http.service import HttpDirectoryService
from flowflex.core.services.directory.providers.static.service import StaticDirectoryService
from flowflex.core.services.directory.schemas import DirectoryProvider, DirectorySeed, MessageTemplate
from flowflex.core.services.directory.service import _DirectoryServiceHolder, get_directory_service
from flowflex.runtime.errors import ActivityFatalError
from flowflex.runtime.retry import DEFAULT_RETRY, execute_with_retry


class TestStaticDirectory:
    async def test_template_resolution_prefers_most_specific(self):
        directory = StaticDirectoryService(
            DirectorySeed(
                templates=[
                    MessageTemplate(name='order_confirmation', language='en'),
                    MessageTemplate(name='order_confirmation', language='hi', org_id='org-1'),
                    MessageTemplate(name='order_confirmation', language='ta', org_id='org-1', branch_id='b-1'),
                ]
            )
        )

        assert (await directory.get_template('order_confirmation', 'org-1', 'b-1')).language == 'ta'
        assert (await directory.get_template('order_confirmation', 'org-1')).language == 'hi'
        assert (await directory.get_template('order_confirmation', 'org-2')).language == 'en'
        assert await directory.get_template('promo', 'org-1') is None

    async def test_from_file(self, tmp_path):
        seed = {
            'channels': {'org-1': {'channel_id': 'ch-1', 'phone_number_id': '1555000'}},
            'templates': [{'name': 'order_confirmation'}],
            'catalogues': [{'catalogue_id': 'cat-1', 'products': [{'name': 'Cap'}]}],
        }
        path = tmp_path / 'directory.json'
        path.write_text(json.dumps(seed), encoding='utf-8')

        directory = StaticDirectoryService.from_file(path)

        assert (await directory.find_channel('org-1')).channel_id == 'ch-1'
        assert (await directory.get_catalogue('cat-1', 'org-1')).products[0].name == 'Cap'

    async def test_records_notified_subscriptions(self):
        directory = StaticDirectoryService()
        directory.add_channel('org-1', ChannelConfig(channel_id='ch-1', phone_number_id='1555000'))

        await directory.mark_subscription_notified('sub-1')

        assert directory.notified_subscriptions == ['sub-1']


class MockDirectoryApi:
    def __init__(self, routes: dict[str, httpx.Response]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes.get(f'{request.method} {request.url.path}', httpx.Response(404))


@pytest.fixture
def http_directory(monkeypatch) -> HttpDirectoryService:
    monkeypatch.setattr(app_config, 'DIRECTORY_API_URL', 'https://directory.example.com/v1')
    monkeypatch.setattr(app_config, 'DIRECTORY_API_TOKEN', 'dir-token')
    return HttpDirectoryService()


def install(service: HttpDirectoryService, api: MockDirectoryApi) -> None:
    service._client = httpx.AsyncClient(base_url=service._base_url, transport=httpx.MockTransport(api))


class TestHttpDirectory:
    async def test_find_channel_unwraps_envelope(self, http_directory):
        api = MockDirectoryApi(
            {
                'GET /v1/channels/whatsapp/active': httpx.Response(
                    200,
                    json={'success': True, 'data': {'channel_id': 'ch-1', 'phone_number_id': '1555000'}},
                )
            }
        )
        install(http_directory, api)

        channel = await http_directory.find_channel('org-1', 'b-1')

        assert channel.channel_id == 'ch-1'
        assert api.requests[0].url.params['orgId'] == 'org-1'
        assert api.requests[0].url.params['branchId'] == 'b-1'

    async def test_missing_template_is_none(self, http_directory):
        install(http_directory, MockDirectoryApi({}))

        assert await http_directory.get_template('order_confirmation', 'org-1') is None

    async def test_server_error(self, http_directory):
        install(http_directory, MockDirectoryApi({'GET /v1/catalogues/cat-1': httpx.Response(503)}))

        with pytest.raises(DirectoryError) as exc_info:
            await http_directory.get_catalogue('cat-1', 'org-1')

        assert exc_info.value.status_code == 503

    async def test_non_json_body_is_malformed(self, http_directory):
        html = httpx.Response(200, text='<html>maintenance</html>')
        install(http_directory, MockDirectoryApi({'GET /v1/channels/whatsapp/active': html}))

        with pytest.raises(DirectoryResponseError) as exc_info:
            await http_directory.find_channel('org-1')

        assert exc_info.value.status_code == 200

    async def test_invalid_record_is_malformed(self, http_directory):
        body = {'success': True, 'data': {'language': 'en'}}
        api = MockDirectoryApi({'GET /v1/templates/order_confirmation': httpx.Response(200, json=body)})
        install(http_directory, api)

        with pytest.raises(DirectoryResponseError, match='malformed template order_confirmation'):
            await http_directory.get_template('order_confirmation', 'org-1')

    async def test_malformed_body_fails_lookup_without_retry(self, http_directory, monkeypatch, sleep):
        api = MockDirectoryApi({'GET /v1/channels/whatsapp/active': httpx.Response(200, text='<html></html>')})
        install(http_directory, api)
        monkeypatch.setattr(_DirectoryServiceHolder, 'instance', http_directory)

        with pytest.raises(ActivityFatalError):
            await execute_with_retry(
                lambda: lookup_channel(LookupChannelInput(org_id='org-1')),
                DEFAULT_RETRY,
                name='lookup_channel',
                sleep=sleep,
            )

        assert len(api.requests) == 1
        assert sleep.delays == []

    async def test_mark_subscription_notified(self, http_directory):
        api = MockDirectoryApi({'POST /v1/back-in-stock-subscriptions/sub-1/notified': httpx.Response(204)})
        install(http_directory, api)

        await http_directory.mark_subscription_notified('sub-1')

        assert len(api.requests) == 1

    def test_requires_url(self, monkeypatch):
        monkeypatch.setattr(app_config, 'DIRECTORY_API_URL', None)

        with pytest.raises(ValueError, match='DIRECTORY_API_URL'):
            HttpDirectoryService()


class TestFactory:
    def test_static_by_default(self, monkeypatch):
        monkeypatch.setattr(app_config, 'DIRECTORY_API_URL', None)
        monkeypatch.setattr(app_config, 'DIRECTORY_STATIC_FILE', None)

        assert isinstance(get_directory_service(), StaticDirectoryService)

    def test_http_when_url_configured(self, monkeypatch):
        monkeypatch.setattr(app_config, 'DIRECTORY_API_URL', 'https://directory.example.com/v1')

        assert isinstance(get_directory_service(), HttpDirectoryService)
        assert isinstance(get_directory_service(DirectoryProvider.STATIC), StaticDirectoryService)
