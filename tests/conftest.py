"""Pytest configuration and fixtures.

Test Markers:
    - Default: Unit tests run automatically
    - @pytest.mark.manual: Integration tests against a real Temporal server
      (or the downloaded Temporal test server)
    - @pytest.mark.slow: Tests that take more than a few seconds

Run commands:
    pytest                          # Run unit tests only (default)
    pytest -m manual                # Run manual/integration tests
    pytest -m "not slow"            # Skip slow tests
    pytest -m ""                    # Run ALL tests (no filter)
"""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack

import pytest
from faker import Faker

from flowflex.core.services.channel.base_service import ChannelServiceInterface
from flowflex.core.services.channel.schemas import ChannelConfig, ChannelProvider, OutboundMessage, SendResult
from flowflex.core.services.channel.service import _ChannelServiceHolder
from flowflex.core.services.directory.providers.static.service import StaticDirectoryService
from flowflex.core.services.directory.schemas import MessageTemplate
from flowflex.core.services.directory.service import _DirectoryServiceHolder
from flowflex.registry import build_registry
from flowflex.runtime.backend import LocalBackend
from flowflex.runtime.gateway import Gateway
from flowflex.runtime.registry import Registry
from flowflex.runtime.worker import Worker

ORG_ID = 'org-1'
TEMPLATES = ('order_confirmation', 'order_cancellation', 'back_in_stock_notification')


@pytest.fixture(scope='session')
def faker() -> Faker:
    return Faker()


# =============================================================================
# External services
# =============================================================================


class FakeChannelService(ChannelServiceInterface):
    """Records every send; scripted errors are raised per recipient, in order."""

    def __init__(self) -> None:
        self.attempts: list[OutboundMessage] = []
        self.sent: list[OutboundMessage] = []
        self._failures: dict[str, list[Exception]] = {}

    def fail(self, to: str, *errors: Exception) -> None:
        self._failures.setdefault(to, []).extend(errors)

    def sent_to(self, to: str) -> list[OutboundMessage]:
        return [m for m in self.sent if m.to == to]

    async def send(self, message: OutboundMessage, channel: ChannelConfig) -> SendResult:
        self.attempts.append(message)
        queued = self._failures.get(message.to)
        if queued:
            raise queued.pop(0)
        self.sent.append(message)
        return SendResult(message_id=f'wamid.{len(self.sent)}', provider=channel.bsp, to=message.to)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def channel(monkeypatch) -> FakeChannelService:
    """Fake BSP installed for every provider."""
    service = FakeChannelService()
    monkeypatch.setattr(
        _ChannelServiceHolder,
        'instances',
        {ChannelProvider.INTERAKT: service, ChannelProvider.GUPSHUP: service},
    )
    return service


@pytest.fixture
def directory(monkeypatch) -> StaticDirectoryService:
    """Static directory with one channel and the standard templates."""
    service = StaticDirectoryService()
    service.add_channel(ORG_ID, ChannelConfig(channel_id='ch-1', phone_number_id='1555000', waba_id='waba-1'))
    for name in TEMPLATES:
        service.add_template(MessageTemplate(name=name, language='en'))
    monkeypatch.setattr(_DirectoryServiceHolder, 'instance', service)
    return service


# =============================================================================
# Runtime
# =============================================================================


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def registry() -> Registry:
    return build_registry()


@pytest.fixture
def backend() -> LocalBackend:
    return LocalBackend()


@pytest.fixture
async def workers(registry, backend, sleep) -> AsyncIterator[list[Worker]]:
    """One running worker per task queue."""
    async with AsyncExitStack() as stack:
        running = []
        for task_queue in registry.task_queues():
            worker = Worker(task_queue, registry, backend.store, backend.broker, sleep=sleep)
            running.append(await stack.enter_async_context(worker))
        yield running


@pytest.fixture
def gateway(registry, backend, sleep) -> Gateway:
    return Gateway(backend, registry, sync_timeout=5.0, sleep=sleep)


# =============================================================================
# Payloads
# =============================================================================


@pytest.fixture
def org() -> dict:
    return {'orgId': ORG_ID, 'shopDomain': 'shop.example.com'}


@pytest.fixture
def customer(faker) -> dict:
    return {'phone': f'+9198{faker.numerify("########")}', 'name': faker.first_name()}


@pytest.fixture
def order(faker) -> dict:
    return {
        'id': faker.unique.random_int(min=1000, max=999999),
        'order_number': f'#{faker.random_int(min=1000, max=9999)}',
        'total_price': '49.90',
        'line_items': [{'name': 'Linen Shirt', 'quantity': 2}, {'name': 'Cap', 'quantity': 1}],
    }


@pytest.fixture
def product() -> dict:
    return {'id': 'prod-7', 'title': 'Linen Shirt', 'handle': 'linen-shirt'}


@pytest.fixture
def variants() -> list[dict]:
    return [{'id': 'var-2', 'variant_title': 'M / Blue'}, {'id': 'var-1', 'variant_title': 'L / Blue'}]


# =============================================================================
# Temporal Fixtures for Manual Tests
# =============================================================================


@pytest.fixture
async def temporal_client():
    """Temporal client connected to the configured server.

    Only used for manual tests.
    """
    from temporalio.client import Client
    from temporalio.contrib.pydantic import pydantic_data_converter

    from flowflex.core.configs import app_config

    return await Client.connect(
        app_config.TEMPORAL_HOST,
        namespace=app_config.TEMPORAL_NAMESPACE,
        data_converter=pydantic_data_converter,
    )
