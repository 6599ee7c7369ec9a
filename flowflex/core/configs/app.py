from typing import Annotated, ClassVar, Literal

from pydantic import BeforeValidator, computed_field

from flowflex.core.configs.base_config import BaseConfig


class AppConfig(BaseConfig):
    _default_secrets: ClassVar[list[str]] = [
        'INTERAKT_TOKEN',
        'GUPSHUP_TOKEN',
        'DIRECTORY_API_TOKEN',
    ]

    ENVIRONMENT: Literal['local', 'staging', 'production', 'testing'] = 'local'
    PROJECT_NAME: str = 'FlowFlex Messaging'

    # Logging
    LOG_LEVEL: str = 'DEBUG'
    LOG_HANDLERS: Annotated[list[Literal['stream', 'file']] | str, BeforeValidator(BaseConfig._parse_list)] = ['stream']
    LOG_FORMAT: Literal['plain', 'json'] = 'plain'
    LOG_DIR: str | None = None  # defaults to logs/ at the project root

    # Orchestration backend
    # 'local' runs the in-process task queues and workers,
    # 'temporal' hands invocations to a Temporal cluster
    ORCHESTRATION_BACKEND: Literal['local', 'temporal'] = 'local'

    # Temporal
    TEMPORAL_HOST: str = 'localhost:7233'
    TEMPORAL_NAMESPACE: str = 'default'

    # Workflow runtime
    # Post-completion delay that keeps short invocations visible in monitoring.
    # Zero disables it; every synchronous caller pays this latency.
    WORKFLOW_SETTLE_DELAY_SECONDS: float = 0.0
    WORKER_MAX_CONCURRENT: int = 100

    # Gateway
    GATEWAY_SYNC_TIMEOUT_SECONDS: float = 60.0
    GATEWAY_START_ATTEMPTS: int = 2

    # Messaging channel (WhatsApp BSP)
    CHANNEL_PROVIDER: Literal['interakt', 'gupshup'] = 'interakt'
    INTERAKT_API_URL: str = 'https://amped-express.interakt.ai/api/v17.0'
    INTERAKT_TOKEN: str | None = None
    GUPSHUP_PARTNER_API: str = 'https://partner.gupshup.io'
    GUPSHUP_TOKEN: str | None = None
    CHANNEL_HTTP_TIMEOUT: float = 30.0

    # Directory (channels, templates, catalogues, subscriptions)
    DIRECTORY_API_URL: str | None = None
    DIRECTORY_API_TOKEN: str | None = None
    DIRECTORY_HTTP_TIMEOUT: float = 10.0
    DIRECTORY_STATIC_FILE: str | None = None  # JSON seed for the in-memory directory

    # Storefront used for product links in back-in-stock alerts
    SHOP_DOMAIN: str | None = None

    # HTTP API
    API_HOST: str = '0.0.0.0'
    API_PORT: int = 3003

    @computed_field  # type: ignore[misc]
    @property
    def directory_provider(self) -> Literal['http', 'static']:
        """Use the remote directory when its URL is configured."""
        if self.DIRECTORY_API_URL:
            return 'http'
        return 'static'


app_config = AppConfig()
