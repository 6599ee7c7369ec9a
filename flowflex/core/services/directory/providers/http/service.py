from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from flowflex.core.configs import app_config
from flowflex.core.services.channel.schemas import ChannelConfig
from flowflex.core.services.directory.base_service import DirectoryServiceInterface
from flowflex.core.services.directory.exceptions import DirectoryError, DirectoryResponseError
from flowflex.core.services.directory.schemas import Catalogue, MessageTemplate

ModelT = TypeVar('ModelT', bound=BaseModel)


class HttpDirectoryService(DirectoryServiceInterface):
    """Directory backed by the platform's REST API."""

    def __init__(self) -> None:
        if not app_config.DIRECTORY_API_URL:
            raise ValueError('DIRECTORY_API_URL is not set. Please set it in your environment or .env file.')
        self._base_url = app_config.DIRECTORY_API_URL.rstrip('/')
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {'Content-Type': 'application/json'}
            if app_config.DIRECTORY_API_TOKEN:
                headers['Authorization'] = f'Bearer {app_config.DIRECTORY_API_TOKEN}'
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=app_config.DIRECTORY_HTTP_TIMEOUT,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any | None:
        """Issue a request; 404 maps to None, other failures to DirectoryError."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise DirectoryError(f'Directory request {method} {path} failed: {e}') from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise DirectoryError(
                f'Directory request {method} {path} returned {response.status_code}',
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise DirectoryResponseError(
                f'Directory request {method} {path} returned a non-JSON body',
                status_code=response.status_code,
            ) from e
        # Unwrap the {"data": ...} envelope used by the platform API
        if isinstance(data, dict) and 'success' in data and 'data' in data:
            return data['data']
        return data

    async def find_channel(self, org_id: str, branch_id: str | None = None) -> ChannelConfig | None:
        params = {'orgId': org_id}
        if branch_id:
            params['branchId'] = branch_id
        data = await self._request('GET', '/channels/whatsapp/active', params=params)
        return _parse(ChannelConfig, data, 'channel') if data else None

    async def get_template(self, name: str, org_id: str, branch_id: str | None = None) -> MessageTemplate | None:
        params = {'orgId': org_id}
        if branch_id:
            params['branchId'] = branch_id
        data = await self._request('GET', f'/templates/{name}', params=params)
        return _parse(MessageTemplate, data, f'template {name}') if data else None

    async def get_catalogue(self, catalogue_id: str, org_id: str) -> Catalogue | None:
        data = await self._request('GET', f'/catalogues/{catalogue_id}', params={'orgId': org_id})
        return _parse(Catalogue, data, f'catalogue {catalogue_id}') if data else None

    async def mark_subscription_notified(self, subscription_id: str) -> None:
        await self._request('POST', f'/back-in-stock-subscriptions/{subscription_id}/notified')


def _parse(model: type[ModelT], data: Any, what: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DirectoryResponseError(
            f'Directory returned a malformed {what}: {e.error_count()} validation errors'
        ) from e
