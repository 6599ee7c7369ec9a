"""Shared HTTP plumbing for Cloud API compatible BSPs."""

from abc import abstractmethod
from typing import Any

import httpx

from flowflex.core.configs import app_config
from flowflex.core.services.channel.base_service import ChannelServiceInterface
from flowflex.core.services.channel.exceptions import ChannelError, ChannelResponseError, ChannelTransportError
from flowflex.core.services.channel.schemas import ChannelConfig, ChannelProvider, OutboundMessage, SendResult


class CloudApiChannelService(ChannelServiceInterface):
    """Posts Cloud API payloads to a BSP and extracts the message ID."""

    provider: ChannelProvider

    def __init__(self, base_url: str, timeout: float | None = None) -> None:
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout if timeout is not None else app_config.CHANNEL_HTTP_TIMEOUT
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={'Content-Type': 'application/json'},
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    def _endpoint(self, channel: ChannelConfig) -> str:
        """Path of the send-message endpoint for this channel."""

    @abstractmethod
    def _headers(self, channel: ChannelConfig) -> dict[str, str]:
        """Authentication headers for this channel."""

    async def send(self, message: OutboundMessage, channel: ChannelConfig) -> SendResult:
        client = await self._get_client()

        headers = self._headers(channel)
        if message.client_reference:
            headers['X-Idempotency-Key'] = message.client_reference

        try:
            response = await client.post(self._endpoint(channel), json=message.to_payload(), headers=headers)
        except httpx.TimeoutException as e:
            raise ChannelTransportError(f'{self.provider.value} request timed out: {e}') from e
        except httpx.TransportError as e:
            raise ChannelTransportError(f'{self.provider.value} request failed: {e}') from e

        if response.status_code < 200 or response.status_code >= 300:
            detail = _safe_json(response)
            raise ChannelError(
                f'{self.provider.value} HTTP error: {response.status_code}',
                status_code=response.status_code,
                detail=detail,
            )

        data = _safe_json(response)
        message_id = _extract_message_id(data)
        if message_id is None:
            raise ChannelResponseError(
                f'{self.provider.value} response has no message id',
                status_code=response.status_code,
                detail=data,
            )

        return SendResult(
            message_id=message_id,
            provider=self.provider,
            to=message.to,
            raw=data if isinstance(data, dict) else {'body': data},
        )


def _safe_json(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text


def _extract_message_id(data: Any) -> str | None:
    """Find the message ID in a Cloud API style response.

    Accepts `{"messages": [{"id": ...}]}` and the `{"data": {...}}` envelope
    some BSP proxies wrap it in, plus a flat `messageId`.
    """
    if not isinstance(data, dict):
        return None

    if isinstance(data.get('data'), dict):
        nested = _extract_message_id(data['data'])
        if nested:
            return nested

    messages = data.get('messages')
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        message_id = messages[0].get('id')
        if message_id:
            return str(message_id)

    message_id = data.get('messageId') or data.get('message_id')
    return str(message_id) if message_id else None
