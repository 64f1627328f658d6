"""
Anthropic Messages API transport.

Posts a single generation request with an explicit API key and returns the
decoded response body. Status handling is left to the failover layer: any
non-2xx response becomes a ProviderHTTPError carrying the status code.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from planforge.config.defaults import (
    ANTHROPIC_API_URL,
    ANTHROPIC_API_VERSION,
    PROVIDER_TIMEOUT_SECONDS,
)
from planforge.errors import ProviderHTTPError

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return response.text[:500]


class AnthropicTransport:
    """Thin async client for ``POST /v1/messages``."""

    def __init__(
        self,
        url: str = ANTHROPIC_API_URL,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def create_message(
        self,
        *,
        api_key: str,
        model: str,
        system: str,
        messages: List[Dict[str, Any]],
        max_tokens: int,
    ) -> Dict[str, Any]:
        """
        Send one request.

        Returns:
            The response JSON (``content``, ``model``, ``usage``, ...)

        Raises:
            ProviderHTTPError: On any non-2xx status
        """
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            payload["system"] = system

        if self._client is not None:
            response = await self._client.post(self.url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload, headers=headers)

        if response.status_code >= 400:
            raise ProviderHTTPError(response.status_code, _error_message(response))

        return response.json()
