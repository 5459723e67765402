"""HTTP transport used by the provider adapters.

Adapters never talk to httpx directly. They go through ``HttpTransport`` so
that tests (and embedding applications) can hand in their own
``httpx.AsyncClient``, typically one built on ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

import httpx

from complens_core.errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

# Single-shot answers for a full artifact revision can take a while; the
# streaming path applies its own, stricter deadline on top of this.
DEFAULT_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


class HttpTransport:
    """Thin async wrapper that maps httpx failures onto ``TransportError``.

    A URL httpx cannot parse raises ``ConfigurationError`` instead.

    ``label`` names the remote side in error messages ("Provider", "Ollama").
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def post_json(self, url: str, *, headers: dict[str, str], payload: dict, label: str = "Provider") -> dict:
        """POST a JSON body and return the decoded JSON answer."""
        try:
            response = await self.client.post(url, headers=headers, json=payload)
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"Invalid endpoint URL: {url}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{label} request failed: {e}") from e
        _raise_for_status(response, label)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{label} returned a non-JSON body.", response.status_code) from e

    async def get(self, url: str, *, headers: dict[str, str] | None = None, label: str = "Provider") -> None:
        try:
            response = await self.client.get(url, headers=headers)
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"Invalid endpoint URL: {url}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{label} request failed: {e}") from e
        _raise_for_status(response, label)

    async def stream_sse(
        self, url: str, *, headers: dict[str, str], payload: dict, label: str = "Provider"
    ) -> AsyncIterator[dict]:
        """POST and yield each server-sent ``data:`` payload decoded as JSON.

        The response is released when the caller stops iterating, including
        when the generator is closed early on cancellation.
        """
        try:
            async with self.client.stream("POST", url, headers=headers, json=payload) as response:
                if response.is_error:
                    await response.aread()
                    _raise_for_status(response, label)
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if not data or data == "[DONE]":
                        continue
                    try:
                        yield json.loads(data)
                    except json.JSONDecodeError:
                        logger.warning("%s: skipping unparseable stream payload: %s", label, data[:200])
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"Invalid endpoint URL: {url}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{label} request failed: {e}") from e


def _raise_for_status(response: httpx.Response, label: str) -> None:
    if response.is_error:
        logger.debug("%s error body: %s", label, response.text[:500])
        raise TransportError(f"{label} responded with status {response.status_code}", status_code=response.status_code)
