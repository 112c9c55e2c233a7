"""httpx wrapper.

Why a wrapper:
- Standardizes timeouts, headers and redirect policy for every request.
- Eases testing: the core only sees the `Transport` protocol, so a scripted
  transport replaces this one.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from core.config import AppSettings
from core.domain.errors import TransportError

logger = logging.getLogger(__name__)


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: Mapping[str, str] | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with safe defaults.

    Why a builder:
    - Centralizes timeouts/headers so every call behaves the same.
    - The client identifier is always sent as the User-Agent.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = dict(settings.api_headers)
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
    )


class HttpxTransport:
    """`Transport` backed by httpx; one short-lived client per request."""

    def __init__(self, settings: AppSettings | None = None) -> None:
        self._settings = settings or AppSettings()

    async def get_json(self, url: str, *, headers: Mapping[str, str] | None = None) -> Any:
        try:
            async with build_async_client(self._settings, extra_headers=headers) as client:
                response = await client.get(url)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("GET %s failed: %s", url, exc)
            raise TransportError(f"GET {url} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"GET {url} returned invalid JSON: {exc}") from exc
