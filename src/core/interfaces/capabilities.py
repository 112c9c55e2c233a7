"""Host capabilities injected into the core.

Why Protocol:
- A structural contract (duck typing) without rigid inheritance.
- One implementation per supported host (asyncio + httpx + files in
  production, virtual time and scripted payloads in tests).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Minimal HTTP contract: GET a URL and return its decoded JSON body.

    Implementations raise `core.domain.errors.TransportError` on network or
    decoding failures.
    """

    async def get_json(self, url: str, *, headers: Mapping[str, str] | None = None) -> Any:
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Plain-text key/value persistence."""

    def get(self, key: str, default: str | None = None) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


@runtime_checkable
class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Event-loop services: delayed callbacks and background coroutines."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...

    def spawn(self, awaitable: Awaitable[None]) -> None:
        ...


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""

        ...
