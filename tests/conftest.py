from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Any, Callable, Mapping

import pytest

from adapters.annotation_surface import InMemorySurface
from adapters.storage import MemoryStore
from core.config import AppSettings
from core.domain.errors import TransportError
from core.services.runtime import ExpanderRuntime, build_runtime
from core.services.service_registry import EXPIRES_KEY, SERVICES_KEY

START = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

SERVICES_PAYLOAD = {
    "bit.ly": {"regex": None},
    "t.co": {"regex": r"t\.co/\w+$"},
    "notlong.com": {},
}


@dataclass
class FakeTimer:
    when: float
    seq: int
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeScheduler:
    """Virtual time. Timers fire on `advance`, spawned coroutines on `run_*`.

    Also acts as the `Clock`, so timestamps follow virtual time.
    """

    start: datetime = START
    time: float = 0.0
    timers: list[FakeTimer] = field(default_factory=list)
    tasks: list[Any] = field(default_factory=list)
    _seq: int = 0

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.time)

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        self._seq += 1
        timer = FakeTimer(self.time + delay, self._seq, callback)
        self.timers.append(timer)
        return timer

    def spawn(self, awaitable: Any) -> None:
        self.tasks.append(awaitable)

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self.timers.remove(timer)
            self.time = max(self.time, timer.when)
            timer.callback()
        self.time = target

    def run_next(self) -> None:
        asyncio.run(self.tasks.pop(0))

    def run_tasks(self) -> None:
        while self.tasks:
            self.run_next()

    def close(self) -> None:
        for task in self.tasks:
            task.close()
        self.tasks.clear()


class FakeTransport:
    """Routes URLs containing a fragment to a payload (or an exception)."""

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []

    def route(self, fragment: str, response: Any) -> None:
        self.routes[fragment] = response

    def count(self, fragment: str) -> int:
        return sum(1 for url, _ in self.calls if fragment in url)

    async def get_json(self, url: str, *, headers: Mapping[str, str] | None = None) -> Any:
        self.calls.append((url, dict(headers or {})))
        for fragment, response in self.routes.items():
            if fragment in url:
                if isinstance(response, BaseException):
                    raise response
                return response
        raise TransportError(f"no route for {url}")


def persisted_registry(store: MemoryStore, services: dict[str, Any], expires_at: datetime) -> None:
    store.set(SERVICES_KEY, json.dumps(services))
    store.set(EXPIRES_KEY, format_datetime(expires_at, usegmt=True))


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    return AppSettings(_env_file=None, state_dir=tmp_path)


@pytest.fixture
def scheduler():
    fake = FakeScheduler()
    yield fake
    fake.close()


@pytest.fixture
def transport() -> FakeTransport:
    fake = FakeTransport()
    fake.route("services?format=json", SERVICES_PAYLOAD)
    return fake


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def surface() -> InMemorySurface:
    return InMemorySurface()


@pytest.fixture
def runtime(settings, transport, store, scheduler, surface) -> ExpanderRuntime:
    return build_runtime(
        settings,
        transport=transport,
        store=store,
        scheduler=scheduler,
        clock=scheduler,
        surface=surface,
    )
