"""Runtime wiring.

This module assembles the registry, the resolution cache and the hover state
machine around one set of host capabilities. The CLI (and any other host)
builds a runtime once and drives it; tests inject fakes for every capability.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable

from bs4 import BeautifulSoup

from adapters.annotation_surface import InMemorySurface
from adapters.document_watcher import DocumentWatcher
from adapters.event_loop import AsyncioScheduler, SystemClock
from adapters.http_client import HttpxTransport
from adapters.storage import open_store
from core.config import AppSettings
from core.domain.models import AnnotationContent, RegistrySnapshot
from core.interfaces.capabilities import Clock, KeyValueStore, Scheduler, Transport
from core.interfaces.surface import AnnotationSurface
from core.services.hover_intent import HoverIntentStateMachine
from core.services.resolution_cache import ResolutionCache
from core.services.service_registry import ServiceRegistry


@dataclass
class ExpanderRuntime:
    settings: AppSettings
    transport: Transport
    store: KeyValueStore
    scheduler: Scheduler
    clock: Clock
    surface: AnnotationSurface
    registry: ServiceRegistry
    cache: ResolutionCache
    hover: HoverIntentStateMachine

    def watch(self, document: BeautifulSoup, *, page_url: str | None) -> DocumentWatcher:
        return DocumentWatcher(
            document=document,
            page_url=page_url,
            registry=self.registry,
            hover=self.hover,
            scheduler=self.scheduler,
            settings=self.settings,
        )

    async def drain(self) -> None:
        """Wait for background fetches when running on the asyncio scheduler."""

        if isinstance(self.scheduler, AsyncioScheduler):
            await self.scheduler.drain()


def build_runtime(
    settings: AppSettings | None = None,
    *,
    transport: Transport | None = None,
    store: KeyValueStore | None = None,
    scheduler: Scheduler | None = None,
    clock: Clock | None = None,
    surface: AnnotationSurface | None = None,
) -> ExpanderRuntime:
    settings = settings or AppSettings()
    transport = transport or HttpxTransport(settings)
    store = store if store is not None else open_store(settings)
    scheduler = scheduler or AsyncioScheduler()
    clock = clock or SystemClock()
    surface = surface or InMemorySurface()

    registry = ServiceRegistry(
        transport=transport,
        store=store,
        scheduler=scheduler,
        clock=clock,
        settings=settings,
    )
    cache = ResolutionCache(transport=transport, scheduler=scheduler, clock=clock, settings=settings)
    hover = HoverIntentStateMachine(
        cache=cache,
        surface=surface,
        scheduler=scheduler,
        clock=clock,
        settings=settings,
    )
    return ExpanderRuntime(
        settings=settings,
        transport=transport,
        store=store,
        scheduler=scheduler,
        clock=clock,
        surface=surface,
        registry=registry,
        cache=cache,
        hover=hover,
    )


async def load_registry(runtime: ExpanderRuntime, *, refresh: bool = False) -> RegistrySnapshot:
    """Best snapshot after any triggered refresh has finished (success or not)."""

    registry = runtime.registry
    if refresh:
        registry.refresh()
    else:
        registry.get()

    if registry.refreshing:
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _finished(_: RegistrySnapshot | None) -> None:
            if not done.done():
                done.set_result(None)

        registry.add_refresh_listener(_finished)
        await done
    return registry.get()


async def expand_urls(runtime: ExpanderRuntime, urls: Iterable[str]) -> dict[str, AnnotationContent]:
    """Resolve each distinct URL through the cache, one fetch per URL."""

    loop = asyncio.get_running_loop()
    ordered = list(dict.fromkeys(u.strip() for u in urls if u.strip()))
    results: dict[str, AnnotationContent] = {}
    waiting: dict[str, asyncio.Future[AnnotationContent]] = {}

    for url in ordered:
        future: asyncio.Future[AnnotationContent] = loop.create_future()
        value = runtime.cache.resolve(url, future.set_result)
        if value is not None:
            results[url] = value
        else:
            waiting[url] = future

    for url, future in waiting.items():
        results[url] = await future
    return {url: results[url] for url in ordered}
