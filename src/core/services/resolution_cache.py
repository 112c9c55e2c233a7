"""Deduplicating resolution cache.

Guarantees:
- at most one remote fetch per distinct URL, ever (the Pending entry is the
  in-flight marker);
- a settled entry (Resolved or Failed) is served synchronously for the rest
  of the process lifetime (no eviction, no TTL);
- every waiter registered while Pending is notified exactly once, in
  registration order, in the same step that installs the result.
"""

from __future__ import annotations

import logging
from typing import Any, Callable
from urllib.parse import quote

from core.config import AppSettings
from core.domain.errors import RemoteApiError, ResolutionFetchError, TransportError
from core.domain.models import AnnotationContent, ResolutionEntry, ResolutionState
from core.interfaces.capabilities import Clock, Scheduler, Transport
from core.services.settleable import Settleable

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Could not expand this link right now."

SettledCallback = Callable[[AnnotationContent], None]


def encode_component(value: str) -> str:
    """Percent-encode like a browser's encodeURIComponent."""

    return quote(value, safe="!~*'()")


def _first_message(messages: Any) -> str:
    if isinstance(messages, list) and messages:
        first = messages[0]
        if isinstance(first, dict) and isinstance(first.get("message"), str):
            return first["message"]
        if isinstance(first, str):
            return first
    return "Unknown error"


class ResolutionCache:
    """Owns the URL -> `ResolutionEntry` mapping exclusively."""

    def __init__(
        self,
        *,
        transport: Transport,
        scheduler: Scheduler,
        clock: Clock,
        settings: AppSettings | None = None,
    ) -> None:
        self._transport = transport
        self._scheduler = scheduler
        self._clock = clock
        self._settings = settings or AppSettings()
        self._entries: dict[str, ResolutionEntry] = {}
        self._waiters: dict[str, Settleable[AnnotationContent]] = {}

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def pending_count(self) -> int:
        return len(self._waiters)

    def entry(self, url: str) -> ResolutionEntry | None:
        return self._entries.get(url)

    def entries(self) -> list[ResolutionEntry]:
        return list(self._entries.values())

    def expand_endpoint(self, url: str) -> str:
        return f"{self._settings.api_root}expand?format=json&title=1&url={encode_component(url)}"

    def more_info_url(self, url: str) -> str:
        site = self._settings.resolver_site.rstrip("/")
        return f"{site}/expand?url={encode_component(url)}&src={encode_component(self._settings.client_id)}"

    def resolve(self, url: str, on_settled: SettledCallback | None = None) -> AnnotationContent | None:
        """Cached value, or `None` while a fetch is (now) outstanding.

        `on_settled` is only kept when no value is available yet.
        """

        entry = self._entries.get(url)
        if entry is not None and entry.settled:
            return entry.value

        if entry is not None:
            if on_settled is not None:
                self._waiters[url].add_listener(on_settled)
            return None

        pending: Settleable[AnnotationContent] = Settleable()
        if on_settled is not None:
            pending.add_listener(on_settled)
        self._entries[url] = ResolutionEntry(url=url, requested_at=self._clock.now())
        self._waiters[url] = pending
        logger.debug("Resolving %s", url)
        self._scheduler.spawn(self._fetch(url))
        return None

    async def _fetch(self, url: str) -> None:
        try:
            content = await self._download(url)
        except RemoteApiError as exc:
            logger.info("Remote service rejected %s: %s", url, exc)
            content = AnnotationContent.error(str(exc))
        except ResolutionFetchError as exc:
            logger.info("Could not resolve %s: %s", url, exc)
            content = AnnotationContent.error(UNAVAILABLE_MESSAGE)
        except Exception:
            logger.exception("Unexpected failure resolving %s", url)
            content = AnnotationContent.error(UNAVAILABLE_MESSAGE)
        self._settle(url, content)

    async def _download(self, url: str) -> AnnotationContent:
        try:
            payload = await self._transport.get_json(
                self.expand_endpoint(url),
                headers=self._settings.api_headers,
            )
        except TransportError as exc:
            raise ResolutionFetchError(str(exc)) from exc
        return self._content_from_payload(url, payload)

    def _content_from_payload(self, url: str, payload: Any) -> AnnotationContent:
        if not isinstance(payload, dict):
            raise ResolutionFetchError(f"unexpected payload type {type(payload).__name__}")

        if payload.get("messages") is not None:
            raise RemoteApiError(_first_message(payload["messages"]))

        long_url = payload.get("long-url")
        if not isinstance(long_url, str) or not long_url.strip():
            raise ResolutionFetchError("payload has no long-url")

        title = payload.get("title")
        title = title.strip() if isinstance(title, str) else None
        return AnnotationContent.resolved(
            long_url=long_url.strip(),
            title=title,
            more_info_url=self.more_info_url(url),
        )

    def _settle(self, url: str, content: AnnotationContent) -> None:
        state = ResolutionState.FAILED if content.is_error else ResolutionState.RESOLVED
        self._entries[url] = self._entries[url].model_copy(
            update={"state": state, "value": content, "settled_at": self._clock.now()}
        )
        self._waiters.pop(url).settle(content)
