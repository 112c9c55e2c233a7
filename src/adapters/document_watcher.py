"""Document watcher (BeautifulSoup).

Feeds the links of an HTML document into the hover pipeline:
- every `a[href]` is examined once and then carries `data-lme="processed"`;
- shortener links lose their `title` (the annotation replaces it), receive a
  `data-lme-id` and are attached to the hover state machine;
- bursts of insertions are collapsed into one scan after a quiet period.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup
from bs4.element import Tag

from core.config import AppSettings
from core.domain.models import LinkHandle, RegistrySnapshot
from core.interfaces.capabilities import Scheduler, TimerHandle
from core.services.domain_matcher import matches, page_domain_from_url
from core.services.hover_intent import HoverIntentStateMachine
from core.services.service_registry import ServiceRegistry

logger = logging.getLogger(__name__)

PROCESSED_ATTR = "data-lme"
PROCESSED_VALUE = "processed"
ID_ATTR = "data-lme-id"


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class DocumentWatcher:
    def __init__(
        self,
        *,
        document: BeautifulSoup,
        page_url: str | None,
        registry: ServiceRegistry,
        hover: HoverIntentStateMachine,
        scheduler: Scheduler,
        settings: AppSettings | None = None,
    ) -> None:
        self._document = document
        self._page_domain = page_domain_from_url(page_url)
        self._registry = registry
        self._hover = hover
        self._scheduler = scheduler
        self._debounce_seconds = (settings or AppSettings()).mutation_debounce_seconds
        self._debounce: TimerHandle | None = None
        self._next_id = 0
        self._elements: dict[int, Tag] = {}
        self._links: list[LinkHandle] = []

    @property
    def document(self) -> BeautifulSoup:
        return self._document

    @property
    def page_domain(self) -> str | None:
        return self._page_domain

    @property
    def links(self) -> list[LinkHandle]:
        return list(self._links)

    def element(self, element_id: int) -> Tag | None:
        return self._elements.get(element_id)

    def start(self) -> list[LinkHandle]:
        """Initial pass; rescans once the registry arrives if it was empty."""

        snapshot = self._registry.get(on_refresh=self._on_registry_ready)
        return self.scan(snapshot=snapshot)

    def _on_registry_ready(self, snapshot: RegistrySnapshot) -> None:
        self.scan(snapshot=snapshot)

    def scan(self, root: Tag | None = None, *, snapshot: RegistrySnapshot | None = None) -> list[LinkHandle]:
        snapshot = snapshot or self._registry.get()
        if snapshot.is_empty:
            return []

        root = root or self._document
        attached: list[LinkHandle] = []
        for anchor in root.find_all("a", href=True):
            if anchor.get(PROCESSED_ATTR) == PROCESSED_VALUE:
                continue
            href = anchor.get("href")
            if isinstance(href, str) and matches(href, self._page_domain, snapshot):
                link = LinkHandle(element_id=self._next_id, href=href.strip())
                self._next_id += 1
                if "title" in anchor.attrs:
                    del anchor["title"]
                anchor[ID_ATTR] = str(link.element_id)
                self._elements[link.element_id] = anchor
                self._links.append(link)
                self._hover.attach(link)
                attached.append(link)
            anchor[PROCESSED_ATTR] = PROCESSED_VALUE

        if attached:
            logger.info("Attached %d shortener link(s)", len(attached))
        return attached

    def notify_inserted(self) -> None:
        """Schedule a scan after the quiet period, restarting it on every call."""

        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self._scheduler.call_later(self._debounce_seconds, self._flush)

    def _flush(self) -> None:
        self._debounce = None
        self.scan()

    def insert(self, markup: str, parent: Tag | None = None) -> None:
        """Append `markup` to `parent` (default: body) and notify."""

        fragment = BeautifulSoup(markup, "html.parser")
        target = parent or self._document.body or self._document
        for node in list(fragment.contents):
            target.append(node.extract())
        self.notify_inserted()
