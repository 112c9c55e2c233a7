"""Registry of known URL-shortening services.

Lookup order (each step only if the previous yields nothing usable):
1) the in-memory snapshot, if fresh;
2) the persisted snapshot, if unexpired;
3) a remote refresh, while the previous (or an empty) snapshot is served.

Refresh failures never propagate: the previous snapshot stays in place and
no new attempt is made until `registry_retry_seconds` have passed.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Callable

from core.config import AppSettings
from core.domain.errors import RegistryFetchError, TransportError
from core.domain.models import RegistrySnapshot
from core.interfaces.capabilities import Clock, KeyValueStore, Scheduler, Transport
from core.services.settleable import Settleable

logger = logging.getLogger(__name__)

SERVICES_KEY = "longurl_services"
EXPIRES_KEY = "longurl_services_expire"

ReadyCallback = Callable[[RegistrySnapshot], None]


def _on_success(callback: ReadyCallback) -> Callable[[RegistrySnapshot | None], None]:
    def listener(snapshot: RegistrySnapshot | None) -> None:
        if snapshot is not None:
            callback(snapshot)

    return listener


class ServiceRegistry:
    """Owns the single process-wide `RegistrySnapshot`."""

    def __init__(
        self,
        *,
        transport: Transport,
        store: KeyValueStore,
        scheduler: Scheduler,
        clock: Clock,
        settings: AppSettings | None = None,
    ) -> None:
        self._transport = transport
        self._store = store
        self._scheduler = scheduler
        self._clock = clock
        self._settings = settings or AppSettings()
        self._ttl = timedelta(hours=self._settings.registry_ttl_hours)
        self._retry_after = timedelta(seconds=self._settings.registry_retry_seconds)

        self._snapshot: RegistrySnapshot | None = None
        self._inflight: Settleable[RegistrySnapshot | None] | None = None
        self._failed_at: datetime | None = None

    @property
    def snapshot(self) -> RegistrySnapshot | None:
        return self._snapshot

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None

    def get(self, on_refresh: ReadyCallback | None = None) -> RegistrySnapshot:
        """Best available snapshot; never blocks.

        `on_refresh` is called once a refresh triggered (or joined) by this
        call succeeds.
        """

        now = self._clock.now()
        current = self._snapshot
        if current is not None and not current.is_stale(now):
            return current

        if current is None:
            persisted = self._load_persisted(now)
            if persisted is not None:
                self._snapshot = persisted
                return persisted

        self._maybe_refresh(now, on_refresh)
        return current or RegistrySnapshot.empty(now)

    def refresh(self, on_ready: ReadyCallback | None = None) -> None:
        """Fetch the service list remotely; joins a refresh already in flight."""

        if self._inflight is not None:
            if on_ready is not None:
                self._inflight.add_listener(_on_success(on_ready))
            return

        pending: Settleable[RegistrySnapshot | None] = Settleable()
        if on_ready is not None:
            pending.add_listener(_on_success(on_ready))
        self._inflight = pending
        self._scheduler.spawn(self._fetch(pending))

    def add_refresh_listener(self, listener: Callable[[RegistrySnapshot | None], None]) -> bool:
        """Be told when the in-flight refresh ends (`None` on failure).

        Returns False when no refresh is in flight.
        """

        if self._inflight is None:
            return False
        return self._inflight.add_listener(listener)

    def _maybe_refresh(self, now: datetime, on_refresh: ReadyCallback | None) -> None:
        if self._inflight is None and self._failed_at is not None:
            if now < self._failed_at + self._retry_after:
                logger.debug("Registry refresh skipped; last failure at %s", self._failed_at)
                return
        self.refresh(on_refresh)

    async def _fetch(self, pending: Settleable[RegistrySnapshot | None]) -> None:
        snapshot: RegistrySnapshot | None = None
        try:
            snapshot = await self._download()
        except RegistryFetchError as exc:
            self._failed_at = self._clock.now()
            known = len(self._snapshot.services) if self._snapshot else 0
            logger.warning("Service registry refresh failed (keeping %d services): %s", known, exc)
        except Exception:
            self._failed_at = self._clock.now()
            logger.exception("Unexpected failure refreshing the service registry")
        else:
            self._snapshot = snapshot
            self._failed_at = None
            self._persist(snapshot)
            logger.info("Service registry refreshed: %d services", len(snapshot.services))
        finally:
            self._inflight = None
            pending.settle(snapshot)

    async def _download(self) -> RegistrySnapshot:
        url = f"{self._settings.api_root}services?format=json"
        try:
            payload = await self._transport.get_json(url, headers=self._settings.api_headers)
        except TransportError as exc:
            raise RegistryFetchError(str(exc)) from exc
        return self._parse(payload)

    def _parse(self, payload: Any) -> RegistrySnapshot:
        if isinstance(payload, dict) and isinstance(payload.get("messages"), list):
            raise RegistryFetchError(f"remote service reported an error: {payload['messages']!r}")
        try:
            return RegistrySnapshot.from_wire(payload, fetched_at=self._clock.now(), ttl=self._ttl)
        except ValueError as exc:
            raise RegistryFetchError(f"malformed service list: {exc}") from exc

    def _persist(self, snapshot: RegistrySnapshot) -> None:
        expires = snapshot.expires_at.astimezone(timezone.utc)
        try:
            self._store.set(SERVICES_KEY, json.dumps(snapshot.to_wire(), sort_keys=True))
            self._store.set(EXPIRES_KEY, format_datetime(expires, usegmt=True))
        except OSError as exc:
            logger.warning("Could not persist the service registry: %s", exc)

    def _load_persisted(self, now: datetime) -> RegistrySnapshot | None:
        raw_expiry = self._store.get(EXPIRES_KEY)
        if not raw_expiry:
            return None
        try:
            expires_at = parsedate_to_datetime(raw_expiry)
        except (TypeError, ValueError):
            logger.debug("Ignoring unparseable registry expiry %r", raw_expiry)
            return None
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            return None

        raw = self._store.get(SERVICES_KEY)
        if not raw:
            return None
        try:
            return RegistrySnapshot.from_wire(
                json.loads(raw),
                fetched_at=expires_at - self._ttl,
                ttl=self._ttl,
            )
        except ValueError as exc:
            logger.debug("Ignoring unreadable persisted registry: %s", exc)
            return None
