"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation and self-documenting fields (Field) without coupling the
  core to I/O libraries.
- Snapshots and entries are frozen: they are replaced wholesale, never
  mutated in place.

Note:
- These models describe *what* the information is, not *how* it is fetched.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict

ERROR_PREFIX = "LongURL Error: "
PLACEHOLDER_TEXT = "Expanding..."
DEFAULT_REGISTRY_TTL = timedelta(hours=24)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a service pattern case-insensitively; `None` when invalid."""

    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


class ServiceDescriptor(BaseModel):
    """A known shortening service and its optional validating pattern."""

    model_config = ConfigDict(frozen=True)

    domain: str = Field(
        ...,
        min_length=1,
        max_length=253,
        description="Registrable domain of the service (e.g. 'bit.ly').",
    )
    match_pattern: str | None = Field(
        default=None,
        description="Source of the regular expression a link must satisfy, if any.",
    )

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("match_pattern")
    @classmethod
    def _empty_pattern_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value

    def accepts(self, href: str) -> bool:
        """Whether `href` satisfies this service's pattern (always true without one)."""

        if self.match_pattern is None:
            return True
        regex = compile_pattern(self.match_pattern)
        if regex is None:
            return False
        return regex.search(href) is not None


class RegistrySnapshot(BaseModel):
    """The live list of known shortening services.

    Invariant: `expires_at = fetched_at + ttl` (24h unless configured).
    """

    model_config = ConfigDict(frozen=True)

    services: dict[str, ServiceDescriptor] = Field(
        default_factory=dict,
        description="Descriptors keyed by domain.",
    )
    fetched_at: datetime = Field(..., description="When the list was fetched (UTC).")
    expires_at: datetime = Field(..., description="When the list becomes stale (UTC).")

    @model_validator(mode="after")
    def _check_window(self) -> "RegistrySnapshot":
        if self.expires_at < self.fetched_at:
            raise ValueError("expires_at must not precede fetched_at")
        return self

    @classmethod
    def build(
        cls,
        services: dict[str, ServiceDescriptor],
        *,
        fetched_at: datetime,
        ttl: timedelta = DEFAULT_REGISTRY_TTL,
    ) -> "RegistrySnapshot":
        return cls(services=services, fetched_at=fetched_at, expires_at=fetched_at + ttl)

    @classmethod
    def empty(cls, now: datetime) -> "RegistrySnapshot":
        """An already-stale snapshot with no services (matches nothing)."""

        return cls(services={}, fetched_at=now, expires_at=now)

    @classmethod
    def from_wire(
        cls,
        data: Any,
        *,
        fetched_at: datetime,
        ttl: timedelta = DEFAULT_REGISTRY_TTL,
    ) -> "RegistrySnapshot":
        """Parse the remote/persisted shape `{domain: {"regex": str | None}}`.

        Raises `ValueError` for anything else (including an error payload).
        """

        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping of services, got {type(data).__name__}")
        if isinstance(data.get("messages"), list):
            raise ValueError("payload is an error report")

        services: dict[str, ServiceDescriptor] = {}
        for domain, rule in data.items():
            if not isinstance(domain, str) or not domain.strip():
                continue
            pattern = None
            if isinstance(rule, dict):
                raw = rule.get("regex")
                pattern = raw if isinstance(raw, str) else None
            descriptor = ServiceDescriptor(domain=domain, match_pattern=pattern)
            services[descriptor.domain] = descriptor
        return cls.build(services, fetched_at=fetched_at, ttl=ttl)

    def to_wire(self) -> dict[str, dict[str, str | None]]:
        return {
            domain: {"regex": descriptor.match_pattern}
            for domain, descriptor in sorted(self.services.items())
        }

    def is_stale(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def is_empty(self) -> bool:
        return not self.services

    def lookup(self, domain: str) -> ServiceDescriptor | None:
        return self.services.get(domain.lower())


class AnnotationKind(str, Enum):
    PLACEHOLDER = "placeholder"
    RESOLVED = "resolved"
    ERROR = "error"


class AnnotationContent(BaseModel):
    """What the annotation surface displays for a link."""

    model_config = ConfigDict(frozen=True)

    kind: AnnotationKind
    message: str | None = Field(
        default=None,
        description="Placeholder or error text (already prefixed for errors).",
    )
    title: str | None = Field(default=None, description="Destination page title, if supplied.")
    long_url: str | None = Field(default=None, description="Resolved destination URL.")
    more_info_url: str | None = Field(
        default=None,
        description="Link to the resolver's own detail page for the short URL.",
    )

    @classmethod
    def placeholder(cls) -> "AnnotationContent":
        return cls(kind=AnnotationKind.PLACEHOLDER, message=PLACEHOLDER_TEXT)

    @classmethod
    def error(cls, message: str) -> "AnnotationContent":
        return cls(kind=AnnotationKind.ERROR, message=f"{ERROR_PREFIX}{message}")

    @classmethod
    def resolved(
        cls,
        *,
        long_url: str,
        more_info_url: str,
        title: str | None = None,
    ) -> "AnnotationContent":
        return cls(
            kind=AnnotationKind.RESOLVED,
            long_url=long_url,
            title=title or None,
            more_info_url=more_info_url,
        )

    @property
    def is_error(self) -> bool:
        return self.kind is AnnotationKind.ERROR


class ResolutionState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class ResolutionEntry(BaseModel):
    """One short URL's resolution record; keyed by the exact URL string."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1)
    state: ResolutionState = ResolutionState.PENDING
    value: AnnotationContent | None = None
    requested_at: datetime
    settled_at: datetime | None = None

    @property
    def settled(self) -> bool:
        return self.state is not ResolutionState.PENDING


class LinkHandle(BaseModel):
    """Identity given to every link attached to the hover pipeline."""

    model_config = ConfigDict(frozen=True)

    element_id: int = Field(..., ge=0)
    href: str = Field(..., min_length=1)


class HoverState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    CONFIRMED = "confirmed"
    DISMISSING = "dismissing"
