"""Hover-intent state machine.

Turns raw pointer enter/move/leave events into one "intent confirmed" and one
"intent withdrawn" signal per link and drives the annotation surface.

Per element: Idle -> Tracking -> Confirmed -> Dismissing -> Idle.

- Tracking samples the pointer every `hover_interval_seconds`; intent is
  confirmed once |dx| + |dy| between two consecutive samples drops below
  `hover_sensitivity_px`.
- Only one element is Tracking and only one is Confirmed/Dismissing at a
  time; a newly confirmed link forces the previous one to Idle.
- Leaving the link (or the surface) starts the dismiss timer; re-entering
  either cancels it.
- Results arriving for a link that is no longer the visible, active one only
  land in the cache (stale-result guard).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from core.config import AppSettings
from core.domain.models import AnnotationContent, HoverState, LinkHandle
from core.interfaces.capabilities import Clock, Scheduler, TimerHandle
from core.interfaces.surface import AnnotationSurface
from core.services.resolution_cache import ResolutionCache

logger = logging.getLogger(__name__)

_VISIBLE_STATES = (HoverState.CONFIRMED, HoverState.DISMISSING)


@dataclass
class HoverSession:
    """Pointer interaction with one link, from enter until Idle."""

    link: LinkHandle
    x: float
    y: float
    state: HoverState = HoverState.TRACKING
    sample_x: float = field(init=False)
    sample_y: float = field(init=False)
    confirmed_at: datetime | None = None
    timer: TimerHandle | None = None

    def __post_init__(self) -> None:
        self.sample_x = self.x
        self.sample_y = self.y

    @property
    def target_url(self) -> str:
        return self.link.href

    @property
    def element_id(self) -> int:
        return self.link.element_id

    def displacement(self) -> float:
        return abs(self.sample_x - self.x) + abs(self.sample_y - self.y)

    def resample(self) -> None:
        self.sample_x = self.x
        self.sample_y = self.y

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class HoverIntentStateMachine:
    def __init__(
        self,
        *,
        cache: ResolutionCache,
        surface: AnnotationSurface,
        scheduler: Scheduler,
        clock: Clock,
        settings: AppSettings | None = None,
    ) -> None:
        self._cache = cache
        self._surface = surface
        self._scheduler = scheduler
        self._clock = clock
        settings = settings or AppSettings()
        self._interval = settings.hover_interval_seconds
        self._sensitivity = settings.hover_sensitivity_px
        self._dismiss_after = settings.dismiss_timeout_seconds

        self._links: dict[int, LinkHandle] = {}
        self._tracking: HoverSession | None = None
        self._active: HoverSession | None = None

    @property
    def active(self) -> HoverSession | None:
        return self._active

    @property
    def tracking(self) -> HoverSession | None:
        return self._tracking

    @property
    def links(self) -> list[LinkHandle]:
        return list(self._links.values())

    def attach(self, link: LinkHandle) -> None:
        self._links[link.element_id] = link

    def state_of(self, element_id: int) -> HoverState:
        if self._tracking is not None and self._tracking.element_id == element_id:
            return HoverState.TRACKING
        if self._active is not None and self._active.element_id == element_id:
            return self._active.state
        return HoverState.IDLE

    # Pointer events

    def pointer_enter(self, element_id: int, x: float, y: float) -> None:
        link = self._links.get(element_id)
        if link is None:
            return

        active = self._active
        if active is not None and active.element_id == element_id:
            if active.state is HoverState.DISMISSING:
                active.cancel_timer()
                active.state = HoverState.CONFIRMED
                logger.debug("Link %s re-entered before dismissal", element_id)
            return

        self._drop_tracking()
        session = HoverSession(link=link, x=x, y=y)
        self._tracking = session
        session.timer = self._scheduler.call_later(self._interval, lambda: self._compare(session))

    def pointer_move(self, element_id: int, x: float, y: float) -> None:
        session = self._tracking
        if session is not None and session.element_id == element_id:
            session.x = x
            session.y = y

    def pointer_leave(self, element_id: int) -> None:
        session = self._tracking
        if session is not None and session.element_id == element_id:
            self._drop_tracking()
            return

        active = self._active
        if active is not None and active.element_id == element_id and active.state is HoverState.CONFIRMED:
            self._start_dismiss(active)

    def surface_enter(self) -> None:
        active = self._active
        if active is not None and active.state is HoverState.DISMISSING:
            active.cancel_timer()
            active.state = HoverState.CONFIRMED

    def surface_leave(self) -> None:
        active = self._active
        if active is not None and active.state is HoverState.CONFIRMED:
            self._start_dismiss(active)

    # Transitions

    def _drop_tracking(self) -> None:
        session = self._tracking
        if session is None:
            return
        session.cancel_timer()
        session.state = HoverState.IDLE
        self._tracking = None

    def _compare(self, session: HoverSession) -> None:
        if self._tracking is not session:
            return
        session.timer = None
        if session.displacement() < self._sensitivity:
            self._confirm(session)
            return
        session.resample()
        session.timer = self._scheduler.call_later(self._interval, lambda: self._compare(session))

    def _confirm(self, session: HoverSession) -> None:
        self._tracking = None
        previous = self._active
        if previous is not None and previous is not session:
            previous.cancel_timer()
            previous.state = HoverState.IDLE

        session.state = HoverState.CONFIRMED
        session.confirmed_at = self._clock.now()
        self._active = session
        logger.debug("Intent confirmed on link %s (%s)", session.element_id, session.target_url)

        url = session.target_url
        value = self._cache.resolve(url, lambda content: self._on_resolved(url, content))
        self._surface.show(value or AnnotationContent.placeholder(), session.x, session.y)

    def _on_resolved(self, url: str, content: AnnotationContent) -> None:
        active = self._active
        if active is None or active.target_url != url or active.state not in _VISIBLE_STATES:
            logger.debug("Discarding stale result for %s", url)
            return
        self._surface.show(content)

    def _start_dismiss(self, session: HoverSession) -> None:
        session.cancel_timer()
        session.state = HoverState.DISMISSING
        session.timer = self._scheduler.call_later(self._dismiss_after, lambda: self._dismiss(session))

    def _dismiss(self, session: HoverSession) -> None:
        if self._active is not session or session.state is not HoverState.DISMISSING:
            return
        session.timer = None
        session.state = HoverState.IDLE
        self._active = None
        self._surface.hide()
