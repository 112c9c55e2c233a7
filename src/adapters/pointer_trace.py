"""Recorded pointer traces (JSON lines).

One event per line:
    {"t": 0.25, "type": "enter", "link": 0, "x": 120, "y": 48}

`t` is seconds since the start of the trace. `type` is one of `enter`,
`move`, `leave`, `surface_enter`, `surface_leave`; surface events carry no
link.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Iterable, Literal

from pydantic import BaseModel, Field, model_validator

from core.services.hover_intent import HoverIntentStateMachine

EventType = Literal["enter", "move", "leave", "surface_enter", "surface_leave"]

_LINK_EVENTS = ("enter", "move", "leave")


class PointerEvent(BaseModel):
    t: float = Field(..., ge=0, description="Seconds since trace start.")
    type: EventType
    link: int | None = Field(default=None, ge=0, description="data-lme-id of the link.")
    x: float = 0.0
    y: float = 0.0

    @model_validator(mode="after")
    def _check_link(self) -> "PointerEvent":
        if self.type in _LINK_EVENTS and self.link is None:
            raise ValueError(f"{self.type} event requires a link")
        return self


def load_trace(path: Path) -> list[PointerEvent]:
    events: list[PointerEvent] = []
    for lineno, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            events.append(PointerEvent.model_validate(json.loads(line)))
        except ValueError as exc:
            raise ValueError(f"{path}:{lineno}: invalid pointer event: {exc}") from exc
    return sorted(events, key=lambda event: event.t)


def dispatch(hover: HoverIntentStateMachine, event: PointerEvent) -> None:
    if event.type == "surface_enter":
        hover.surface_enter()
    elif event.type == "surface_leave":
        hover.surface_leave()
    elif event.link is None:
        raise ValueError(f"{event.type} event at t={event.t} has no link")
    elif event.type == "enter":
        hover.pointer_enter(event.link, event.x, event.y)
    elif event.type == "move":
        hover.pointer_move(event.link, event.x, event.y)
    else:
        hover.pointer_leave(event.link)


async def replay_trace(events: Iterable[PointerEvent], hover: HoverIntentStateMachine) -> None:
    """Dispatch events in real time on the running loop."""

    loop = asyncio.get_running_loop()
    start = loop.time()
    for event in events:
        delay = event.t - (loop.time() - start)
        if delay > 0:
            await asyncio.sleep(delay)
        dispatch(hover, event)
