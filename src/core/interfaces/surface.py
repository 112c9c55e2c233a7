"""Annotation surface contract."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import AnnotationContent


@runtime_checkable
class AnnotationSurface(Protocol):
    """The single reusable overlay driven by the hover state machine.

    Rules:
    - `show` with coordinates moves the overlay near the pointer; without them
      the previous position is kept (content refresh only).
    - `hide` is idempotent.
    """

    @property
    def visible(self) -> bool:
        ...

    @property
    def content(self) -> AnnotationContent | None:
        ...

    def show(self, content: AnnotationContent, x: float | None = None, y: float | None = None) -> None:
        ...

    def hide(self) -> None:
        ...
