"""Annotation surfaces.

`InMemorySurface` keeps the overlay's state (and a history of changes) for
headless hosts and tests; `ConsoleSurface` also prints every change with Rich.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from adapters.annotation_renderer import render_annotation_html, render_annotation_text
from core.domain.models import AnnotationContent, AnnotationKind


@dataclass(frozen=True)
class SurfaceChange:
    action: str
    content: AnnotationContent | None
    x: float | None
    y: float | None


class InMemorySurface:
    """Single overlay; placed slightly below the pointer."""

    y_offset: float = 15

    def __init__(self) -> None:
        self._visible = False
        self._content: AnnotationContent | None = None
        self.x: float | None = None
        self.y: float | None = None
        self.history: list[SurfaceChange] = []

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def content(self) -> AnnotationContent | None:
        return self._content

    @property
    def html(self) -> str:
        return render_annotation_html(self._content) if self._content else ""

    @property
    def text(self) -> str:
        return render_annotation_text(self._content) if self._content else ""

    def show(self, content: AnnotationContent, x: float | None = None, y: float | None = None) -> None:
        if x is not None:
            self.x = x
        if y is not None:
            self.y = y + self.y_offset
        self._content = content
        self._visible = True
        self.history.append(SurfaceChange("show", content, self.x, self.y))
        self._on_show()

    def hide(self) -> None:
        if not self._visible:
            return
        self._visible = False
        self.history.append(SurfaceChange("hide", self._content, self.x, self.y))
        self._on_hide()

    def _on_show(self) -> None:
        pass

    def _on_hide(self) -> None:
        pass


_BORDER_BY_KIND = {
    AnnotationKind.PLACEHOLDER: "dim",
    AnnotationKind.RESOLVED: "green",
    AnnotationKind.ERROR: "red",
}


class ConsoleSurface(InMemorySurface):
    """Prints each overlay change as a Rich panel."""

    def __init__(self, console: Console, *, elapsed: Callable[[], float] | None = None) -> None:
        super().__init__()
        self._console = console
        self._elapsed = elapsed

    def _stamp(self) -> str:
        if self._elapsed is None:
            return ""
        return f"t={self._elapsed():.2f}s "

    def _on_show(self) -> None:
        content = self.content
        if content is None:
            return
        position = f"@ {self.x:.0f},{self.y:.0f}" if self.x is not None and self.y is not None else ""
        self._console.print(
            Panel(
                Text(self.text),
                title=Text(f"{self._stamp()}show", style="bold"),
                subtitle=position or None,
                border_style=_BORDER_BY_KIND.get(content.kind, "white"),
                expand=False,
            )
        )

    def _on_hide(self) -> None:
        self._console.print(f"[dim]{self._stamp()}hide[/dim]")
