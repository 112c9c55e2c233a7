"""Annotation rendering (Jinja2).

Why it lives in adapters:
- HTML/text markup is presentation; the core only knows `AnnotationContent`.
- Autoescaping keeps remote titles and URLs from injecting markup.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.domain.models import AnnotationContent

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


@lru_cache(maxsize=1)
def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )


def render_annotation_html(content: AnnotationContent) -> str:
    """Markup for the overlay: bold title, `<br />`, long URL, `[more]` link."""

    return _get_env().get_template("annotation.html").render(content=content)


def render_annotation_text(content: AnnotationContent) -> str:
    """Plain-text rendition (title line, then `long_url [more]`)."""

    return _get_env().get_template("annotation.txt").render(content=content)
