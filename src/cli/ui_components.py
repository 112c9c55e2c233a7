"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Tables/panels are reused by several commands.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import AnnotationContent, AnnotationKind, LinkHandle, RegistrySnapshot


def print_banner(console: Console) -> None:
    """Print the welcome banner.

    Lives here so non-interactive modes (JSON, pipelines) can skip it.
    """

    title = Text("LongURL Expander", style="bold cyan")
    subtitle = Text("Short links • Resolution • Hover intent", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _content_cells(content: AnnotationContent | None) -> tuple[str, str, str]:
    if content is None:
        return "-", "", ""
    if content.kind is AnnotationKind.ERROR:
        return "[red]failed[/red]", "", content.message or ""
    if content.kind is AnnotationKind.PLACEHOLDER:
        return "[dim]pending[/dim]", "", ""
    return "[green]resolved[/green]", content.long_url or "", content.title or ""


def build_resolutions_table(results: Mapping[str, AnnotationContent]) -> Table:
    table = Table(title="Expanded URLs")
    table.add_column("Short URL", style="cyan", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Long URL", style="magenta")
    table.add_column("Title / Error", style="white")
    for url, content in results.items():
        status, long_url, detail = _content_cells(content)
        table.add_row(Text(url), status, Text(long_url), Text(detail))
    return table


def build_links_table(
    links: Sequence[LinkHandle],
    results: Mapping[str, AnnotationContent] | None = None,
) -> Table:
    results = results or {}
    table = Table(title="Shortener Links")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Href", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Long URL", style="magenta")
    for link in links:
        status, long_url, _ = _content_cells(results.get(link.href))
        table.add_row(str(link.element_id), Text(link.href), status, Text(long_url))
    return table


def build_services_table(snapshot: RegistrySnapshot) -> Table:
    table = Table(
        title="Known Shortening Services",
        caption=f"fetched {snapshot.fetched_at:%Y-%m-%d %H:%M} UTC, expires {snapshot.expires_at:%Y-%m-%d %H:%M} UTC",
    )
    table.add_column("Domain", style="cyan", no_wrap=True)
    table.add_column("Pattern", style="dim")
    for domain, descriptor in sorted(snapshot.services.items()):
        table.add_row(domain, Text(descriptor.match_pattern or ""))
    return table
