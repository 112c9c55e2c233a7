"""Command-line interface (Typer + Rich).

The commands are thin: they build an `ExpanderRuntime`, run one asyncio
entry point and render the outcome. Everything else lives in `core`.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from adapters.annotation_surface import ConsoleSurface
from adapters.document_watcher import parse_document
from adapters.json_exporter import export_resolutions_json
from adapters.pointer_trace import load_trace, replay_trace
from cli.doctor import app as doctor_app
from cli.ui_components import (
    build_links_table,
    build_resolutions_table,
    build_services_table,
    print_banner,
)
from core.config import AppSettings
from core.services.runtime import build_runtime, expand_urls, load_registry

app = typer.Typer(no_args_is_help=True, help="Expand shortened URLs with the LongURL service.")
app.add_typer(doctor_app, name="doctor")

_console = Console()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    banner: bool = typer.Option(False, "--banner", help="Show the banner before running."),
) -> None:
    settings = AppSettings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    if banner:
        print_banner(_console)


@app.command()
def expand(
    urls: List[str] = typer.Argument(..., help="Short URLs to resolve."),
    json_out: Optional[Path] = typer.Option(None, "--json", help="Also export the results as JSON."),
) -> None:
    """Resolve short URLs and print their destinations."""

    settings = AppSettings()

    async def _run():
        runtime = build_runtime(settings)
        results = await expand_urls(runtime, urls)
        return runtime, results

    runtime, results = asyncio.run(_run())
    _console.print(build_resolutions_table(results))

    if json_out is not None:
        path = export_resolutions_json(entries=runtime.cache.entries(), output_path=json_out)
        _console.print(f"[green]JSON written to:[/green] {path}")

    if any(content.is_error for content in results.values()):
        raise typer.Exit(code=1)


@app.command()
def services(
    refresh: bool = typer.Option(False, "--refresh", help="Fetch the list even if the local copy is fresh."),
) -> None:
    """Show the registry of known shortening services."""

    settings = AppSettings()

    async def _run():
        runtime = build_runtime(settings)
        return await load_registry(runtime, refresh=refresh)

    snapshot = asyncio.run(_run())
    if snapshot.is_empty:
        _console.print("[yellow]No shortening services known (registry unreachable?).[/yellow]")
        raise typer.Exit(code=1)
    _console.print(build_services_table(snapshot))


@app.command()
def scan(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="HTML file."),
    page_url: str = typer.Option(..., "--page-url", help="URL the document was served from."),
    expand_links: bool = typer.Option(False, "--expand", help="Resolve every shortener link found."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the processed document here."),
    json_out: Optional[Path] = typer.Option(None, "--json", help="Export resolutions as JSON."),
) -> None:
    """List the shortener links of an HTML document."""

    settings = AppSettings()
    html = document.read_text(encoding="utf-8")

    async def _run():
        runtime = build_runtime(settings)
        await load_registry(runtime)
        watcher = runtime.watch(parse_document(html), page_url=page_url)
        links = watcher.start()
        results = await expand_urls(runtime, [link.href for link in links]) if expand_links else {}
        return runtime, watcher, links, results

    runtime, watcher, links, results = asyncio.run(_run())

    if not links:
        _console.print("[yellow]No shortener links found.[/yellow]")
    else:
        _console.print(build_links_table(links, results))

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(str(watcher.document), encoding="utf-8")
        _console.print(f"[green]Processed document written to:[/green] {output}")

    if json_out is not None and results:
        path = export_resolutions_json(entries=runtime.cache.entries(), output_path=json_out)
        _console.print(f"[green]JSON written to:[/green] {path}")


@app.command()
def replay(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="HTML file."),
    trace: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON-lines pointer trace."),
    page_url: str = typer.Option(..., "--page-url", help="URL the document was served from."),
) -> None:
    """Replay a recorded pointer trace and print every annotation change."""

    settings = AppSettings()
    html = document.read_text(encoding="utf-8")
    try:
        events = load_trace(trace)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="TRACE") from exc

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        origin = loop.time()

        def elapsed() -> float:
            return loop.time() - origin

        runtime = build_runtime(settings, surface=ConsoleSurface(_console, elapsed=elapsed))
        await load_registry(runtime)
        watcher = runtime.watch(parse_document(html), page_url=page_url)
        links = watcher.start()
        _console.print(build_links_table(links))

        origin = loop.time()
        await replay_trace(events, runtime.hover)
        await runtime.drain()
        # Let pending compare/dismiss timers run out.
        await asyncio.sleep(settings.dismiss_timeout_seconds + settings.hover_interval_seconds)

    asyncio.run(_run())


def run() -> None:
    app()
