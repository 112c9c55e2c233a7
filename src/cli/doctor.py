"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client
from adapters.storage import JsonFileStore, open_store
from core.config import AppSettings, write_user_env_vars
from core.services.service_registry import EXPIRES_KEY

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return response.is_success, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc)


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="LongURL Expander Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("API base URL", "OK", settings.api_root)
    table.add_row("Client", "OK", settings.user_agent)

    # Storage
    store = open_store(settings)
    if isinstance(store, JsonFileStore):
        table.add_row("State store", "OK", str(store.path))
    else:
        table.add_row("State store", "DEGRADED", "Not persistent; registry is refetched every run")

    expiry = store.get(EXPIRES_KEY)
    table.add_row("Cached registry", "OK" if expiry else "EMPTY", f"expires {expiry}" if expiry else "none yet")

    # Connectivity (best-effort)
    ok_http, detail_http = asyncio.run(_check_http(f"{settings.api_root}services?format=json", settings))
    table.add_row("API connectivity", "OK" if ok_http else "FAIL", detail_http)

    _console.print(table)

    if not ok_http:
        _console.print(
            "\n[yellow]Note:[/yellow] without the API no links are matched or expanded; "
            "check LONGURL_API_BASE_URL or run `doctor configure`."
        )


@app.command()
def configure() -> None:
    """Interactive setup (stores config in the user config .env)."""

    settings = AppSettings()

    base_url = typer.prompt("API base URL", default=settings.api_base_url, show_default=True).strip()
    resolver_site = typer.prompt("Resolver site", default=settings.resolver_site, show_default=True).strip()
    client_id = typer.prompt("Client identifier", default=settings.client_id, show_default=True).strip()

    if not base_url or not client_id:
        raise typer.BadParameter("base URL and client identifier are required")

    env_path = write_user_env_vars(
        {
            "LONGURL_API_BASE_URL": base_url,
            "LONGURL_RESOLVER_SITE": resolver_site,
            "LONGURL_CLIENT_ID": client_id,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")
