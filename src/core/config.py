"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) without leaking them
  into the CLI.
- Lets adapters (HTTP, storage) and services (timers, TTLs) read the same
  validated contract.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "longurl-expander"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "longurl-expander"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "longurl-expander"
    return Path.home() / ".config" / "longurl-expander"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Write/update variables in the user's global .env file."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        try:
            existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))
        except OSError:
            existing = {}

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# longurl-expander user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application settings.

    Why pydantic-settings:
    - Typed + validated at the edge (env vars) without cluttering the core.
    - One configuration contract shared by the CLI, adapters and services.
    """

    model_config = SettingsConfigDict(
        env_prefix="LONGURL_",
        extra="ignore",
        case_sensitive=False,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    api_base_url: str = Field(
        default="http://api.longurl.org/v2/",
        min_length=8,
        description="Base URL of the resolution API (expand + services endpoints).",
    )
    resolver_site: str = Field(
        default="http://longurl.org",
        min_length=8,
        description="Public site linked from the annotation's [more] affordance.",
    )
    client_id: str = Field(
        default="lme_gm",
        min_length=1,
        description="Client identifier sent as `src` and inside the User-Agent.",
    )
    client_version: str = Field(
        default="2.1",
        min_length=1,
        description="Client version advertised to the remote service.",
    )
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Per-request timeout (seconds).",
    )

    registry_ttl_hours: float = Field(
        default=24.0,
        gt=0,
        description="Lifetime of a fetched service registry snapshot.",
    )
    registry_retry_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Minimum delay before retrying a failed registry refresh.",
    )

    hover_interval_seconds: float = Field(
        default=0.1,
        gt=0,
        description="Sampling interval of the hover-intent compare cycle.",
    )
    hover_sensitivity_px: int = Field(
        default=7,
        ge=1,
        description="Combined |dx|+|dy| below which pointer dwell confirms intent.",
    )
    dismiss_timeout_seconds: float = Field(
        default=0.6,
        ge=0,
        description="Delay before the annotation hides once the pointer leaves.",
    )
    mutation_debounce_seconds: float = Field(
        default=0.2,
        ge=0,
        description="Quiet period collapsing bursts of inserted nodes into one scan.",
    )

    state_dir: Path = Field(
        default_factory=get_user_config_dir,
        description="Directory holding the persisted key/value store.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Root log level for the CLI (DEBUG, INFO, WARNING, ...).",
    )

    @property
    def user_agent(self) -> str:
        return f"LongURL Mobile Expander/{self.client_version} ({self.client_id})"

    @property
    def api_headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "application/json"}

    @property
    def api_root(self) -> str:
        base = self.api_base_url
        return base if base.endswith("/") else base + "/"
