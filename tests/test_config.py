from __future__ import annotations

import json

from adapters.json_exporter import export_resolutions_json
from conftest import START
from core.config import AppSettings, write_user_env_vars
from core.domain.models import AnnotationContent, ResolutionEntry, ResolutionState



def test_defaults_describe_the_client():
    settings = AppSettings(_env_file=None)

    assert settings.user_agent == "LongURL Mobile Expander/2.1 (lme_gm)"
    assert settings.api_root == "http://api.longurl.org/v2/"
    assert settings.hover_sensitivity_px == 7
    assert settings.dismiss_timeout_seconds == 0.6


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LONGURL_API_BASE_URL", "http://localhost:8080/v2")
    monkeypatch.setenv("LONGURL_CLIENT_ID", "test_client")

    settings = AppSettings(_env_file=None)

    assert settings.api_root == "http://localhost:8080/v2/"
    assert settings.api_headers["User-Agent"].endswith("(test_client)")


def test_write_user_env_vars_merges_existing(tmp_path):
    env_path = tmp_path / "cfg" / ".env"
    env_path.parent.mkdir()
    env_path.write_text('LONGURL_CLIENT_ID="old"\nLONGURL_LOG_LEVEL=DEBUG\n', encoding="utf-8")

    write_user_env_vars({"LONGURL_CLIENT_ID": "new"}, env_path=env_path)

    lines = env_path.read_text(encoding="utf-8").splitlines()
    assert "LONGURL_CLIENT_ID=new" in lines
    assert "LONGURL_LOG_LEVEL=DEBUG" in lines


def test_export_resolutions_json(tmp_path):
    entries = [
        ResolutionEntry(
            url="http://bit.ly/b",
            state=ResolutionState.FAILED,
            value=AnnotationContent.error("Invalid URL"),
            requested_at=START,
            settled_at=START,
        ),
        ResolutionEntry(
            url="http://bit.ly/a",
            state=ResolutionState.RESOLVED,
            value=AnnotationContent.resolved(long_url="http://example.org/", more_info_url="http://longurl.org/x"),
            requested_at=START,
            settled_at=START,
        ),
    ]

    path = export_resolutions_json(entries=entries, output_path=tmp_path / "out" / "results.json")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert [item["url"] for item in payload] == ["http://bit.ly/a", "http://bit.ly/b"]
    assert payload[1]["value"]["message"] == "LongURL Error: Invalid URL"
