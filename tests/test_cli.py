from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest
from typer.testing import CliRunner

from adapters.storage import STORE_FILENAME
from cli.main import app
from core.services.service_registry import EXPIRES_KEY, SERVICES_KEY

runner = CliRunner()

DOCUMENT = """<html><body>
<a href="http://bit.ly/abc123" title="hidden">short</a>
<a href="http://example.com/self">self</a>
</body></html>
"""


@pytest.fixture
def state_dir(tmp_path):
    state = tmp_path / "state"
    state.mkdir()
    expires = datetime.now(timezone.utc) + timedelta(hours=12)
    (state / STORE_FILENAME).write_text(
        json.dumps(
            {
                SERVICES_KEY: json.dumps({"bit.ly": {"regex": None}, "t.co": {"regex": r"t\.co/\w+$"}}),
                EXPIRES_KEY: format_datetime(expires, usegmt=True),
            }
        ),
        encoding="utf-8",
    )
    return state


def _env(state_dir):
    return {"LONGURL_STATE_DIR": str(state_dir), "LONGURL_LOG_LEVEL": "WARNING"}


def test_services_lists_cached_registry(state_dir):
    result = runner.invoke(app, ["services"], env=_env(state_dir))

    assert result.exit_code == 0, result.output
    assert "bit.ly" in result.output
    assert "t.co" in result.output


def test_scan_finds_links_and_writes_processed_document(tmp_path, state_dir):
    page = tmp_path / "page.html"
    page.write_text(DOCUMENT, encoding="utf-8")
    output = tmp_path / "out" / "page.html"

    result = runner.invoke(
        app,
        ["scan", str(page), "--page-url", "http://example.com/", "-o", str(output)],
        env=_env(state_dir),
    )

    assert result.exit_code == 0, result.output
    assert "http://bit.ly/abc123" in result.output
    processed = output.read_text(encoding="utf-8")
    assert 'data-lme-id="0"' in processed
    assert 'title="hidden"' not in processed
    assert processed.count('data-lme="processed"') == 2


def test_replay_rejects_malformed_trace(tmp_path, state_dir):
    page = tmp_path / "page.html"
    page.write_text(DOCUMENT, encoding="utf-8")
    trace = tmp_path / "trace.jsonl"
    trace.write_text("{oops\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["replay", str(page), str(trace), "--page-url", "http://example.com/"],
        env=_env(state_dir),
    )

    assert result.exit_code != 0


def test_replay_rejects_link_event_without_link(tmp_path, state_dir):
    page = tmp_path / "page.html"
    page.write_text(DOCUMENT, encoding="utf-8")
    trace = tmp_path / "trace.jsonl"
    trace.write_text('{"t": 0, "type": "enter"}\n', encoding="utf-8")

    result = runner.invoke(
        app,
        ["replay", str(page), str(trace), "--page-url", "http://example.com/"],
        env=_env(state_dir),
    )

    assert result.exit_code == 2
    assert not isinstance(result.exception, ValueError)
