"""JSON export of resolution results.

Why JSON:
- Interoperability with other link-analysis tools and pipelines.
- Keeps a record of what each short URL pointed at without re-querying.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from core.domain.models import ResolutionEntry


def export_resolutions_json(*, entries: Iterable[ResolutionEntry], output_path: Path) -> Path:
    """Write entries as UTF-8 JSON with a stable layout."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = [entry.model_dump(mode="json") for entry in sorted(entries, key=lambda e: e.url)]
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
