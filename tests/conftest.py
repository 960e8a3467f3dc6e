"""Shared test fixtures for contexty."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from contexty.engine import ReconciliationEngine
from contexty.models import Root

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    """Create a workspace folder with a few source files."""
    ws = tmp_path / "ws"
    (ws / "src").mkdir(parents=True)
    (ws / "a.txt").write_text("l0\nl1\nl2\nl3\nl4", encoding="utf-8")
    (ws / "src" / "app.py").write_text("def main():\n    return 1\n", encoding="utf-8")
    return ws


@pytest.fixture()
def root(workspace: Path) -> Root:
    return Root.from_folder(workspace)


@pytest.fixture()
def engine(root: Root) -> ReconciliationEngine:
    return ReconciliationEngine([root])


def make_record(
    part_id: str,
    file_path: str,
    *,
    output: str = "<file>\n00001| x\n\n(End of file - total 1 lines)\n</file>",
    start: int = 1000,
    truncated: bool = False,
) -> dict[str, Any]:
    """A raw record in the ``tool-parts.json`` wire format."""
    return {
        "id": part_id,
        "sessionID": "ses_test",
        "messageID": "msg_test",
        "type": "tool",
        "callID": "call_test",
        "tool": "read",
        "state": {
            "status": "completed",
            "input": {"filePath": file_path},
            "output": output,
            "title": file_path,
            "metadata": {"preview": "x", "truncated": truncated},
            "time": {"start": start, "end": start},
        },
    }


def write_parts(marker_parent: Path, records: list[Any]) -> Path:
    """Write ``<marker_parent>/.contexty/tool-parts.json`` directly."""
    path = marker_parent / ".contexty" / "tool-parts.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"parts": records}, indent=2), encoding="utf-8")
    return path


def write_blacklist(marker_parent: Path, ids: list[str]) -> Path:
    path = marker_parent / ".contexty" / "tool-parts.blacklist.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"ids": ids}, indent=2), encoding="utf-8")
    return path


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))
