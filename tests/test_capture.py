"""Tests for contexty.capture."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from conftest import read_json

from contexty.capture import Capture
from contexty.engine import ReconciliationEngine
from contexty.formatter import Position, Selection
from contexty.fs import LocalFileSystem
from contexty.line_ranges import part_label
from contexty.models import LineRange

if TYPE_CHECKING:
    from pathlib import Path

    from contexty.models import Root


class _ReadOnlyFileSystem(LocalFileSystem):
    def write_file(self, path: str, content: bytes) -> None:
        raise PermissionError(path)


def _parts_doc(workspace: Path) -> list[dict]:
    return read_json(workspace / ".contexty" / "tool-parts.json")["parts"]


class TestCaptureFile:
    def test_whole_file(self, workspace: Path, engine: ReconciliationEngine) -> None:
        capture = Capture(engine, "ses_test")
        path = str(workspace / "a.txt")

        part = capture.capture_file(path)

        assert part is not None
        assert part.id.startswith("prt_")
        assert part.title == "a.txt"
        assert part.truncated is False
        assert part.session_id == "ses_test"
        assert "00001| l0" in part.output
        assert "(End of file - total 5 lines)" in part.output
        assert part_label(part) == "Full file"
        assert engine.is_active(path)
        assert engine.line_ranges_for(path) == [LineRange(0, 4)]

    def test_record_on_disk(self, workspace: Path, engine: ReconciliationEngine) -> None:
        part = Capture(engine, "ses_test").capture_file(str(workspace / "src" / "app.py"))
        assert part is not None

        (record,) = _parts_doc(workspace)
        assert record["id"] == part.id
        assert record["type"] == "tool"
        assert record["tool"] == "read"
        assert record["state"]["status"] == "completed"
        assert record["state"]["input"]["filePath"] == str(workspace / "src" / "app.py")
        assert record["state"]["title"] == "src/app.py"
        assert record["state"]["time"]["start"] == record["state"]["time"]["end"]
        assert re.fullmatch(r"fc_[0-9a-f]{50}", record["metadata"]["openai"]["itemId"])

    def test_outside_root_is_noop(
        self, tmp_path: Path, workspace: Path, engine: ReconciliationEngine
    ) -> None:
        outside = tmp_path / "outside.txt"
        outside.write_text("x", encoding="utf-8")

        assert Capture(engine, "ses_test").capture_file(str(outside)) is None
        assert not (workspace / ".contexty" / "tool-parts.json").exists()

    def test_missing_file_is_noop(self, workspace: Path, engine: ReconciliationEngine) -> None:
        assert Capture(engine, "ses_test").capture_file(str(workspace / "nope.txt")) is None

    def test_binary_file_is_noop(self, workspace: Path, engine: ReconciliationEngine) -> None:
        binary = workspace / "blob.bin"
        binary.write_bytes(b"\x00\x01\x02")
        assert Capture(engine, "ses_test").capture_file(str(binary)) is None

    def test_long_file_is_truncated(self, workspace: Path, root: Root) -> None:
        from contexty.config import ContextyConfig

        engine = ReconciliationEngine([root], config=ContextyConfig(preview_limit=4))
        part = Capture(engine, "ses_test").capture_file(str(workspace / "a.txt"))

        assert part is not None
        assert part.truncated is True
        assert part.preview == "l0\nl"
        assert part_label(part) == "Full file"

    def test_failed_write_stays_visible(self, workspace: Path, root: Root) -> None:
        engine = ReconciliationEngine([root], fs=_ReadOnlyFileSystem())
        path = str(workspace / "a.txt")

        part = Capture(engine, "ses_test").capture_file(path)

        assert part is not None
        assert not (workspace / ".contexty" / "tool-parts.json").exists()
        engine.reconcile()
        assert [p.id for p in engine.parts_for(path)] == [part.id]

    def test_two_writers_merge(self, workspace: Path, root: Root) -> None:
        first = ReconciliationEngine([root])
        second = ReconciliationEngine([root])
        Capture(first, "ses_one").capture_file(str(workspace / "a.txt"))
        Capture(second, "ses_two").capture_file(str(workspace / "src" / "app.py"))

        assert len(_parts_doc(workspace)) == 2
        first.reconcile()
        assert first.is_active(str(workspace / "src" / "app.py"))


class TestCaptureDirectory:
    def test_every_file_below(self, workspace: Path, engine: ReconciliationEngine) -> None:
        parts = Capture(engine, "ses_test").capture_path(str(workspace))

        assert sorted(p.title for p in parts) == ["a.txt", "src/app.py"]
        assert len(_parts_doc(workspace)) == 2

    def test_excluded_and_marker_dirs_are_skipped(
        self, workspace: Path, engine: ReconciliationEngine
    ) -> None:
        deps = workspace / "node_modules" / "pkg"
        deps.mkdir(parents=True)
        (deps / "index.js").write_text("x", encoding="utf-8")
        capture = Capture(engine, "ses_test")
        capture.capture_file(str(workspace / "a.txt"))

        parts = capture.capture_path(str(workspace))

        titles = sorted(p.title for p in parts)
        assert titles == ["a.txt", "src/app.py"]

    def test_subdirectory(self, workspace: Path, engine: ReconciliationEngine) -> None:
        parts = Capture(engine, "ses_test").capture_path(str(workspace / "src"))
        assert [p.title for p in parts] == ["src/app.py"]


class TestCaptureSelection:
    def test_lines_ending_at_column_zero(
        self, workspace: Path, engine: ReconciliationEngine
    ) -> None:
        capture = Capture(engine, "ses_test")
        document = capture.open_document(str(workspace / "a.txt"))
        assert document is not None

        part = capture.capture_selection(document, Selection(Position(1, 0), Position(3, 0)))

        assert part is not None
        assert part.truncated is True
        assert "00002| l1" in part.output
        assert "00003| l2" in part.output
        assert "00004|" not in part.output
        assert "(Excerpt lines 2-3 of total 5 lines)" in part.output
        assert part_label(part) == "Lines 2-3"
        assert engine.line_ranges_for(str(workspace / "a.txt")) == [LineRange(1, 2)]

    def test_full_selection_is_not_truncated(
        self, workspace: Path, engine: ReconciliationEngine
    ) -> None:
        capture = Capture(engine, "ses_test")
        document = capture.open_document(str(workspace / "a.txt"))
        assert document is not None

        part = capture.capture_selection(
            document, Selection(Position(0, 0), document.end_position)
        )

        assert part is not None
        assert part.truncated is False
        assert part_label(part) == "Full file"

    def test_open_document_rejects_binary(
        self, workspace: Path, engine: ReconciliationEngine
    ) -> None:
        binary = workspace / "blob.bin"
        binary.write_bytes(b"\x00abc")
        assert Capture(engine, "ses_test").open_document(str(binary)) is None


class TestUnparsableParts:
    def test_truncated_document_is_kept_and_part_stays_visible(
        self, workspace: Path, engine: ReconciliationEngine
    ) -> None:
        path = workspace / ".contexty" / "tool-parts.json"
        path.parent.mkdir()
        partial = '{"parts": [{"id": "prt_other", "state": {"input": {"filePath": "'
        path.write_text(partial, encoding="utf-8")

        part = Capture(engine, "ses_test").capture_file(str(workspace / "src" / "app.py"))

        assert part is not None
        assert path.read_text(encoding="utf-8") == partial
        assert engine.is_active(str(workspace / "src" / "app.py"))


class TestCaptureDirectoryBounds:
    def test_directory_outside_every_root(
        self, tmp_path: Path, engine: ReconciliationEngine
    ) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "x.txt").write_text("x", encoding="utf-8")

        assert Capture(engine, "ses_test").capture_path(str(outside)) == []

    def test_directory_containing_a_root(
        self, tmp_path: Path, engine: ReconciliationEngine
    ) -> None:
        (tmp_path / "loose.txt").write_text("x", encoding="utf-8")

        parts = Capture(engine, "ses_test").capture_path(str(tmp_path))

        assert sorted(p.title for p in parts) == ["a.txt", "src/app.py"]
