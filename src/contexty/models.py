"""Data model: roots, parts, line ranges and hierarchy entries.

Part records are persisted in the ``tool-parts.json`` wire format shared
with other writers; :meth:`Part.to_dict` and :func:`parse_part` are the
only places that know the field names.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Union

from contexty.paths import normalize_path

MARKER_DIR = ".contexty"
PARTS_FILENAME = "tool-parts.json"
BLACKLIST_FILENAME = "tool-parts.blacklist.json"

PART_TYPE = "tool"
PART_TOOL = "read"
PART_STATUS = "completed"


@dataclass(frozen=True)
class Root:
    """One workspace folder and the location of its two documents."""

    path: str
    name: str
    parts_path: str
    blacklist_path: str

    @classmethod
    def from_folder(cls, folder: str | os.PathLike[str], name: str | None = None) -> Root:
        path = normalize_path(folder)
        marker = os.path.join(path, MARKER_DIR)
        return cls(
            path=path,
            name=name or os.path.basename(path) or path,
            parts_path=os.path.join(marker, PARTS_FILENAME),
            blacklist_path=os.path.join(marker, BLACKLIST_FILENAME),
        )

    @property
    def marker_dir(self) -> str:
        return os.path.dirname(self.parts_path)


@dataclass(frozen=True)
class LineRange:
    """Inclusive 0-based line range."""

    start: int
    end: int


@dataclass
class Part:
    """A single captured context record (whole file or line range)."""

    id: str
    file_path: str
    output: str = ""
    title: str = ""
    preview: str = ""
    truncated: bool = False
    time_start: int = 0
    time_end: int = 0
    session_id: str = ""
    message_id: str = ""
    call_id: str = ""
    type: str = PART_TYPE
    tool: str = PART_TOOL
    status: str = PART_STATUS
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire format of ``tool-parts.json``."""
        data: dict[str, Any] = {
            "id": self.id,
            "sessionID": self.session_id,
            "messageID": self.message_id,
            "type": self.type,
            "callID": self.call_id,
            "tool": self.tool,
            "state": {
                "status": self.status,
                "input": {"filePath": self.file_path},
                "output": self.output,
                "title": self.title,
                "metadata": {"preview": self.preview, "truncated": self.truncated},
                "time": {"start": self.time_start, "end": self.time_end},
            },
        }
        if self.metadata:
            data["metadata"] = self.metadata
        return data


@dataclass(frozen=True)
class SkippedRecord:
    """A persisted record that failed the shape check."""

    reason: str


ParseResult = Union[Part, SkippedRecord]


def _str(value: object, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _dict(value: object) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_part(raw: object) -> ParseResult:
    """Map one raw JSON record to a :class:`Part`, or a :class:`SkippedRecord`.

    Only ``id`` and ``state.input.filePath`` are required to be strings;
    every other field is optional and coerced to its default when it has
    the wrong type.
    """
    if not isinstance(raw, dict):
        return SkippedRecord("record is not an object")
    part_id = raw.get("id")
    if not isinstance(part_id, str):
        return SkippedRecord("id is not a string")
    state = _dict(raw.get("state"))
    file_path = _dict(state.get("input")).get("filePath")
    if not isinstance(file_path, str):
        return SkippedRecord(f"{part_id}: state.input.filePath is not a string")

    meta = _dict(state.get("metadata"))
    times = _dict(state.get("time"))
    truncated = meta.get("truncated")
    return Part(
        id=part_id,
        file_path=file_path,
        output=_str(state.get("output")),
        title=_str(state.get("title"), file_path),
        preview=_str(meta.get("preview")),
        truncated=truncated if isinstance(truncated, bool) else False,
        time_start=_int(times.get("start")),
        time_end=_int(times.get("end")),
        session_id=_str(raw.get("sessionID")),
        message_id=_str(raw.get("messageID")),
        call_id=_str(raw.get("callID")),
        type=_str(raw.get("type"), PART_TYPE),
        tool=_str(raw.get("tool"), PART_TOOL),
        status=_str(state.get("status"), PART_STATUS),
        metadata=_dict(raw.get("metadata")),
    )


@dataclass(frozen=True)
class ChildEntry:
    """A directory or file one level below a queried path."""

    path: str
    label: str


@dataclass(frozen=True)
class Children:
    """Result of a hierarchy query: synthetic directories and files."""

    dirs: list[ChildEntry] = field(default_factory=list)
    files: list[ChildEntry] = field(default_factory=list)
