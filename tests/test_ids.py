"""Tests for contexty.ids: time-ordered identifiers."""

from __future__ import annotations

import re

from contexty.ids import PART_PREFIX, generate_id, generate_item_id

_ID_RE = re.compile(r"^prt_[0-9a-f]{12}[A-Za-z0-9]{14}$")


class TestGenerateId:
    def test_shape(self) -> None:
        assert _ID_RE.match(generate_id(PART_PREFIX))

    def test_prefix_is_kept(self) -> None:
        assert generate_id("ses").startswith("ses_")
        assert generate_id("call").startswith("call_")

    def test_time_component_is_zero_padded_hex(self) -> None:
        part_id = generate_id("msg", now_ms=255)
        assert part_id[len("msg_") : len("msg_") + 12] == "0000000000ff"

    def test_later_ids_sort_after_earlier(self) -> None:
        earlier = generate_id(PART_PREFIX, now_ms=1_700_000_000_000)
        later = generate_id(PART_PREFIX, now_ms=1_700_000_000_001)
        assert earlier < later

    def test_no_collisions(self) -> None:
        ids = {generate_id(PART_PREFIX, now_ms=42) for _ in range(2000)}
        assert len(ids) == 2000


class TestGenerateItemId:
    def test_shape(self) -> None:
        item_id = generate_item_id()
        assert re.match(r"^fc_[0-9a-f]{50}$", item_id)
