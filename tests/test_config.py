"""Tests for contexty.config."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from contexty.config import DEFAULT_EXCLUDE, ContextyConfig, config_path, load_config

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


def _write_config(root: Path, text: str) -> None:
    path = root / ".contexty" / "config.yml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(str(tmp_path)) == ContextyConfig()

    def test_no_root_gives_defaults(self) -> None:
        config = load_config(None)
        assert config.preview_limit == 1000
        assert config.exclude == DEFAULT_EXCLUDE
        assert config.discover_nested is True

    def test_reads_values(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            "preview_limit: 200\nexclude:\n  - '**/build/**'\ndiscover_nested: false\n",
        )
        config = load_config(str(tmp_path))

        assert config.preview_limit == 200
        assert config.exclude == ("**/build/**",)
        assert config.discover_nested is False

    def test_invalid_yaml_falls_back(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        _write_config(tmp_path, "preview_limit: [unclosed\n")
        with caplog.at_level(logging.WARNING, logger="contexty.config"):
            config = load_config(str(tmp_path))

        assert config == ContextyConfig()
        assert "using default settings" in caplog.text

    def test_bad_key_falls_back_individually(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        _write_config(tmp_path, "preview_limit: lots\ndiscover_nested: false\n")
        with caplog.at_level(logging.WARNING, logger="contexty.config"):
            config = load_config(str(tmp_path))

        assert config.preview_limit == 1000
        assert config.discover_nested is False
        assert "preview_limit" in caplog.text

    def test_non_mapping_gives_defaults(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "- just\n- a list\n")
        assert load_config(str(tmp_path)) == ContextyConfig()

    def test_config_path(self, tmp_path: Path) -> None:
        assert config_path(str(tmp_path)).endswith(".contexty/config.yml")
