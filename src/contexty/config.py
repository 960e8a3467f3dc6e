"""Workspace configuration from ``.contexty/config.yml``."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

import yaml

from contexty.formatter import DEFAULT_PREVIEW_LIMIT
from contexty.models import MARKER_DIR

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yml"

DEFAULT_EXCLUDE: tuple[str, ...] = ("**/node_modules/**", "**/.git/**")


@dataclass(frozen=True)
class ContextyConfig:
    """Settings shared by the engine and capture.

    ``exclude`` globs apply both to discovery of nested parts documents
    and to directory capture.
    """

    preview_limit: int = DEFAULT_PREVIEW_LIMIT
    exclude: tuple[str, ...] = field(default=DEFAULT_EXCLUDE)
    discover_nested: bool = True


def config_path(root_path: str) -> str:
    return os.path.join(root_path, MARKER_DIR, CONFIG_FILENAME)


def load_config(root_path: str | None) -> ContextyConfig:
    """Load config for the workspace at *root_path*.

    Falls back to defaults for a missing file, unparsable YAML, or any
    key with the wrong type.
    """
    if root_path is None:
        return ContextyConfig()
    path = config_path(root_path)
    if not os.path.isfile(path):
        return ContextyConfig()

    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default settings", path)
        return ContextyConfig()

    if not isinstance(data, dict):
        return ContextyConfig()

    defaults = ContextyConfig()

    preview_limit = data.get("preview_limit", defaults.preview_limit)
    if isinstance(preview_limit, bool) or not isinstance(preview_limit, int) or preview_limit < 0:
        logger.warning("Ignoring invalid preview_limit %r in %s", preview_limit, path)
        preview_limit = defaults.preview_limit

    exclude = data.get("exclude", list(defaults.exclude))
    if not isinstance(exclude, list) or not all(isinstance(p, str) for p in exclude):
        logger.warning("Ignoring invalid exclude list in %s", path)
        exclude = list(defaults.exclude)

    discover_nested = data.get("discover_nested", defaults.discover_nested)
    if not isinstance(discover_nested, bool):
        discover_nested = defaults.discover_nested

    return ContextyConfig(
        preview_limit=preview_limit,
        exclude=tuple(exclude),
        discover_nested=discover_nested,
    )
