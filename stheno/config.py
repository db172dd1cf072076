"""Configuration loading for Stheno.

The site configuration lives in ``stheno.yaml`` at the project root. Values
found there are deep-merged over DEFAULT_CONFIG, then command-line
overrides are merged on top.

Key functions:
- load_config: Load and merge the configuration for a project root.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError
from .utils import deep_merge

CONFIG_FILENAME = "stheno.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "root_dir": ".",
    "source": "src",
    "destination": "output",
    "collections_dir": "",
    "cache_dir": ".stheno-cache",
    "plugins_dir": "plugins",
    "layouts_dir": "_layouts",
    "data_dir": "_data",
    "includes_dir": "_includes",
    "components_dir": "_components",
    "collections": {"posts": {"output": True}},
    "defaults": [],
    "exclude": ["node_modules", "vendor", "__pycache__"],
    "include": [".htaccess"],
    "keep_files": [".git", ".svn"],
    "encoding": "utf-8",
    "permalink": "date",
    "baseurl": "",
    "url": "",
    "title": "",
    "limit_posts": 0,
    "incremental": False,
    "future": False,
    "unpublished": False,
    "safe": False,
    "disable_disk_cache": False,
    "threads": 1,
    "profile": False,
    "time": None,
    "port": 4000,
    "ws_port": 4001,
}


def load_config(
    project_root: Path, overrides: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Load site configuration from stheno.yaml.

    Args:
        project_root: Root directory of the project.
        overrides: Values that take precedence over the file, typically
            command-line options. ``None`` values are ignored.

    Returns:
        Dictionary containing configuration values, with defaults applied
        and ``root_dir`` set to the absolute project root.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    config = deep_merge(DEFAULT_CONFIG, {})
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"{config_path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_path}: configuration must be a mapping")
        # Collections are replaced wholesale so a list does not merge into the default mapping.
        if "collections" in loaded:
            config["collections"] = loaded.pop("collections")
        config = deep_merge(config, loaded)
    if overrides:
        config = deep_merge(
            config, {key: value for key, value in overrides.items() if value is not None}
        )
    config["root_dir"] = str(project_root.resolve())
    return config
