"""Front matter defaults for Stheno.

The ``defaults`` configuration key lists value sets that apply to every item
whose scope matches::

    defaults:
      - scope:
          path: ""        # every file
        values:
          layout: default
      - scope:
          path: "blog/drafts/*.md"
          type: posts
        values:
          published: false

``path`` is relative to the source directory. It matches the file itself,
or everything below a directory; when it contains ``*`` it is matched as a
glob. ``type`` is a collection label, or ``pages`` for pages. Front matter in
the file always wins over defaults. When several scopes match, the more
specific one (deeper path, then a typed scope) wins.
"""

from __future__ import annotations

import copy
import fnmatch
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import ConfigurationError
from .utils import deep_merge

if TYPE_CHECKING:
    from .site import Site


def _specificity(entry: tuple[str, str | None, dict[str, Any]]) -> tuple[int, bool]:
    scope_path, scope_type, _ = entry
    depth = len(scope_path.split("/")) if scope_path else 0
    return depth, scope_type is not None


class FrontmatterDefaults:
    """Resolves the configured defaults for an item.

    Results are memoized per ``(path, type)`` until ``reset()``.
    """

    def __init__(self, site: Site):
        self.site = site
        self._memo: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        with self._lock:
            self._memo = {}

    def entries(self) -> list[tuple[str, str | None, dict[str, Any]]]:
        """The configured ``(path, type, values)`` sets, least specific first.

        Raises:
            ConfigurationError: If ``defaults`` is not a list of mappings with
                a ``values`` mapping.
        """
        configured = self.site.config.get("defaults") or []
        if not isinstance(configured, list):
            raise ConfigurationError("Expected 'defaults' to be a list")
        entries = []
        for position, entry in enumerate(configured):
            if not isinstance(entry, Mapping) or not isinstance(entry.get("values"), Mapping):
                raise ConfigurationError(f"defaults[{position}] needs a 'values' mapping")
            scope = entry.get("scope") or {}
            if not isinstance(scope, Mapping):
                raise ConfigurationError(f"defaults[{position}].scope must be a mapping")
            scope_path = str(scope.get("path") or "").strip("/")
            scope_type = str(scope["type"]) if scope.get("type") else None
            entries.append((scope_path, scope_type, dict(entry["values"])))
        return sorted(entries, key=_specificity)

    def all(self, path: Path, item_type: str) -> dict[str, Any]:
        """Merged default values for the source file ``path`` of ``item_type``."""
        relative = self._relative(path)
        key = (relative, item_type)
        with self._lock:
            cached = self._memo.get(key)
        if cached is None:
            cached = {}
            for scope_path, scope_type, values in self.entries():
                if scope_type not in (None, item_type):
                    continue
                if self._path_matches(relative, scope_path):
                    cached = deep_merge(cached, values)
            with self._lock:
                self._memo[key] = cached
        return copy.deepcopy(cached)

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.site.source).as_posix()
        except ValueError:
            return path.as_posix()

    @staticmethod
    def _path_matches(relative: str, scope_path: str) -> bool:
        if not scope_path:
            return True
        if "*" in scope_path:
            return fnmatch.fnmatchcase(relative, scope_path) or fnmatch.fnmatchcase(
                relative, scope_path + "/*"
            )
        return relative == scope_path or relative.startswith(scope_path + "/")
