"""Incremental regeneration for Stheno.

The Regenerator decides, per item, whether its output must be rebuilt. It
keeps a metadata record for every source path it has seen::

    {"fingerprint": [mtime_ns, size], "deps": [...], "destination": "..."}

An item is regenerated when it has no record, its fingerprint changed, its
destination moved or is missing, or anything in the transitive closure of
its dependencies changed. Dependencies are registered explicitly: layouts
applied to a document and ``link`` cross-references.

Records are stored as JSON in ``<root_dir>/.stheno-metadata`` after every
successful write phase. When incremental builds are off the Regenerator is
disabled and every item is regenerated.

Key classes:
- RegenerationState: Per-path state (unknown, unchanged, changed).
- Regenerator: Regeneration decisions and the dependency graph.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .utils import fingerprint

if TYPE_CHECKING:
    from .site import Site

logger = logging.getLogger(__name__)

METADATA_FILENAME = ".stheno-metadata"


class RegenerationState(Enum):
    UNKNOWN = "unknown"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class Regenerator:
    """Tracks fingerprints and dependency edges between builds.

    Attributes:
        site: Owning Site.
        metadata: Records keyed by absolute source path.
    """

    def __init__(self, site: Site):
        self.site = site
        self._lock = threading.RLock()
        self.metadata: dict[str, dict[str, Any]] = self.read_metadata()
        self._decisions: dict[str, bool] = {}
        self._modified: dict[str, bool] = {}
        self._own_changes: dict[str, bool] = {}

    @property
    def disabled(self) -> bool:
        return not self.site.incremental

    @property
    def metadata_file(self) -> Path:
        return self.site.in_root_dir(METADATA_FILENAME)

    def regenerate(self, item: Any) -> bool:
        """Return True if ``item`` must be rendered and written this run.

        The decision for an item is made once per run, so the render and
        write phases always agree.
        """
        if self.disabled:
            return True
        source = getattr(item, "path", None)
        if source is None or not item.write_enabled or item.data.get("regenerate"):
            return True
        key = str(source)
        dest = str(item.destination(self.site.dest))
        with self._lock:
            if key in self._decisions:
                return self._decisions[key]
            changed = self.modified(key)
            moved = self._record_destination(key, dest)
            missing = not os.path.exists(dest)
            decision = changed or moved or missing
            self._decisions[key] = decision
        if decision:
            logger.debug(
                "Regenerating %s (changed=%s, moved=%s, missing=%s)", key, changed, moved, missing
            )
        return decision

    def state(self, path: str | Path) -> RegenerationState:
        """Return the state of ``path`` for this run."""
        key = str(path)
        with self._lock:
            if key not in self.metadata and key not in self._own_changes:
                return RegenerationState.UNKNOWN
            return RegenerationState.CHANGED if self.modified(key) else RegenerationState.UNCHANGED

    def modified(self, path: str | Path) -> bool:
        """Return True if ``path`` or anything it depends on changed."""
        if self.disabled:
            return True
        key = str(path)
        with self._lock:
            if key in self._modified:
                return self._modified[key]
            result = self._closure_changed(key)
            self._modified[key] = result
            return result

    def _closure_changed(self, root: str) -> bool:
        # Iterative walk so dependency cycles terminate; settled results are reused.
        stack = [root]
        seen: set[str] = set()
        while stack:
            path = stack.pop()
            if path in seen:
                continue
            seen.add(path)
            if path != root and path in self._modified:
                if self._modified[path]:
                    return True
                continue
            if self._own_change(path):
                return True
            record = self.metadata.get(path)
            if record:
                stack.extend(record["deps"])
        return False

    def _own_change(self, path: str) -> bool:
        if path in self._own_changes:
            return self._own_changes[path]
        record = self.metadata.get(path)
        current = fingerprint(path)
        if current is None:
            self.metadata.pop(path, None)
            changed = True
        elif record is None or record.get("fingerprint") != current:
            self.add(path)
            changed = True
        else:
            changed = False
        self._own_changes[path] = changed
        return changed

    def _record_destination(self, key: str, dest: str) -> bool:
        record = self.metadata.get(key)
        if record is None:
            return True
        moved = record.get("destination") != dest
        record["destination"] = dest
        return moved

    def add(self, path: str | Path) -> bool:
        """Record the current fingerprint of ``path`` with no dependencies.

        Returns:
            Always True: a freshly added path counts as changed.
        """
        key = str(path)
        current = fingerprint(key)
        if current is None:
            return True
        with self._lock:
            previous = self.metadata.get(key, {})
            self.metadata[key] = {
                "fingerprint": current,
                "deps": [],
                "destination": previous.get("destination"),
            }
            self._own_changes[key] = True
        return True

    def force(self, path: str | Path) -> bool:
        """Mark ``path`` as changed for the rest of this run."""
        with self._lock:
            self._modified[str(path)] = True
        return True

    def add_dependency(self, path: str | Path, dependency: str | Path) -> None:
        """Record that ``path`` depends on ``dependency``.

        A later change to ``dependency`` regenerates ``path`` even if
        ``path`` itself is unchanged. Ignored when disabled or when
        ``path`` is not tracked.
        """
        if self.disabled:
            return
        key, dep = str(path), str(dependency)
        with self._lock:
            record = self.metadata.get(key)
            if record is None or dep == key:
                return
            if dep not in record["deps"]:
                record["deps"].append(dep)
                if dep not in self.metadata:
                    self.add(dep)

    def dependencies(self, path: str | Path) -> list[str]:
        with self._lock:
            record = self.metadata.get(str(path))
            return list(record["deps"]) if record else []

    def clear_dependencies(self, path: str | Path) -> None:
        """Forget the recorded dependencies of ``path`` before it is re-rendered."""
        with self._lock:
            record = self.metadata.get(str(path))
            if record is not None:
                record["deps"] = []

    def clear(self) -> None:
        """Forget all metadata, as for a full rebuild."""
        with self._lock:
            self.metadata = {}
            self.clear_cache()

    def clear_cache(self) -> None:
        """Forget this run's decisions; persisted metadata is kept."""
        with self._lock:
            self._decisions = {}
            self._modified = {}
            self._own_changes = {}

    def read_metadata(self) -> dict[str, dict[str, Any]]:
        path = self.metadata_file
        if not path.is_file():
            return {}
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable regeneration metadata %s: %s", path, exc)
            return {}
        if not isinstance(loaded, dict):
            return {}
        metadata: dict[str, dict[str, Any]] = {}
        for key, record in loaded.items():
            if isinstance(record, dict) and "fingerprint" in record:
                metadata[key] = {
                    "fingerprint": list(record["fingerprint"]),
                    "deps": list(record.get("deps", [])),
                    "destination": record.get("destination"),
                }
        return metadata

    def write_metadata(self) -> None:
        """Persist the metadata; does nothing when disabled."""
        if self.disabled:
            return
        with self._lock:
            snapshot = {
                key: {
                    "fingerprint": record["fingerprint"],
                    "deps": sorted(record["deps"]),
                    "destination": record.get("destination"),
                }
                for key, record in sorted(self.metadata.items())
                if os.path.exists(key)
            }
        path = self.metadata_file
        logger.debug("Writing metadata: %s", path)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(snapshot, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, path)
