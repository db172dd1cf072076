"""Memoization store for Stheno.

Each Site owns one Cache. Values live in memory for the lifetime of the
Site and, unless disk caching is disabled, are also pickled under the cache
directory so later builds can reuse them. The whole store is dropped as
soon as the configuration fingerprint changes, so values computed under an
old configuration are never served.

Key classes:
- Cache: Namespaced get-or-compute store with optional disk persistence.
"""

from __future__ import annotations

import hashlib
import json
import logging
import pickle
import shutil
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_MISSING = object()


def config_fingerprint(config: Mapping[str, Any]) -> str:
    """Return a stable SHA-256 digest of a configuration mapping."""
    payload = json.dumps(config, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


class Cache:
    """Namespaced memoization store.

    Attributes:
        cache_dir: Directory for pickled entries, or None for memory only.
        disk_enabled: Whether entries are persisted to ``cache_dir``.
    """

    CONFIG_FILENAME = "config.sha256"

    def __init__(self, cache_dir: Path | None = None, disk_enabled: bool = True):
        self.cache_dir = cache_dir
        self.disk_enabled = disk_enabled
        self._store: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}
        self._config_fingerprint: str | None = None
        self._fingerprint_loaded = False

    def configure(self, cache_dir: Path | None, disk_enabled: bool) -> None:
        """Point the cache at a new directory and disk mode."""
        with self._lock:
            if cache_dir != self.cache_dir:
                self._fingerprint_loaded = False
                self._config_fingerprint = None
            self.cache_dir = cache_dir
            self.disk_enabled = disk_enabled

    @property
    def _uses_disk(self) -> bool:
        return self.disk_enabled and self.cache_dir is not None

    @staticmethod
    def _digest(key: Any) -> str:
        return hashlib.sha256(repr(key).encode("utf-8")).hexdigest()

    def _entry_path(self, namespace: str, digest: str) -> Path:
        return self.cache_dir / namespace / digest[:2] / digest[2:]

    def contains(self, namespace: str, key: Any) -> bool:
        """Return True if a value is stored for ``key`` in ``namespace``."""
        return self.get(namespace, key, _MISSING) is not _MISSING

    def get(self, namespace: str, key: Any, default: Any = None) -> Any:
        """Return the stored value, loading it from disk on first access."""
        digest = self._digest(key)
        with self._lock:
            bucket = self._store.get(namespace, {})
            if digest in bucket:
                return bucket[digest]
        if not self._uses_disk:
            return default
        path = self._entry_path(namespace, digest)
        if not path.is_file():
            return default
        try:
            with open(path, "rb") as f:
                value = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as exc:
            logger.debug("Ignoring unreadable cache entry %s: %s", path, exc)
            return default
        with self._lock:
            self._store.setdefault(namespace, {})[digest] = value
        return value

    def set(self, namespace: str, key: Any, value: Any) -> Any:
        """Store ``value`` for ``key`` and return it."""
        digest = self._digest(key)
        with self._lock:
            self._store.setdefault(namespace, {})[digest] = value
        if self._uses_disk:
            self._dump(self._entry_path(namespace, digest), value)
        return value

    def _dump(self, path: Path, value: Any) -> None:
        try:
            payload = pickle.dumps(value)
        except (pickle.PicklingError, TypeError, AttributeError) as exc:
            logger.debug("Cannot persist cache entry %s: %s", path, exc)
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)

    def getset(self, namespace: str, key: Any, compute: Callable[[], Any]) -> Any:
        """Return the memoized value for ``key``, computing it on first access.

        Concurrent callers asking for the same key wait for the first
        computation instead of repeating it.

        Args:
            namespace: Logical bucket, usually the name of the caller.
            key: Any value with a stable ``repr``.
            compute: Zero-argument callable producing the value.

        Returns:
            The cached or freshly computed value.
        """
        digest = self._digest(key)
        with self._lock:
            key_lock = self._key_locks.setdefault((namespace, digest), threading.Lock())
        with key_lock:
            value = self.get(namespace, key, _MISSING)
            if value is _MISSING:
                value = self.set(namespace, key, compute())
            return value

    def delete(self, namespace: str, key: Any) -> None:
        digest = self._digest(key)
        with self._lock:
            self._store.get(namespace, {}).pop(digest, None)
        if self._uses_disk:
            self._entry_path(namespace, digest).unlink(missing_ok=True)

    def clear(self) -> None:
        """Drop every namespace from memory, and from disk when disk use is on."""
        with self._lock:
            self._store.clear()
            self._key_locks.clear()
        if self._uses_disk and self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)

    def _recorded_fingerprint(self) -> str | None:
        if not self._fingerprint_loaded:
            self._fingerprint_loaded = True
            if self._uses_disk:
                path = self.cache_dir / self.CONFIG_FILENAME
                if path.is_file():
                    self._config_fingerprint = path.read_text(encoding="utf-8").strip()
        return self._config_fingerprint

    def clear_if_config_changed(self, config: Mapping[str, Any]) -> bool:
        """Clear the whole cache if ``config`` differs from the recorded one.

        Returns:
            True if the cache was cleared.
        """
        current = config_fingerprint(config)
        if self._recorded_fingerprint() == current:
            return False
        logger.debug("Configuration changed; clearing cache")
        self.clear()
        self._config_fingerprint = current
        return True

    def persist(self) -> None:
        """Record the current configuration fingerprint on disk."""
        if not self._uses_disk or self._config_fingerprint is None:
            return
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        (self.cache_dir / self.CONFIG_FILENAME).write_text(
            self._config_fingerprint, encoding="utf-8"
        )
