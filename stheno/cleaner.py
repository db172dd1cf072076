"""Removal of obsolete files from the destination.

After a build the destination should hold exactly what the Site writes,
plus anything listed in ``keep_files``. The Cleaner computes the difference
and removes it, then prunes directories left empty.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .site import Site

logger = logging.getLogger(__name__)


class Cleaner:
    """Cleans up files in the destination that the Site no longer writes.

    Attributes:
        site: The Site whose destination is cleaned.
    """

    def __init__(self, site: Site):
        self.site = site

    def cleanup(self) -> list[Path]:
        """Remove obsolete entries and empty directories.

        Returns:
            The obsolete paths that were removed.
        """
        obsolete = self.obsolete_files()
        self.site.hooks.trigger("clean", "on_obsolete", obsolete)
        for path in obsolete:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
            logger.debug("Removed obsolete %s", path)
        self.prune_empty_dirs()
        if not self.site.incremental:
            self.site.regenerator.metadata_file.unlink(missing_ok=True)
        return obsolete

    def obsolete_files(self) -> list[Path]:
        """Return destination entries that the current build does not produce.

        Files that sit where the build now needs a directory are included.
        """
        new_files = self.new_files()
        new_dirs = self.new_dirs(new_files)
        existing = self.existing_files()
        obsolete = (existing - new_files - new_dirs) | self.replaced_files(new_dirs)
        # Removing a directory removes its children, so children are dropped.
        result = sorted(obsolete)
        return [p for p in result if not any(parent in obsolete for parent in p.parents)]

    def existing_files(self) -> set[Path]:
        dest = self.site.dest
        files: set[Path] = set()
        if not dest.is_dir():
            return files
        for dirpath, dirnames, filenames in os.walk(dest):
            current = Path(dirpath)
            dirnames[:] = sorted(d for d in dirnames if not self.keep(current / d))
            for name in dirnames + filenames:
                path = current / name
                if not self.keep(path):
                    files.add(path)
        return files

    def new_files(self) -> set[Path]:
        dest = self.site.dest
        return {item.destination(dest) for item in self.site.each_site_file()}

    def new_dirs(self, new_files: set[Path]) -> set[Path]:
        dest = self.site.dest
        dirs: set[Path] = set()
        for path in new_files:
            for parent in path.parents:
                if parent == dest or dest not in parent.parents:
                    break
                dirs.add(parent)
        return dirs

    def replaced_files(self, new_dirs: set[Path]) -> set[Path]:
        return {path for path in new_dirs if path.is_file() or path.is_symlink()}

    def keep(self, path: Path) -> bool:
        """Whether ``path`` matches one of the ``keep_files`` entries."""
        relative = path.relative_to(self.site.dest).as_posix()
        for entry in self.site.keep_files:
            entry = str(entry).strip("/")
            if relative == entry or relative.startswith(entry + "/"):
                return True
        return False

    def prune_empty_dirs(self) -> None:
        """Remove empty directories below the destination, deepest first."""
        dest = self.site.dest
        if not dest.is_dir():
            return
        for dirpath, _dirnames, _filenames in os.walk(dest, topdown=False):
            path = Path(dirpath)
            if path == dest or self.keep(path):
                continue
            if not any(path.iterdir()):
                path.rmdir()
                logger.debug("Removed empty directory %s", path)
