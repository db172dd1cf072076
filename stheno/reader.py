"""Source tree reading for Stheno.

The Reader walks the source directory and fills the Site with layouts,
data, collection documents, pages and static files. Entries starting with
``_``, ``.``, ``#`` or ``~`` and entries matching ``exclude`` are skipped
unless they match ``include``; the destination directory is never read.

Key classes:
- EntryFilter: Decides which directory entries are part of the site.
- Reader: Populates a Site from its source directory.
"""

from __future__ import annotations

import fnmatch
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .content import Layout, Page, StaticFile
from .errors import ReaderError
from .frontmatter import has_front_matter

if TYPE_CHECKING:
    from .site import Site

logger = logging.getLogger(__name__)

SPECIAL_LEADING = ("_", ".", "#", "~")
DATA_EXTENSIONS = (".yaml", ".yml", ".json")


class EntryFilter:
    """Filters directory entries against the site include/exclude rules.

    Attributes:
        site: Site providing ``include``, ``exclude`` and paths.
    """

    def __init__(self, site: Site):
        self.site = site

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.site.source).as_posix()
        except ValueError:
            return path.name

    def included(self, path: Path) -> bool:
        return _matches(self._relative(path), path.name, self.site.include)

    def special(self, path: Path) -> bool:
        return path.name.startswith(SPECIAL_LEADING) or path.name.endswith("~")

    def excluded(self, path: Path) -> bool:
        return _matches(self._relative(path), path.name, self.site.exclude)

    def accepts(self, path: Path) -> bool:
        """Return True if ``path`` takes part in the build."""
        if path == self.site.dest:
            return False
        if self.included(path):
            return True
        return not (self.special(path) or self.excluded(path))


def _matches(relative: str, name: str, patterns: list[str]) -> bool:
    for pattern in patterns:
        pattern = str(pattern).strip("/")
        if fnmatch.fnmatch(relative, pattern) or fnmatch.fnmatch(name, pattern):
            return True
        if relative.startswith(pattern + "/"):
            return True
    return False


class Reader:
    """Reads a site's source tree into the Site.

    Attributes:
        site: Site being populated.
        filter: EntryFilter applied to every entry.
    """

    def __init__(self, site: Site):
        self.site = site
        self.filter = EntryFilter(site)

    def read(self) -> None:
        """Read layouts, data, collections, pages and static files.

        Raises:
            ReaderError: If a source file cannot be read or parsed.
        """
        self.site.layouts = self.read_layouts()
        self.site.data = self.read_data(self.site.in_source_dir(self.site.config["data_dir"]))
        for collection in self.site.collections.values():
            collection.read()
        self.read_directories()
        logger.debug(
            "Read %d documents, %d pages, %d static files",
            len(self.site.documents),
            len(self.site.pages),
            len(self.site.static_files),
        )

    def walk(self, directory: Path) -> list[Path]:
        """Return every accepted file below ``directory`` in sorted order.

        Only the entries below ``directory`` are filtered, so a collection
        directory such as ``_posts`` can be walked even though its own name
        is special.
        """
        if not directory.is_dir():
            return []
        files: list[Path] = []
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            raise ReaderError(directory, f"Could not list directory: {exc}") from exc
        for entry in entries:
            if not self.filter.accepts(entry):
                continue
            if entry.is_dir():
                files.extend(self.walk(entry))
            elif entry.is_file():
                files.append(entry)
        return files

    def read_layouts(self) -> dict[str, Layout]:
        layouts_dir = self.site.in_source_dir(self.site.config["layouts_dir"])
        layouts: dict[str, Layout] = {}
        if not layouts_dir.is_dir():
            return layouts
        for path in sorted(layouts_dir.rglob("*")):
            if path.is_file() and not path.name.startswith("."):
                layout = Layout(self.site, path)
                layouts.setdefault(layout.name, layout)
        return layouts

    def read_data(self, data_dir: Path) -> dict[str, Any]:
        """Load YAML and JSON data files, nesting sub-directories.

        ``_data/nav.yaml`` becomes ``data["nav"]`` and
        ``_data/team/people.json`` becomes ``data["team"]["people"]``.
        """
        data: dict[str, Any] = {}
        if not data_dir.is_dir():
            return data
        for path in sorted(data_dir.iterdir()):
            if path.name.startswith("."):
                continue
            if path.is_dir():
                data[path.name] = self.read_data(path)
            elif path.suffix.lower() in DATA_EXTENSIONS:
                data[path.stem] = self._load_data_file(path)
        return data

    def _load_data_file(self, path: Path) -> Any:
        encoding = self.site.file_read_opts["encoding"]
        try:
            with open(path, encoding=encoding) as f:
                if path.suffix.lower() == ".json":
                    return json.load(f)
                return yaml.safe_load(f)
        except (OSError, UnicodeDecodeError) as exc:
            raise ReaderError(path, f"Could not read data file: {exc}") from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ReaderError(path, f"Invalid data file: {exc}") from exc

    def read_directories(self) -> None:
        """Read pages and static files outside collections."""
        source = self.site.source
        collections_root = self.site.collections_path
        for path in self.walk(source):
            if collections_root != source and collections_root in path.parents:
                continue
            rel_dir = path.parent.relative_to(source).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            if has_front_matter(path):
                page = Page(self.site, source, rel_dir, path.name).read()
                if self.site.publish(page):
                    self.site.pages.append(page)
            else:
                self.site.static_files.append(StaticFile(self.site, source, rel_dir, path.name))
