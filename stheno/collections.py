"""Collections for Stheno.

A collection is a labelled directory ``_<label>`` whose files with front
matter become Documents, sorted by date (or by a configured key), while the
rest are copied as static files. ``posts`` always exists.

Key class:
- Collection: Ordered Documents and static files of one label.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .content import Document, StaticFile

if TYPE_CHECKING:
    from .site import Site


class Collection(Sequence[Document]):
    """A named, ordered group of Documents plus the static files beside them.

    Entries live under ``<collections_dir>/_<label>``. Every readable file in
    that directory ends up either in ``docs`` or in ``files``.
    """

    def __init__(self, site: Site, label: str):
        self.site = site
        self.label = label
        self.metadata: dict[str, Any] = site.collection_metadata(label)
        self.docs: list[Document] = []
        self.files: list[StaticFile] = []

    def __iter__(self) -> Iterator[Document]:
        return iter(self.docs)

    def __len__(self) -> int:
        return len(self.docs)

    def __getitem__(self, item):
        return self.docs[item]

    @property
    def directory(self) -> Path:
        return self.site.collections_path / f"_{self.label}"

    @property
    def relative_directory(self) -> str:
        return f"_{self.label}"

    @property
    def write_enabled(self) -> bool:
        return bool(self.metadata.get("output", False))

    @property
    def permalink(self) -> str | None:
        permalink = self.metadata.get("permalink")
        return str(permalink) if permalink else None

    def read(self) -> Collection:
        """Populate ``docs`` and ``files`` from the collection directory."""
        self.docs = []
        self.files = []
        for path in self.site.reader.walk(self.directory):
            if self.site.is_document_source(path):
                doc = Document(path, self.site, self).read()
                if self.site.publish(doc):
                    self.docs.append(doc)
            else:
                rel_dir = path.parent.relative_to(self.directory).as_posix()
                self.files.append(
                    StaticFile(
                        self.site,
                        self.directory,
                        "" if rel_dir == "." else rel_dir,
                        path.name,
                        collection=self,
                    )
                )
        self.sort_docs()
        return self

    def sort_docs(self) -> None:
        """Sort ``docs`` by the configured ``sort_by`` key, else by date then title.

        Documents lacking the ``sort_by`` key follow the ones that have it.
        """
        key = self.metadata.get("sort_by")
        if key:
            keyed = [d for d in self.docs if d.data.get(key) is not None]
            rest = [d for d in self.docs if d.data.get(key) is None]
            keyed.sort(key=lambda d: (d.data[key], d.sort_key))
            self.docs = keyed + sorted(rest)
        else:
            self.docs.sort()
        if str(self.metadata.get("sort_direction", "ascending")).lower() == "descending":
            self.docs.reverse()

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Collection({self.label!r}, {len(self.docs)} docs)"
