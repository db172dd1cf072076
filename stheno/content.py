"""Content model for Stheno.

Everything the Site writes to the destination is one of the items defined
here. Items carry their front matter in ``data``, the raw body in
``content`` and, once rendered, the final text in ``output``. Their URL and
destination are recomputed from the same inputs every time they are read.

Key classes:
- Layout: A template under ``_layouts`` that wraps rendered content.
- Document: A collection entry with front matter.
- Page: A source file with front matter outside any collection.
- GeneratedPage: A page synthesized by a generator; it has no source file.
- StaticFile: A file copied verbatim.
"""

from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import ReaderError
from .frontmatter import read_with_frontmatter
from .permalinks import (
    KIND_DOCUMENT,
    KIND_PAGE,
    KIND_POST,
    PERMALINK_STYLES,
    build_url,
    date_placeholders,
    destination_for,
    template_for,
)
from .utils import (
    deep_merge,
    extract_date_from_name,
    parse_date,
    slugify,
    strip_date_prefix,
    titleize,
)

if TYPE_CHECKING:
    from .collections import Collection
    from .converters import Converter
    from .site import Site


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(v) for v in value]


class Layout:
    """A layout template.

    Attributes:
        name: Layout name, the file stem (``default`` for ``default.html``).
        path: Absolute path of the layout file.
        data: Front matter of the layout.
        content: Template body.
    """

    def __init__(self, site: Site, path: Path):
        self.site = site
        self.path = path
        self.name = path.name.split(".")[0]
        self.data, self.content = read_with_frontmatter(path, site.file_read_opts["encoding"])

    @property
    def parent(self) -> str | None:
        parent = self.data.get("layout")
        return str(parent) if parent else None

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Layout({self.name!r})"


class _Renderable:
    """Behaviour shared by documents and pages."""

    hook_owner = "pages"

    site: Site
    path: Path | None
    data: dict[str, Any]
    content: str
    output: str | None
    _converter: Converter | None

    @property
    def extname(self) -> str:
        return Path(self.name).suffix

    @property
    def basename(self) -> str:
        return Path(self.name).stem

    @property
    def converter(self) -> Converter:
        """The converter for this item's extension, chosen once per item."""
        if self._converter is None:
            self._converter = self.site.converter_for(self.extname)
        return self._converter

    @property
    def output_ext(self) -> str:
        return self.converter.output_ext(self.extname)

    @property
    def is_html(self) -> bool:
        return self.output_ext in (".html", ".htm")

    @property
    def layout_name(self) -> str | None:
        """Layout requested by the front matter.

        HTML output falls back to ``default``; ``layout: none`` (or null)
        disables layouts.
        """
        if "layout" in self.data:
            layout = self.data["layout"]
            if layout in (None, False, "none", ""):
                return None
            return str(layout)
        return "default" if self.is_html else None

    @property
    def layout_is_explicit(self) -> bool:
        return self.data.get("layout") not in (None, False, "none", "")

    @property
    def render_with_templates(self) -> bool:
        return bool(self.data.get("render_with_templates", True))

    @property
    def published(self) -> bool:
        return self.data.get("published", True) is not False

    @property
    def title(self) -> str:
        return str(self.data.get("title") or titleize(self.name))

    def destination(self, dest: Path) -> Path:
        """Absolute output path of this item under ``dest``."""
        return destination_for(dest, self.url, self.output_ext)

    def write(self, dest: Path) -> Path:
        """Write the rendered output and return the written path."""
        path = self.destination(dest)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.output or "", encoding=self.site.file_read_opts["encoding"])
        self.trigger_hooks("post_write")
        return path

    def trigger_hooks(self, event: str, *args: Any) -> None:
        self.site.hooks.trigger(self.hook_owner, event, self, *args)

    def __getitem__(self, key: str) -> Any:
        # Front matter first so templates can read arbitrary keys as attributes.
        if key in self.data:
            return self.data[key]
        if key.startswith("_"):
            raise KeyError(key)
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default


class Document(_Renderable):
    """An entry of a Collection.

    Attributes:
        path: Absolute source path; the identity of the document.
        collection: Owning collection.
        data: Front matter, in file order.
        content: Raw body.
        output: Rendered output, set by the render phase.
        skip_write: When True the document is rendered but not written.
    """

    hook_owner = "documents"

    def __init__(self, path: Path, site: Site, collection: Collection):
        self.path = path
        self.site = site
        self.collection = collection
        self.name = path.name
        self.data: dict[str, Any] = {}
        self.content = ""
        self.output: str | None = None
        self.skip_write = False
        self._converter = None

    def read(self) -> Document:
        """Load front matter and body from the source file, over the configured defaults."""
        data, self.content = read_with_frontmatter(self.path, self.site.file_read_opts["encoding"])
        defaults = self.site.frontmatter_defaults.all(self.path, self.collection.label)
        self.data = deep_merge(defaults, data)
        if self.data.get("skip_write"):
            self.skip_write = True
        return self

    @property
    def relative_path(self) -> str:
        return self.path.relative_to(self.site.collections_path).as_posix()

    @property
    def cleaned_relative_path(self) -> str:
        """Path inside the collection directory, without extension."""
        rel = self.path.relative_to(self.collection.directory)
        return rel.with_suffix("").as_posix()

    @property
    def date(self) -> datetime:
        if "date" in self.data:
            try:
                return parse_date(self.data["date"])
            except ValueError as exc:
                raise ReaderError(self.path, str(exc)) from exc
        from_name = extract_date_from_name(self.basename)
        return from_name or self.site.time

    @property
    def slug(self) -> str:
        return slugify(self.data.get("slug") or strip_date_prefix(self.basename))

    @property
    def categories(self) -> list[str]:
        return _as_list(self.data.get("categories", self.data.get("category")))

    @property
    def tags(self) -> list[str]:
        return _as_list(self.data.get("tags"))

    @property
    def is_post(self) -> bool:
        return self.collection.label == "posts"

    @property
    def permalink_template(self) -> str:
        permalink = self.data.get("permalink")
        if permalink:
            return str(permalink)
        style = self.collection.permalink or self.site.permalink_style
        if self.collection.permalink and style not in PERMALINK_STYLES:
            return style
        kind = KIND_POST if self.is_post else KIND_DOCUMENT
        return template_for(style, kind)

    def url_placeholders(self) -> dict[str, str]:
        placeholders = date_placeholders(self.date)
        placeholders.update(
            {
                "collection": self.collection.label,
                "path": self.cleaned_relative_path,
                "name": slugify(self.basename),
                "title": self.slug,
                "slug": self.slug,
                "categories": "/".join(slugify(c) for c in self.categories),
                "output_ext": self.output_ext,
            }
        )
        return placeholders

    @property
    def url(self) -> str:
        return build_url(self.permalink_template, self.url_placeholders(), self.site.baseurl)

    @property
    def write_enabled(self) -> bool:
        """Whether this document is written to the destination."""
        return self.collection.write_enabled and not self.skip_write

    @property
    def sort_key(self) -> tuple[datetime, str, str]:
        return (self.date, self.title, str(self.path))

    def __lt__(self, other: Document) -> bool:
        return self.sort_key < other.sort_key

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Document({self.relative_path!r})"


class Page(_Renderable):
    """A file with front matter outside any collection.

    Attributes:
        dir: Directory relative to the source, in posix form (``""`` at root).
        name: Filename including extension.
    """

    def __init__(self, site: Site, base: Path, dir: str, name: str):
        self.site = site
        self.base = base
        self.dir = dir
        self.name = name
        self.path: Path | None = base / dir / name if dir else base / name
        self.data: dict[str, Any] = {}
        self.content = ""
        self.output: str | None = None
        self._converter = None

    def read(self) -> Page:
        data, self.content = read_with_frontmatter(self.path, self.site.file_read_opts["encoding"])
        self.data = deep_merge(self.site.frontmatter_defaults.all(self.path, "pages"), data)
        return self

    @property
    def relative_path(self) -> str:
        return f"{self.dir}/{self.name}" if self.dir else self.name

    @property
    def permalink_template(self) -> str:
        permalink = self.data.get("permalink")
        if permalink:
            return str(permalink)
        return template_for(
            self.site.permalink_style,
            KIND_PAGE,
            html=self.is_html,
            index=self.basename == "index",
        )

    def url_placeholders(self) -> dict[str, str]:
        return {
            "path": self.dir,
            "basename": self.basename,
            "output_ext": self.output_ext,
        }

    @property
    def url(self) -> str:
        return build_url(self.permalink_template, self.url_placeholders(), self.site.baseurl)

    @property
    def write_enabled(self) -> bool:
        return True

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Page({self.relative_path!r})"


class GeneratedPage(Page):
    """A page synthesized by a generator; it has no source file."""

    def __init__(
        self,
        site: Site,
        dir: str,
        name: str,
        content: str = "",
        data: dict[str, Any] | None = None,
    ):
        super().__init__(site, site.source, dir, name)
        self.path = None
        self.content = content
        self.data = dict(data or {})

    def read(self) -> GeneratedPage:
        return self


class StaticFile:
    """A file copied to the destination without processing.

    Attributes:
        path: Absolute source path.
        dir: Directory relative to ``base`` in posix form.
        name: Filename.
        collection: Owning collection, if the file lives in one.
    """

    hook_owner = "pages"

    def __init__(
        self,
        site: Site,
        base: Path,
        dir: str,
        name: str,
        collection: Collection | None = None,
    ):
        self.site = site
        self.base = base
        self.dir = dir
        self.name = name
        self.collection = collection
        self.path = base / dir / name if dir else base / name
        self.data: dict[str, Any] = {}

    @property
    def extname(self) -> str:
        return Path(self.name).suffix

    @property
    def relative_path(self) -> str:
        rel = self.path.relative_to(self.site.collections_path if self.collection else self.site.source)
        return rel.as_posix()

    @property
    def url(self) -> str:
        if self.collection is not None:
            inner = self.path.relative_to(self.collection.directory).parent.as_posix()
            dir_path = f"{self.collection.label}/{inner}" if inner != "." else self.collection.label
        else:
            dir_path = self.dir
        return build_url(
            "/:path/:basename:output_ext",
            {"path": dir_path, "basename": Path(self.name).stem, "output_ext": self.extname},
            self.site.baseurl,
        )

    @property
    def modified_time(self) -> datetime:
        return datetime.fromtimestamp(self.path.stat().st_mtime)

    @property
    def write_enabled(self) -> bool:
        return self.collection is None or self.collection.write_enabled

    def destination(self, dest: Path) -> Path:
        return destination_for(dest, self.url, self.extname)

    def write(self, dest: Path) -> Path:
        """Copy the file to its destination, preserving its timestamps."""
        path = self.destination(dest)
        path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.path, path)
        return path

    def __getitem__(self, key: str) -> Any:
        if key.startswith("_"):
            raise KeyError(key)
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"StaticFile({self.relative_path!r})"
