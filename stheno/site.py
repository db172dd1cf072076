"""The Site aggregate and its build lifecycle.

A Site owns everything one build needs: the configuration snapshot, the
content read from the source tree, its own Cache, Regenerator and
TemplateEngine, and the converters and generators instantiated from a
PluginRegistry. ``process()`` runs the phases in order::

    reset -> read -> generate -> render -> cleanup -> write

A Site can be processed repeatedly (the development server keeps one alive
between rebuilds); ``reset()`` drops everything that belongs to one run.

Key class:
- Site: Build orchestrator.
"""

from __future__ import annotations

import copy
import logging
import time as timer
from collections.abc import Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from .cache import Cache
from .cleaner import Cleaner
from .collections import Collection
from .content import Document, Page, StaticFile
from .converters import Converter
from .defaults import FrontmatterDefaults
from .errors import (
    ConfigurationError,
    ConverterConflictError,
    ConverterNotFoundError,
    DestinationConflictError,
    GeneratorError,
)
from .frontmatter import has_front_matter
from .generators import Generator
from .hooks import HookRegistry
from .plugins import PluginRegistry, default_registry
from .reader import Reader
from .regenerator import Regenerator
from .renderer import Renderer
from .templates import TemplateEngine
from .utils import parse_date, sanitized_path

logger = logging.getLogger(__name__)


class Site:
    """A static site being built.

    Attributes:
        root_dir: Absolute project root.
        source: Absolute source directory.
        dest: Absolute destination directory.
        registry: Plugin registry the converters and generators come from.
        layouts: Layouts by name.
        pages: Pages and generated pages.
        static_files: Static files outside collections.
        data: Contents of the data directory.
        collections: Collections by label.
        generator_timings: Seconds spent in each generator during the last run.
        written: Destination paths written by the last run.
    """

    def __init__(self, config: Mapping[str, Any], registry: PluginRegistry | None = None):
        self.registry = registry or default_registry()
        self.root_dir = Path(config.get("root_dir") or ".").resolve()
        self.source = sanitized_path(self.root_dir, config.get("source") or "")
        self.dest = sanitized_path(self.root_dir, config.get("destination") or "output")
        self.cache = Cache()
        self.hooks = HookRegistry()
        self.converters: list[Converter] = []
        self.generators: list[Generator] = []
        self.config = config

        self.reader = Reader(self)
        self.frontmatter_defaults = FrontmatterDefaults(self)
        self.regenerator = Regenerator(self)
        self.templates = TemplateEngine(self)
        self.cleaner = Cleaner(self)

        self.setup()
        self.reset()
        self.hooks.trigger("site", "after_init", self)

    @property
    def config(self) -> dict[str, Any]:
        return self._config

    @config.setter
    def config(self, config: Mapping[str, Any]) -> None:
        """Replace the configuration snapshot and re-derive every setting from it."""
        self._config = copy.deepcopy(dict(config))
        config = self._config

        self.baseurl = str(config.get("baseurl") or "")
        self.exclude = [str(p) for p in config.get("exclude") or []]
        self.include = [str(p) for p in config.get("include") or []]
        self.keep_files = [str(p) for p in config.get("keep_files") or []]
        self.future = bool(config.get("future"))
        self.unpublished = bool(config.get("unpublished"))
        self.limit_posts = int(config.get("limit_posts") or 0)
        self.incremental = bool(config.get("incremental"))
        self.safe = bool(config.get("safe"))
        self.threads = max(int(config.get("threads") or 1), 1)
        self.permalink_style = str(config.get("permalink") or "date")
        self.file_read_opts = {"encoding": config.get("encoding") or "utf-8"}

        self.cache.configure(
            self.in_root_dir(config.get("cache_dir") or ".stheno-cache"),
            not (config.get("disable_disk_cache") or self.safe),
        )
        self.plugins_path = self.in_root_dir(config.get("plugins_dir") or "plugins")
        self.template_search_paths = [
            self.in_source_dir(config.get("includes_dir") or "_includes"),
            self.in_source_dir(config.get("components_dir") or "_components"),
        ]
        self.collections_path = self.in_source_dir(config.get("collections_dir") or "")

        if hasattr(self, "templates"):
            self.templates.configure()
            self.instantiate_plugins()

    def process(self) -> None:
        """Run a full build: reset, read, generate, render, cleanup, write."""
        start = timer.perf_counter()
        self.reset()
        self.read()
        self.generate()
        self.render()
        self.cleanup()
        self.write()
        logger.info(
            "Built %d files into %s in %.2f seconds",
            len(self.written),
            self.dest,
            timer.perf_counter() - start,
        )
        if self.config.get("profile"):
            self.print_stats()

    def print_stats(self) -> None:
        logger.info("Template statistics:\n%s", self.templates.stats_table())
        for name, elapsed in self.generator_timings.items():
            logger.info("Generator %s: %.3f seconds", name, elapsed)

    def reset(self) -> None:
        """Drop everything read or computed by the previous run.

        Raises:
            ConfigurationError: If ``limit_posts`` is negative.
        """
        if self.limit_posts < 0:
            raise ConfigurationError("limit_posts must be a non-negative number")
        configured_time = self.config.get("time")
        self.time = parse_date(configured_time) if configured_time else datetime.now()
        self.layouts = {}
        self.pages: list[Page] = []
        self.static_files: list[StaticFile] = []
        self.data: dict[str, Any] = {}
        self.collections: dict[str, Collection] = {
            label: Collection(self, label) for label in self.collection_names
        }
        self.generator_timings: dict[str, float] = {}
        self.written: list[Path] = []
        self._converter_lookup: dict[str, Converter] = {}

        self.frontmatter_defaults.reset()
        self.regenerator.clear_cache()
        if self.cache.clear_if_config_changed(self.config) or not self.incremental:
            self.regenerator.clear()
        self.templates.reset()
        self.hooks.trigger("site", "after_reset", self)

    def setup(self) -> None:
        """Load plugins and instantiate converters and generators.

        Raises:
            ConfigurationError: If the destination would overwrite the source.
        """
        self.ensure_not_in_dest()
        if not self.safe:
            self.registry.load_directory(self.plugins_path)
        self.hooks = HookRegistry()
        self.hooks.extend(self.registry.hooks)
        self.instantiate_plugins()

    def instantiate_plugins(self) -> None:
        """Create converters and generators configured with the current snapshot."""
        self.converters = self.registry.instantiate_converters(self.config)
        self.generators = self.registry.instantiate_generators(self.config)
        self._converter_lookup = {}

    def ensure_not_in_dest(self) -> None:
        if self.dest == self.source or self.dest in self.source.parents:
            raise ConfigurationError(
                f"Destination directory cannot be or contain the Source directory: {self.dest}"
            )

    @property
    def collection_names(self) -> list[str]:
        """Labels of the configured collections; ``posts`` is always present.

        Raises:
            ConfigurationError: If ``collections`` is neither a mapping nor a list.
        """
        configured = self.config.get("collections")
        if configured is None:
            names: list[str] = []
        elif isinstance(configured, Mapping):
            names = [str(label) for label in configured]
        elif isinstance(configured, list):
            names = [str(label) for label in configured]
        else:
            raise ConfigurationError(
                "Expected 'collections' to be a mapping or a list, "
                f"got {type(configured).__name__}"
            )
        if "posts" not in names:
            names.append("posts")
        return names

    def collection_metadata(self, label: str) -> dict[str, Any]:
        metadata: dict[str, Any] = {"output": True} if label == "posts" else {}
        configured = self.config.get("collections")
        if isinstance(configured, Mapping) and isinstance(configured.get(label), Mapping):
            metadata.update(configured[label])
        return metadata

    @property
    def posts(self) -> Collection:
        return self.collections["posts"]

    def read(self) -> None:
        """Read the source tree, apply ``limit_posts`` and fire ``post_read``."""
        self.reader.read()
        self.limit_posts_to_configured()
        self.hooks.trigger("site", "post_read", self)

    def limit_posts_to_configured(self) -> None:
        if self.limit_posts > 0:
            posts = self.posts
            posts.docs = posts.docs[-self.limit_posts :]

    def generate(self) -> None:
        """Run every generator once, in priority order.

        Raises:
            GeneratorError: Wrapping the first failure; later generators do not run.
        """
        for generator in self.generators:
            name = type(generator).__name__
            start = timer.perf_counter()
            try:
                generator.generate(self)
            except GeneratorError:
                raise
            except Exception as exc:
                raise GeneratorError(name, exc) from exc
            elapsed = timer.perf_counter() - start
            self.generator_timings[name] = elapsed
            logger.debug("Generating: %s finished in %.3f seconds", name, elapsed)

    def render(self) -> None:
        """Render every document and page that needs regeneration.

        Raises:
            DestinationConflictError: If two items share an output path.
        """
        self.ensure_unique_destinations()
        payload = self.site_payload()
        self.hooks.trigger("site", "pre_render", self, payload)
        self._run_parallel(lambda doc: self.render_regenerated(doc, payload), self.documents)
        self._run_parallel(lambda page: self.render_regenerated(page, payload), list(self.pages))
        self.hooks.trigger("site", "post_render", self, payload)

    def render_regenerated(self, item: Document | Page, payload: dict[str, Any]) -> None:
        if not self.regenerator.regenerate(item):
            return
        if item.path is not None:
            self.regenerator.clear_dependencies(item.path)
        Renderer(self, item, payload).run()
        item.trigger_hooks("post_render")

    def ensure_unique_destinations(self) -> None:
        claims: dict[Path, list[str]] = {}
        for item in self.each_site_file():
            claims.setdefault(item.destination(self.dest), []).append(item.relative_path)
        for destination, sources in sorted(claims.items()):
            if len(sources) > 1:
                raise DestinationConflictError(destination, sources)

    def cleanup(self) -> None:
        self.cleaner.cleanup()

    def write(self) -> None:
        """Write every item that needs regeneration, then persist metadata."""
        items = [item for item in self.each_site_file() if self.regenerator.regenerate(item)]
        self.written = self._run_parallel(lambda item: item.write(self.dest), items)
        self.regenerator.write_metadata()
        self.cache.persist()
        self.hooks.trigger("site", "post_write", self)

    def _run_parallel(self, func: Callable[[Any], Any], items: list[Any]) -> list[Any]:
        if self.threads > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.threads) as pool:
                return list(pool.map(func, items))
        return [func(item) for item in items]

    def site_payload(self) -> dict[str, Any]:
        """Variables shared by every template of this run."""
        site = dict(self.config)
        site.update(
            {
                "time": self.time,
                "baseurl": self.baseurl,
                "pages": self.pages,
                "posts": list(reversed(self.posts.docs)),
                "documents": self.documents,
                "static_files": self.static_files_to_write,
                "collections": self.collections,
                "data": self.data,
                "tags": self.tags,
                "categories": self.categories,
            }
        )
        return {"site": site, "paginator": None}

    def find_converter_instance(self, cls: type[Converter]) -> Converter:
        """Return the converter instance of exactly ``cls``.

        Raises:
            ConverterNotFoundError: If no converter of that class is loaded.
        """
        for converter in self.converters:
            if type(converter) is cls:
                return converter
        raise ConverterNotFoundError(f"No Converters found for {cls.__name__}")

    def converter_for(self, ext: str) -> Converter:
        """Return the highest priority converter claiming ``ext``.

        Raises:
            ConverterNotFoundError: If no converter claims the extension.
            ConverterConflictError: If several claim it at the top priority.
        """
        converter = self._converter_lookup.get(ext)
        if converter is not None:
            return converter
        matching = [c for c in self.converters if c.matches(ext)]
        if not matching:
            raise ConverterNotFoundError(f"No Converters found for {ext}")
        top = [c for c in matching if c.priority == matching[0].priority]
        if len(top) > 1:
            names = ", ".join(type(c).__name__ for c in top)
            raise ConverterConflictError(f"Converters {names} all claim {ext}")
        self._converter_lookup[ext] = matching[0]
        return matching[0]

    def is_document_source(self, path: Path) -> bool:
        return has_front_matter(path)

    def publish(self, item: Document | Page) -> bool:
        """Whether ``item`` is part of this build.

        Unpublished items need ``unpublished``; documents dated after the
        site time need ``future``.
        """
        if not item.published and not self.unpublished:
            return False
        if isinstance(item, Document) and not self.future and item.date > self.time:
            logger.debug("Skipping %s, dated in the future", item.relative_path)
            return False
        return True

    def find_item(self, relative_path: str) -> Document | Page | StaticFile | None:
        """Return the item whose relative path is ``relative_path``, if any."""
        for item in self.each_item():
            if item.relative_path == relative_path:
                return item
        return None

    def each_item(self) -> Iterator[Document | Page | StaticFile]:
        yield from self.pages
        yield from self.static_files
        for collection in self.collections.values():
            yield from collection.docs
            yield from collection.files

    @property
    def documents(self) -> list[Document]:
        return [doc for collection in self.collections.values() for doc in collection.docs]

    @property
    def docs_to_write(self) -> list[Document]:
        return [doc for doc in self.documents if doc.write_enabled]

    @property
    def static_files_to_write(self) -> list[StaticFile]:
        files = list(self.static_files)
        for collection in self.collections.values():
            files.extend(f for f in collection.files if f.write_enabled)
        return files

    def each_site_file(self) -> list[Document | Page | StaticFile]:
        """Every item written to the destination, pages first."""
        return [*self.pages, *self.static_files_to_write, *self.docs_to_write]

    def _group_posts(self, attribute: str) -> dict[str, list[Document]]:
        groups: dict[str, list[Document]] = {}
        for post in reversed(self.posts.docs):
            for value in getattr(post, attribute):
                groups.setdefault(value, []).append(post)
        return groups

    @property
    def tags(self) -> dict[str, list[Document]]:
        return self._group_posts("tags")

    @property
    def categories(self) -> dict[str, list[Document]]:
        return self._group_posts("categories")

    def in_root_dir(self, *paths: str) -> Path:
        return sanitized_path(self.root_dir, "/".join(paths))

    def in_source_dir(self, *paths: str) -> Path:
        return sanitized_path(self.source, "/".join(paths))

    def in_dest_dir(self, *paths: str) -> Path:
        return sanitized_path(self.dest, "/".join(paths))

    def in_cache_dir(self, *paths: str) -> Path:
        base = self.cache.cache_dir or self.in_root_dir(".stheno-cache")
        return sanitized_path(base, "/".join(paths))
