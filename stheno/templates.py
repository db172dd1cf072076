"""Template rendering engine for Stheno.

This module uses Jinja2 as the templating capability: document bodies and
layouts are template strings evaluated against a payload mapping. Includes
and components are loaded from the site's include and component search
paths.

Key class:
- TemplateEngine: Renders template strings and exposes the ``link``
  cross-reference, which records a dependency edge for incremental builds.
"""

from __future__ import annotations

import threading
import time
import traceback
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateSyntaxError,
    Undefined,
    pass_context,
    select_autoescape,
)
from jinja2.runtime import Context

from .errors import CrossReferenceError, SthenoError, TemplateError
from .utils import slugify

if TYPE_CHECKING:
    from .site import Site

_TEMPLATE_FILENAME = "<template>"


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _template_lineno(exc: BaseException) -> int | None:
    lineno = None
    for frame in traceback.extract_tb(exc.__traceback__):
        if frame.filename == _TEMPLATE_FILENAME:
            lineno = frame.lineno
    return lineno


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        site: Site whose search paths and items are exposed to templates.
        env: Jinja2 environment.
        stats: Per-file render counts and cumulative seconds.
    """

    def __init__(self, site: Site):
        self.site = site
        self.env = self._create_environment()
        self.stats: dict[str, dict[str, float]] = {}
        self._compiled: dict[str, Template] = {}
        self._lock = threading.Lock()

    def _create_environment(self) -> Environment:
        undefined = StrictUndefined if self.site.config.get("strict_variables") else Undefined
        env = Environment(
            loader=FileSystemLoader([str(p) for p in self.site.template_search_paths]),
            autoescape=select_autoescape(["xml"], default_for_string=False, default=False),
            keep_trailing_newline=True,
            undefined=undefined,
        )
        env.globals["link"] = self._link
        env.globals["relative_url"] = self.relative_url
        env.globals["absolute_url"] = self.absolute_url
        env.filters["relative_url"] = self.relative_url
        env.filters["absolute_url"] = self.absolute_url
        env.filters["slugify"] = slugify
        return env

    def configure(self) -> None:
        """Rebuild the environment after the site configuration changed."""
        with self._lock:
            self.env = self._create_environment()
            self._compiled = {}

    def reset(self) -> None:
        """Clear per-run statistics."""
        with self._lock:
            self.stats = {}

    def relative_url(self, url: str) -> str:
        """Prefix a site path with the baseurl unless it already has it."""
        if url.startswith(("http://", "https://", "//", "#", "mailto:")):
            return url
        path = url if url.startswith("/") else f"/{url}"
        baseurl = self.site.baseurl.rstrip("/")
        if not baseurl or path == baseurl or path.startswith(baseurl + "/"):
            return path
        return f"{baseurl}{path}"

    def absolute_url(self, url: str) -> str:
        """Join the site ``url`` with the relative URL of ``url``."""
        relative = self.relative_url(url)
        if relative.startswith(("http://", "https://", "//")):
            return relative
        return f"{str(self.site.config.get('url') or '').rstrip('/')}{relative}"

    @pass_context
    def _link(self, context: Context, relative_path: str) -> str:
        """Return the URL of the item at ``relative_path``.

        The current page gains a dependency on the target so that changing
        the target regenerates the page.

        Raises:
            CrossReferenceError: If no item has that relative path.
        """
        current = context.get("page")
        source = getattr(current, "path", None)
        target = self.site.find_item(str(relative_path).strip().lstrip("/"))
        if target is None:
            raise CrossReferenceError(str(relative_path), source)
        target_path = getattr(target, "path", None)
        if source is not None and target_path is not None:
            self.site.regenerator.add_dependency(source, target_path)
        return target.url

    def _compile(self, template: str) -> Template:
        with self._lock:
            compiled = self._compiled.get(template)
        if compiled is None:
            compiled = self.env.from_string(template)
            with self._lock:
                self._compiled[template] = compiled
        return compiled

    def render(self, template: str, payload: dict[str, Any], path: Path | str | None = None) -> str:
        """Render a template string.

        Args:
            template: Template source.
            payload: Variables available to the template.
            path: File the template came from, for errors and statistics.

        Returns:
            Rendered string.

        Raises:
            TemplateError: If the template fails to compile or evaluate.
            SthenoError: Errors raised by template globals, such as
                CrossReferenceError, propagate unchanged.
        """
        name = str(path) if path is not None else _TEMPLATE_FILENAME
        source_path = Path(path) if path is not None else None
        start = time.perf_counter()
        try:
            return self._compile(template).render(payload)
        except TemplateSyntaxError as exc:
            raise TemplateError(
                f"Template syntax error: {exc.message}", source_path, exc.lineno
            ) from exc
        except SthenoError:
            raise
        except Exception as exc:
            raise TemplateError(
                _format_error_message(exc), source_path, _template_lineno(exc)
            ) from exc
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                entry = self.stats.setdefault(name, {"count": 0, "time": 0.0})
                entry["count"] += 1
                entry["time"] += elapsed

    def stats_table(self, num_rows: int = 50) -> str:
        """Return a plain-text table of the slowest templates."""
        rows = sorted(self.stats.items(), key=lambda item: item[1]["time"], reverse=True)
        lines = [f"{'Filename':<60} | {'Count':>5} | {'Time':>8}", "-" * 80]
        for name, entry in rows[:num_rows]:
            lines.append(f"{name[-60:]:<60} | {int(entry['count']):>5} | {entry['time']:>8.3f}")
        return "\n".join(lines)
