"""Permalink and destination path derivation for Stheno.

A permalink template is a path containing ``:placeholder`` tokens, for
example ``/:categories/:year/:month/:day/:title:output_ext``. Named styles
map to templates; anything else starting with ``/`` is used as a literal
template. The URL of an item depends only on its placeholders, the template
and the site ``baseurl``, so recomputing it always yields the same result.

Key functions:
- template_for: Pick the template for a style and an item kind.
- build_url: Expand a template and prefix the baseurl.
- destination_for: Map a URL to an absolute output path.
- date_placeholders: Date related placeholder values.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

from .utils import sanitized_path

PLACEHOLDER_RE = re.compile(r":([a-z_]+)")

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "weekdate": "/:categories/:year/W:week/:short_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

KIND_POST = "post"
KIND_DOCUMENT = "document"
KIND_PAGE = "page"


def is_pretty(template: str) -> bool:
    """Whether a template writes directories with an index file."""
    return template.endswith("/")


def template_for(style: str, kind: str, html: bool = True, index: bool = False) -> str:
    """Return the permalink template for a style and an item kind.

    Args:
        style: Named style (``date``, ``pretty``, ...) or a literal template.
        kind: One of KIND_POST, KIND_DOCUMENT, KIND_PAGE.
        html: Whether the item renders to HTML (pages only).
        index: Whether the item is an ``index`` page (pages only).

    Returns:
        Permalink template string.
    """
    style_template = PERMALINK_STYLES.get(style, style)
    pretty = is_pretty(style_template)
    if kind == KIND_POST:
        return style_template
    if kind == KIND_DOCUMENT:
        return "/:collection/:path/" if pretty else "/:collection/:path:output_ext"
    if not html:
        return "/:path/:basename:output_ext"
    if index:
        return "/:path/"
    return "/:path/:basename/" if pretty else "/:path/:basename:output_ext"


def date_placeholders(date: datetime) -> dict[str, str]:
    """Return the date related placeholder values for ``date``."""
    return {
        "year": date.strftime("%Y"),
        "month": date.strftime("%m"),
        "day": date.strftime("%d"),
        "hour": date.strftime("%H"),
        "minute": date.strftime("%M"),
        "second": date.strftime("%S"),
        "i_day": str(date.day),
        "i_month": str(date.month),
        "short_year": date.strftime("%y"),
        "short_month": date.strftime("%b"),
        "long_month": date.strftime("%B"),
        "short_day": date.strftime("%a"),
        "long_day": date.strftime("%A"),
        "y_day": date.strftime("%j"),
        "week": date.strftime("%V"),
    }


def _sanitize(url: str) -> str:
    trailing = url.endswith("/")
    segments = [s for s in url.split("/") if s not in ("", ".", "..")]
    path = "/" + "/".join(segments)
    if trailing and path != "/":
        path += "/"
    return path


def build_url(template: str, placeholders: dict[str, str], baseurl: str = "") -> str:
    """Expand ``template`` with ``placeholders`` and prefix ``baseurl``.

    Unknown placeholders are left untouched. Empty placeholders collapse,
    so ``/:categories/:title.html`` without categories becomes
    ``/title.html``.

    Args:
        template: Permalink template.
        placeholders: Values for each ``:name`` token.
        baseurl: Site base URL path such as ``/blog``; may be empty.

    Returns:
        Absolute URL path starting with ``/``.
    """

    def repl(match: re.Match) -> str:
        name = match.group(1)
        if name in placeholders:
            return placeholders[name]
        # Fall back to the longest known prefix, e.g. ":title.html" or ":path_x".
        for end in range(len(name) - 1, 0, -1):
            if name[:end] in placeholders:
                return placeholders[name[:end]] + name[end:]
        return match.group(0)

    url = _sanitize(PLACEHOLDER_RE.sub(repl, template))
    prefix = _sanitize(baseurl) if baseurl else "/"
    if prefix == "/":
        return url
    return prefix.rstrip("/") + url


def destination_for(dest: Path, url: str, output_ext: str) -> Path:
    """Map a URL to an absolute file path under ``dest``.

    URLs ending in ``/`` write ``index`` plus the output extension inside
    that directory; URLs without the output extension get it appended.
    """
    path = sanitized_path(dest, url)
    if url.endswith("/"):
        path = path / "index"
    if output_ext and not path.name.endswith(output_ext):
        path = path.with_name(path.name + output_ext)
    return path
