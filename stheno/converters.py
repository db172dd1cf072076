"""Content converters for Stheno.

A converter claims file extensions and turns raw content into the format
layouts are applied to, usually HTML. The Site instantiates converters from
its PluginRegistry and picks the highest priority converter claiming a
document's extension.

Key classes:
- Converter: Base class for converters.
- MarkdownConverter: Markdown to HTML via mistune, with Pygments highlighting.
- IdentityConverter: Lowest priority pass-through that claims every extension.
"""

from __future__ import annotations

import re
from abc import abstractmethod

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .plugins import Plugin, Priority


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class Converter(Plugin):
    """Base class for converters.

    Subclasses list the extensions they claim in ``extensions`` (lowercase,
    with the leading dot) and implement ``convert``.
    """

    extensions: tuple[str, ...] = ()

    def matches(self, ext: str) -> bool:
        """Check if this converter claims the given extension.

        Args:
            ext: File extension including the leading dot.

        Returns:
            True if the extension is claimed.
        """
        return ext.lower() in self.extensions

    def output_ext(self, ext: str) -> str:
        """Return the extension of converted output for a source extension."""
        return ".html"

    @abstractmethod
    def convert(self, content: str) -> str:
        """Convert raw content to the intermediate format."""
        ...

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"{type(self).__name__}(priority={int(self.priority)})"


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer adding heading anchors and Pygments highlighting."""

    def __init__(self) -> None:
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        if info:
            lang = info.split()[0]
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{info.split()[0]}"' if info else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownConverter(Converter):
    """Converts Markdown to HTML.

    The mistune plugin list comes from ``markdown.plugins`` in the site
    configuration.
    """

    extensions = (".md", ".markdown", ".mkd")
    DEFAULT_PLUGINS = ("strikethrough", "footnotes", "table", "url")

    def convert(self, content: str) -> str:
        options = self.config.get("markdown") or {}
        plugins = list(options.get("plugins", self.DEFAULT_PLUGINS))
        markdown = mistune.create_markdown(renderer=_HighlightRenderer(), plugins=plugins)
        return markdown(content)


class IdentityConverter(Converter):
    """Passes content through unchanged and keeps the source extension."""

    priority = Priority.LOWEST

    def matches(self, ext: str) -> bool:
        return True

    def output_ext(self, ext: str) -> str:
        return ext

    def convert(self, content: str) -> str:
        return content
