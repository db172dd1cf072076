"""Rendering of a single document or page.

The Renderer evaluates templating in the body, converts the result with the
item's converter and then wraps it in its layout chain. Each layout applied
to an item is recorded as a dependency of that item, so editing a layout
regenerates everything that uses it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .utils import deep_merge

if TYPE_CHECKING:
    from .content import Layout
    from .site import Site

logger = logging.getLogger(__name__)


class Renderer:
    """Renders one item against a site payload.

    Attributes:
        site: The Site being built.
        document: Document or Page to render.
        payload: Site-wide payload; copied per item before mutation.
    """

    def __init__(self, site: Site, document: Any, site_payload: dict[str, Any]):
        self.site = site
        self.document = document
        self.payload = dict(site_payload)

    def run(self) -> str:
        """Render the item and return its output.

        Sets ``document.output`` as a side effect.
        """
        self.payload["page"] = self.document
        self.payload["layout"] = {}
        self.payload["content"] = ""
        self.payload["paginator"] = self.document.data.get("paginator")
        self.document.trigger_hooks("pre_render", self.payload)
        output = self.render_document()
        self.document.output = output
        return output

    def render_document(self) -> str:
        output = self.document.content
        if self.document.render_with_templates:
            output = self.site.templates.render(output, self.payload, self.document.path)
        output = self.convert(output)
        self.payload["content"] = output
        if self.document.layout_name:
            output = self.place_in_layouts(output)
        return output

    def convert(self, content: str) -> str:
        """Convert ``content`` with the item's converter, memoized per site cache."""
        converter = self.document.converter
        return self.site.cache.getset(
            "converters",
            (type(converter).__name__, content),
            lambda: converter.convert(content),
        )

    def place_in_layouts(self, content: str) -> str:
        """Wrap ``content`` in the item's layout, then in each parent layout.

        A layout chain that loops back on itself stops at the first repeat.
        """
        name = self.document.layout_name
        layout = self.site.layouts.get(name)
        if layout is None:
            if self.document.layout_is_explicit:
                logger.warning(
                    "Layout '%s' requested in %s does not exist.",
                    name,
                    self.document.relative_path,
                )
            return content
        output = content
        used: set[str] = set()
        while layout is not None and layout.name not in used:
            used.add(layout.name)
            output = self.render_layout(output, layout)
            self.add_regenerator_dependency(layout)
            layout = self.site.layouts.get(layout.parent) if layout.parent else None
        return output

    def render_layout(self, content: str, layout: Layout) -> str:
        self.payload["content"] = content
        self.payload["layout"] = deep_merge(layout.data, self.payload["layout"])
        return self.site.templates.render(layout.content, self.payload, layout.path)

    def add_regenerator_dependency(self, layout: Layout) -> None:
        if self.document.path is None or not self.document.write_enabled:
            return
        self.site.regenerator.add_dependency(self.document.path, layout.path)
