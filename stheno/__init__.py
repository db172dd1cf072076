"""Stheno static site generator.

Stheno reads a source tree of Markdown and HTML files with YAML front
matter, renders them through Jinja2 layouts and writes a static site.
Collections, permalinks, pagination, feeds and incremental rebuilds are
handled by a Site object that can be processed repeatedly.

The main entry point is the CLI module; programmatic builds go through
``stheno.build.build_site`` or ``stheno.site.Site`` directly.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
