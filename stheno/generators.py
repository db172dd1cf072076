"""Generators for Stheno.

Generators run once per build, after reading and before rendering. They
inspect the Site and may add items to it. Each generator is a Plugin, so
its order comes from its priority and its configuration from the Site.

The built-in generators produce content that only depends on the sources,
never on the wall clock, so two builds of the same tree are identical.

Classes:
    Generator: Base class for generators.
    PaginationGenerator: Splits a collection across numbered pages.
    SitemapGenerator: Generates sitemap.xml.
    FeedGenerator: Generates an RSS 2.0 feed of the posts.
"""

from __future__ import annotations

import math
from abc import abstractmethod
from typing import TYPE_CHECKING, Any

from markupsafe import escape

from .content import GeneratedPage
from .plugins import Plugin, Priority
from .utils import extract_date_from_name

if TYPE_CHECKING:
    from .site import Site

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


class Generator(Plugin):
    """Abstract base class for generators."""

    @abstractmethod
    def generate(self, site: Site) -> None:
        """Inspect and extend ``site``.

        Args:
            site: The Site being built, already read.
        """
        ...


def _xml_page(site: Site, name: str, content: str) -> GeneratedPage:
    return GeneratedPage(
        site,
        "",
        name,
        content=content,
        data={"layout": None, "render_with_templates": False},
    )


class PaginationGenerator(Generator):
    """Splits a collection across numbered pages.

    A page opts in with front matter such as::

        paginate:
          collection: posts
          per_page: 5

    The page itself becomes page 1; pages 2..N are written to
    ``<dir>/page/<n>/``. Each one gets a ``paginator`` mapping in its data.
    """

    priority = Priority.HIGH

    def generate(self, site: Site) -> None:
        for page in list(site.pages):
            options = page.data.get("paginate")
            if not options or isinstance(page, GeneratedPage):
                continue
            if not isinstance(options, dict):
                options = {"per_page": options}
            label = str(options.get("collection", "posts"))
            collection = site.collections.get(label)
            docs = list(reversed(collection.docs)) if collection is not None else []
            per_page = max(int(options.get("per_page", 10)), 1)
            total_pages = max(math.ceil(len(docs) / per_page), 1)

            page.data["regenerate"] = True
            for number in range(1, total_pages + 1):
                target = page if number == 1 else self._numbered_page(site, page, number)
                target.data["paginator"] = {
                    "page": number,
                    "per_page": per_page,
                    "total_pages": total_pages,
                    "total_items": len(docs),
                    "documents": docs[(number - 1) * per_page : number * per_page],
                    "previous_page_path": self._page_url(page, number - 1)
                    if number > 1
                    else None,
                    "next_page_path": self._page_url(page, number + 1)
                    if number < total_pages
                    else None,
                }
                if number > 1:
                    site.pages.append(target)

    @staticmethod
    def _page_dir(page: Any, number: int) -> str:
        return "/".join(part for part in (page.dir, "page", str(number)) if part)

    def _numbered_page(self, site: Site, page: Any, number: int) -> GeneratedPage:
        data = {key: value for key, value in page.data.items() if key != "permalink"}
        return GeneratedPage(
            site,
            self._page_dir(page, number),
            f"index{page.extname}",
            content=page.content,
            data=data,
        )

    def _page_url(self, page: Any, number: int) -> str:
        if number == 1:
            return page.url
        base = page.url if page.url.endswith("/") else page.url.rsplit("/", 1)[0] + "/"
        return f"{base}page/{number}/"


class SitemapGenerator(Generator):
    """Generates sitemap.xml for search engine indexing.

    Creates a sitemap following the sitemaps.org protocol, listing every
    written page and document. Documents carry their date as ``lastmod``.

    Requires ``url`` in the configuration to generate absolute URLs.
    """

    priority = Priority.LOW
    filename = "sitemap.xml"

    def generate(self, site: Site) -> None:
        base_url = str(self.config.get("url") or "").rstrip("/")
        if not base_url:
            return

        entries: list[tuple[str, str | None]] = []
        for page in site.pages:
            if page.is_html and page.data.get("sitemap") is not False:
                entries.append((page.url, None))
        for doc in site.docs_to_write:
            if doc.is_html and doc.data.get("sitemap") is not False:
                dated = "date" in doc.data or extract_date_from_name(doc.basename)
                entries.append((doc.url, doc.date.strftime("%Y-%m-%d") if dated else None))

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for url, lastmod in sorted(entries):
            loc = escape(f"{base_url}{url}")
            if lastmod:
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        site.pages.append(_xml_page(site, self.filename, "\n".join(lines) + "\n"))


class FeedGenerator(Generator):
    """Generates an RSS 2.0 feed of the posts, newest first.

    The channel's ``lastBuildDate`` is the date of the newest post, keeping
    the output stable across builds. Requires ``url`` in the configuration.
    """

    priority = Priority.LOW
    filename = "feed.xml"

    def generate(self, site: Site) -> None:
        base_url = str(self.config.get("url") or "").rstrip("/")
        if not base_url:
            return
        title = self.config.get("title") or "Stheno Feed"
        limit = int((self.config.get("feed") or {}).get("limit", 20))
        posts = sorted(site.posts.docs, key=lambda doc: doc.sort_key, reverse=True)[:limit]

        items = []
        for post in posts:
            link = escape(f"{base_url}{post.url}")
            description = post.data.get("description") or post.title
            items.append(
                f"<item><title>{escape(post.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{escape(description)}</description>"
                f"<pubDate>{post.date.strftime(RFC822_FORMAT)}</pubDate></item>"
            )

        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape(title)}</title>",
            f"<link>{escape(base_url)}/</link>",
            f"<description>{escape(self.config.get('description') or title)}</description>",
        ]
        if posts:
            rss.append(f"<lastBuildDate>{posts[0].date.strftime(RFC822_FORMAT)}</lastBuildDate>")
        rss.extend(items)
        rss.append("</channel></rss>")
        site.pages.append(_xml_page(site, self.filename, "\n".join(rss) + "\n"))
