from datetime import datetime
from pathlib import Path

import pytest

from stheno.config import load_config
from stheno.content import GeneratedPage, StaticFile
from stheno.errors import ReaderError
from stheno.frontmatter import extract_frontmatter, has_front_matter
from stheno.site import Site


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def read_site(root: Path, **overrides) -> Site:
    site = Site(load_config(root, overrides))
    site.read()
    return site


def test_frontmatter_extraction(tmp_path):
    data, body = extract_frontmatter("---\ntitle: Hi\ntags: [a, b]\n---\nBody\n", tmp_path / "x.md")
    assert data == {"title": "Hi", "tags": ["a", "b"]}
    assert body == "Body\n"
    assert extract_frontmatter("No front matter", tmp_path / "x.md") == ({}, "No front matter")
    assert extract_frontmatter("---\n---\nBody", tmp_path / "x.md") == ({}, "Body")

    with pytest.raises(ReaderError):
        extract_frontmatter("---\n- a\n- b\n---\n", tmp_path / "x.md")
    with pytest.raises(ReaderError) as excinfo:
        extract_frontmatter("---\ntitle: [unclosed\n---\n", tmp_path / "x.md")
    assert excinfo.value.source_path == tmp_path / "x.md"

    assert has_front_matter(write(tmp_path / "a.md", "---\n---\n"))
    assert not has_front_matter(write(tmp_path / "b.md", "# Plain\n"))
    with pytest.raises(ReaderError):
        has_front_matter(tmp_path / "missing.md")


def test_document_metadata(tmp_path):
    write(
        tmp_path / "src" / "_posts" / "2024-03-05-Hello-World.md",
        "---\ncategories: news tech\ntags: [a]\n---\nHi\n",
    )
    write(
        tmp_path / "src" / "_posts" / "undated.md",
        "---\ntitle: Undated\ndate: 2024-04-01 12:30:00\nslug: custom slug\n---\n",
    )
    site = read_site(tmp_path, time="2024-06-01")
    hello, undated = site.posts
    assert hello.date == datetime(2024, 3, 5)
    assert hello.title == "Hello World"
    assert hello.slug == "hello-world"
    assert hello.categories == ["news", "tech"]
    assert hello.url == "/news/tech/2024/03/05/hello-world.html"
    assert hello.relative_path == "_posts/2024-03-05-Hello-World.md"
    assert hello["tags"] == ["a"]
    assert hello.get("missing", "fallback") == "fallback"
    assert hello.get("_converter") is None

    assert undated.date == datetime(2024, 4, 1, 12, 30)
    assert undated.url == "/2024/04/01/custom-slug.html"


def test_invalid_document_date_is_a_reader_error(tmp_path):
    write(tmp_path / "src" / "_posts" / "bad.md", "---\ndate: not a date\n---\n")
    with pytest.raises(ReaderError):
        read_site(tmp_path)


def test_explicit_permalinks_and_placeholders(tmp_path):
    write(tmp_path / "src" / "_posts" / "2024-01-02-a.md", "---\npermalink: /custom/:year/:title/\n---\n")
    write(tmp_path / "src" / "docs" / "guide.md", "---\npermalink: /manual/\n---\n")
    write(tmp_path / "src" / "docs" / "index.md", "---\n---\n")
    site = read_site(tmp_path, collections={"posts": {"output": True, "permalink": "/p/:title:output_ext"}})
    assert site.posts[0].url == "/custom/2024/a/"
    assert site.posts[0].destination(site.dest) == site.dest / "custom" / "2024" / "a" / "index.html"
    pages = {page.relative_path: page for page in site.pages}
    assert pages["docs/guide.md"].url == "/manual/"
    assert pages["docs/index.md"].url == "/docs/"


def test_collection_permalink_literal(tmp_path):
    write(tmp_path / "src" / "_posts" / "2024-01-02-a.md", "---\n---\n")
    site = read_site(tmp_path, collections={"posts": {"output": True, "permalink": "/p/:title:output_ext"}})
    assert site.posts[0].url == "/p/a.html"


def test_static_files_and_generated_pages(tmp_path):
    write(tmp_path / "src" / "img" / "logo.svg", "<svg/>")
    write(tmp_path / "src" / "_posts" / "attachment.txt", "plain")
    site = read_site(tmp_path)

    logo = site.static_files[0]
    assert isinstance(logo, StaticFile)
    assert logo.url == "/img/logo.svg"
    assert logo.relative_path == "img/logo.svg"
    assert logo["name"] == "logo.svg"
    attachment = site.posts.files[0]
    assert attachment.url == "/posts/attachment.txt"
    assert attachment.relative_path == "_posts/attachment.txt"
    assert attachment.write_enabled

    written = logo.write(site.dest)
    assert written.read_text(encoding="utf-8") == "<svg/>"

    page = GeneratedPage(site, "tags", "python.html", content="x", data={"title": "Python"})
    assert page.path is None
    assert page.url == "/tags/python.html"
    assert page.title == "Python"
