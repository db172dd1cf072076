from pathlib import Path

import pytest

from stheno.config import load_config
from stheno.errors import ReaderError
from stheno.site import Site


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def read_site(root: Path, **overrides) -> Site:
    site = Site(load_config(root, overrides))
    site.read()
    return site


def test_special_excluded_and_included_entries(tmp_path):
    src = tmp_path / "src"
    write(src / "visible.md", "---\n---\n")
    write(src / "_drafts" / "hidden.md", "---\n---\n")
    write(src / ".secret", "x")
    write(src / "notes.md~", "x")
    write(src / "#scratch.md", "x")
    write(src / "node_modules" / "pkg.js", "x")
    write(src / ".htaccess", "deny")
    write(src / "private" / "a.txt", "x")

    site = read_site(tmp_path, exclude=["node_modules", "private/*"])
    assert [page.relative_path for page in site.pages] == ["visible.md"]
    assert [f.relative_path for f in site.static_files] == [".htaccess"]


def test_destination_inside_source_is_not_read(tmp_path):
    write(tmp_path / "index.md", "---\n---\n")
    write(tmp_path / "public" / "old.html", "stale")
    site = read_site(tmp_path, source=".", destination="public")
    assert [page.relative_path for page in site.pages] == ["index.md"]
    assert site.static_files == []


def test_data_files_are_nested(tmp_path):
    data = tmp_path / "src" / "_data"
    write(data / "nav.yaml", "- home\n- about\n")
    write(data / "team" / "people.json", '{"lead": "Ada"}')
    write(data / "ignored.txt", "x")
    site = read_site(tmp_path)
    assert site.data == {"nav": ["home", "about"], "team": {"people": {"lead": "Ada"}}}


def test_invalid_data_file_raises(tmp_path):
    write(tmp_path / "src" / "_data" / "broken.json", "{nope")
    with pytest.raises(ReaderError) as excinfo:
        read_site(tmp_path)
    assert excinfo.value.source_path.name == "broken.json"


def test_layouts_are_read_by_name(tmp_path):
    layouts = tmp_path / "src" / "_layouts"
    write(layouts / "default.html", "{{ content }}")
    write(layouts / "post.html.jinja", "---\nlayout: default\n---\n<article>{{ content }}</article>")
    site = read_site(tmp_path)
    assert sorted(site.layouts) == ["default", "post"]
    assert site.layouts["post"].parent == "default"
    assert site.layouts["post"].content == "<article>{{ content }}</article>"


def test_custom_collections_dir(tmp_path):
    write(tmp_path / "src" / "content" / "_posts" / "2024-01-01-a.md", "---\n---\nA\n")
    write(tmp_path / "src" / "content" / "page.md", "---\n---\n")
    site = read_site(tmp_path, collections_dir="content")
    assert [doc.relative_path for doc in site.posts] == ["_posts/2024-01-01-a.md"]
    assert site.pages == []
