from pathlib import Path

import pytest

from stheno.config import load_config
from stheno.errors import TemplateError
from stheno.site import Site


def make_site(root: Path, **overrides) -> Site:
    return Site(load_config(root, overrides))


def test_render_uses_payload_and_includes(tmp_path):
    includes = tmp_path / "src" / "_includes"
    includes.mkdir(parents=True)
    (includes / "greeting.html").write_text("Hi {{ name }}", encoding="utf-8")
    site = make_site(tmp_path)
    rendered = site.templates.render("{% include 'greeting.html' %}!", {"name": "Ada"})
    assert rendered == "Hi Ada!"
    assert site.templates.render("{{ 'Hello World' | slugify }}", {}) == "hello-world"


def test_url_helpers_respect_baseurl(tmp_path):
    site = make_site(tmp_path, baseurl="/blog", url="https://example.com/")
    engine = site.templates
    assert engine.relative_url("about.html") == "/blog/about.html"
    assert engine.relative_url("/blog/about.html") == "/blog/about.html"
    assert engine.relative_url("http://cdn.com/lib.js") == "http://cdn.com/lib.js"
    assert engine.absolute_url("/about.html") == "https://example.com/blog/about.html"
    assert engine.render("{{ '/x.css' | relative_url }}", {}) == "/blog/x.css"

    plain = make_site(tmp_path / "plain")
    assert plain.templates.relative_url("about.html") == "/about.html"


def test_syntax_errors_report_file_and_line(tmp_path):
    site = make_site(tmp_path)
    source = tmp_path / "src" / "broken.md"
    with pytest.raises(TemplateError) as excinfo:
        site.templates.render("line one\n{% if %}\n", {}, source)
    assert excinfo.value.source_path == source
    assert excinfo.value.lineno == 2
    assert str(excinfo.value).startswith(f"{source}:2:")


def test_runtime_errors_are_wrapped(tmp_path):
    site = make_site(tmp_path, strict_variables=True)
    with pytest.raises(TemplateError) as excinfo:
        site.templates.render("{{ missing }}", {}, "page.md")
    assert "Undefined variable" in str(excinfo.value)

    lenient = make_site(tmp_path / "lenient")
    assert lenient.templates.render("[{{ missing }}]", {}) == "[]"


def test_stats_count_renders(tmp_path):
    site = make_site(tmp_path)
    site.templates.render("a", {}, "one.md")
    site.templates.render("b", {}, "one.md")
    assert site.templates.stats["one.md"]["count"] == 2
    assert "one.md" in site.templates.stats_table()
    site.templates.reset()
    assert site.templates.stats == {}
