import pytest

from stheno.converters import IdentityConverter, MarkdownConverter, _generate_heading_id
from stheno.errors import ConverterConflictError
from stheno.config import load_config
from stheno.plugins import PluginRegistry, Priority
from stheno.site import Site


def test_generate_heading_id():
    assert _generate_heading_id("Hello World") == "hello-world"
    assert _generate_heading_id("What's <em>New</em>?") == "whats-new"


def test_markdown_headings_tables_and_duplicates():
    converter = MarkdownConverter({})
    html = converter.convert("# Title\n\n## Title\n\n| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert '<h1 id="title">Title</h1>' in html
    assert '<h2 id="title-1">Title</h2>' in html
    assert "<table>" in html
    assert converter.matches(".MD")
    assert not converter.matches(".html")
    assert converter.output_ext(".md") == ".html"


def test_code_blocks_are_highlighted_when_the_language_is_known():
    converter = MarkdownConverter({})
    html = converter.convert("```python\nprint('hi')\n```\n")
    assert 'class="highlight"' in html

    unknown = converter.convert("```nolang\n<tag>\n```\n")
    assert '<pre><code class="language-nolang">&lt;tag&gt;' in unknown

    plain = converter.convert("```\nx < y\n```\n")
    assert "<pre><code>x &lt; y" in plain


def test_markdown_plugins_come_from_config():
    converter = MarkdownConverter({"markdown": {"plugins": []}})
    assert "<del>" not in converter.convert("~~gone~~")
    assert "<del>gone</del>" in MarkdownConverter({}).convert("~~gone~~")


def test_identity_converter_keeps_content_and_extension():
    converter = IdentityConverter({})
    assert converter.matches(".anything")
    assert converter.output_ext(".css") == ".css"
    assert converter.convert("{raw}") == "{raw}"
    assert converter.priority == Priority.LOWEST


def test_equal_priority_converters_conflict(tmp_path):
    class OtherMarkdown(MarkdownConverter):
        pass

    registry = PluginRegistry()
    registry.register_converter(MarkdownConverter)
    registry.register_converter(OtherMarkdown)
    registry.register_converter(IdentityConverter)
    site = Site(load_config(tmp_path), registry)
    with pytest.raises(ConverterConflictError):
        site.converter_for(".md")
    assert isinstance(site.converter_for(".txt"), IdentityConverter)
