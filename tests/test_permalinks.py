from datetime import datetime
from pathlib import Path

from stheno import permalinks
from stheno.permalinks import KIND_DOCUMENT, KIND_PAGE, KIND_POST


def test_named_styles_pick_templates_per_kind():
    assert permalinks.template_for("date", KIND_POST) == permalinks.PERMALINK_STYLES["date"]
    assert permalinks.template_for("pretty", KIND_DOCUMENT) == "/:collection/:path/"
    assert permalinks.template_for("date", KIND_DOCUMENT) == "/:collection/:path:output_ext"
    assert permalinks.template_for("pretty", KIND_PAGE) == "/:path/:basename/"
    assert permalinks.template_for("date", KIND_PAGE) == "/:path/:basename:output_ext"
    assert permalinks.template_for("pretty", KIND_PAGE, index=True) == "/:path/"
    assert permalinks.template_for("pretty", KIND_PAGE, html=False) == "/:path/:basename:output_ext"
    assert permalinks.template_for("/blog/:title/", KIND_POST) == "/blog/:title/"


def test_build_url_collapses_empty_segments_and_prefixes_baseurl():
    values = permalinks.date_placeholders(datetime(2024, 1, 5))
    values.update({"categories": "", "title": "hello", "output_ext": ".html"})
    template = permalinks.PERMALINK_STYLES["date"]
    assert permalinks.build_url(template, values) == "/2024/01/05/hello.html"
    assert permalinks.build_url(template, values, "/blog/") == "/blog/2024/01/05/hello.html"
    assert permalinks.build_url("/:title/", values) == "/hello/"
    assert permalinks.build_url("/:unknown/:title.html", values) == "/:unknown/hello.html"


def test_date_placeholders():
    values = permalinks.date_placeholders(datetime(2024, 2, 9, 7, 5))
    assert values["year"] == "2024"
    assert values["i_month"] == "2"
    assert values["y_day"] == "040"
    assert values["short_month"] == "Feb"


def test_destination_for(tmp_path: Path):
    assert permalinks.destination_for(tmp_path, "/about/", ".html") == tmp_path / "about" / "index.html"
    assert permalinks.destination_for(tmp_path, "/about.html", ".html") == tmp_path / "about.html"
    assert permalinks.destination_for(tmp_path, "/feed", ".xml") == tmp_path / "feed.xml"
    assert permalinks.destination_for(tmp_path, "/", ".html") == tmp_path / "index.html"
