from pathlib import Path

from click.testing import CliRunner

from stheno import __version__
from stheno.cli import cli


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_project(root: Path) -> Path:
    write(root / "src" / "_layouts" / "default.html", "<body>{{ content }}</body>")
    write(root / "src" / "about.md", "---\n---\nAbout\n")
    write(root / "src" / "_posts" / "2024-01-01-one.md", "---\n---\nOne\n")
    write(root / "src" / "_posts" / "2024-01-02-two.md", "---\n---\nTwo\n")
    return root


def test_build_writes_site(monkeypatch, tmp_path):
    create_project(tmp_path)
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Wrote 3 files" in result.output
    assert (tmp_path / "output" / "about.html").exists()


def test_build_options_override_config(monkeypatch, tmp_path):
    create_project(tmp_path)
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(
        cli,
        ["build", "--baseurl", "/blog", "--limit-posts", "1", "--incremental", "--safe"],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    out = tmp_path / "output" / "blog"
    assert (out / "about.html").exists()
    assert (out / "2024" / "01" / "02" / "two.html").exists()
    assert not (out / "2024" / "01" / "01").exists()
    assert (tmp_path / ".stheno-metadata").exists()


def test_build_failure_exits_non_zero(monkeypatch, tmp_path):
    create_project(tmp_path)
    write(tmp_path / "src" / "bad.md", "---\n---\n{{ link('_posts/missing.md') }}\n")
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "src/bad.md" in result.output
    assert "_posts/missing.md" in result.output
    assert not (tmp_path / "output").exists()


def test_negative_limit_posts_fails(monkeypatch, tmp_path):
    create_project(tmp_path)
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build", "--limit-posts", "-1"])
    assert result.exit_code == 1
    assert "limit_posts" in result.output


def test_clean_removes_artifacts(monkeypatch, tmp_path):
    create_project(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["build", "--incremental"], catch_exceptions=False)
    result = runner.invoke(cli, ["clean"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Removed" in result.output
    assert not (tmp_path / "output").exists()
    assert not (tmp_path / ".stheno-metadata").exists()


def test_serve_passes_ports(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    called = {}

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            called["root"] = root
            called["port"] = http_port
            called["ws_port"] = ws_port

        def start(self):
            called["started"] = True

    monkeypatch.setattr("stheno.server.DevServer", DummyServer)
    result = CliRunner().invoke(
        cli, ["serve", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called == {"root": tmp_path, "port": 5050, "ws_port": 5051, "started": True}


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert __version__ in result.output
