from pathlib import Path

from stheno.config import load_config
from stheno.regenerator import METADATA_FILENAME
from stheno.site import Site


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def prepared_site(root: Path, **overrides) -> Site:
    write(root / "src" / "about.md", "---\nlayout: none\n---\nAbout\n")
    write(root / "src" / "css" / "site.css", "body {}")
    site = Site(load_config(root, overrides))
    site.reset()
    site.read()
    return site


def test_obsolete_files_exclude_expected_outputs_and_keep_files(tmp_path):
    site = prepared_site(tmp_path, keep_files=[".git", "uploads"])
    out = tmp_path / "output"
    write(out / "about.html", "old")
    write(out / "css" / "site.css", "old")
    write(out / "css" / "old.css", "old")
    write(out / "gone" / "deep" / "page.html", "old")
    write(out / ".git" / "config", "keep")
    write(out / "uploads" / "photo.jpg", "keep")

    obsolete = site.cleaner.obsolete_files()
    assert obsolete == [out / "css" / "old.css", out / "gone"]


def test_files_in_the_way_of_new_directories_are_replaced(tmp_path):
    site = prepared_site(tmp_path, permalink="pretty")
    out = tmp_path / "output"
    write(out / "about", "a file where a directory is needed")

    assert out / "about" in site.cleaner.obsolete_files()
    site.cleanup()
    site.render()
    site.write()
    assert (out / "about" / "index.html").read_text(encoding="utf-8") == "<p>About</p>\n"


def test_cleanup_prunes_empty_dirs_and_fires_hook(tmp_path):
    site = prepared_site(tmp_path)
    out = tmp_path / "output"
    (out / "empty" / "nested").mkdir(parents=True)
    write(out / "stale.html", "x")
    seen = []
    site.hooks.register("clean", "on_obsolete", seen.append)

    removed = site.cleaner.cleanup()
    assert removed == [out / "empty", out / "stale.html"]
    assert seen == [removed]
    assert not (out / "empty").exists()
    assert out.is_dir()


def test_metadata_file_removed_on_full_builds(tmp_path):
    write(tmp_path / METADATA_FILENAME, "{}")
    site = prepared_site(tmp_path, incremental=True)
    site.cleanup()
    assert (tmp_path / METADATA_FILENAME).exists()

    full = prepared_site(tmp_path)
    full.cleanup()
    assert not (tmp_path / METADATA_FILENAME).exists()


def test_prune_empty_dirs_keeps_destination_and_kept_dirs(tmp_path):
    site = prepared_site(tmp_path, keep_files=["uploads"])
    out = tmp_path / "output"
    (out / "a" / "b").mkdir(parents=True)
    (out / "uploads").mkdir()
    write(out / "c" / "file.txt", "x")

    site.cleaner.prune_empty_dirs()
    assert not (out / "a").exists()
    assert (out / "uploads").is_dir()
    assert (out / "c" / "file.txt").exists()
    assert out.is_dir()
