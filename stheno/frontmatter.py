"""Front matter parsing for Stheno.

A front matter block is YAML between two ``---`` lines at the very top of a
file. Files that start with such a block are rendered; everything else is
treated as a static file unless a converter claims its extension.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from .errors import ReaderError

FRONTMATTER_RE = re.compile(r"\A---\s*\r?\n(.*?\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


def has_front_matter(path: Path) -> bool:
    """Check whether a file starts with a front matter delimiter.

    Args:
        path: Path to the file.

    Returns:
        True if the first line of the file is ``---``.

    Raises:
        ReaderError: If the file cannot be opened.
    """
    try:
        with open(path, "rb") as f:
            head = f.read(5)
    except OSError as exc:
        raise ReaderError(path, f"Could not read file: {exc}") from exc
    return head.startswith(b"---\n") or head.startswith(b"---\r\n")


def extract_frontmatter(text: str, path: Path) -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.
        path: File the content came from, used in error messages.

    Returns:
        Tuple of (front matter dict, remaining content).

    Raises:
        ReaderError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1) or "") or {}
    except yaml.YAMLError as exc:
        raise ReaderError(path, f"Invalid front matter: {exc}") from exc
    if not isinstance(data, dict):
        raise ReaderError(path, "Front matter must be a mapping")
    return data, text[match.end() :]


def read_with_frontmatter(path: Path, encoding: str = "utf-8") -> tuple[dict[str, Any], str]:
    """Read a file and split it into front matter and body.

    Raises:
        ReaderError: If the file cannot be read or decoded.
    """
    try:
        text = path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise ReaderError(path, f"Could not read file: {exc}") from exc
    return extract_frontmatter(text, path)
