"""Utility functions for Stheno.

String, date and path helpers shared by the reader, the content model and
the permalink builder.

Key functions:
    slugify: Convert names and titles to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract a date from a YYYY-MM-DD filename prefix.
    strip_date_prefix: Drop a YYYY-MM-DD- prefix from a filename stem.
    parse_date: Coerce front matter dates to datetime.
    deep_merge: Recursively merge two mappings.
    sanitized_path: Join a path onto a base without escaping the base.
    fingerprint: Comparable change marker for a file on disk.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})-(.*)$")


def slugify(name: str) -> str:
    """Convert a name to a lowercase, hyphen separated slug.

    Args:
        name: Filename stem or title.

    Returns:
        URL-friendly slug.

    Examples:
        >>> slugify("Hello, World!")
        'hello-world'
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", str(name))
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def strip_date_prefix(stem: str) -> str:
    """Drop a YYYY-MM-DD- prefix from a filename stem.

    Examples:
        >>> strip_date_prefix("2024-01-15-hello-world")
        'hello-world'
    """
    match = DATE_PREFIX_RE.match(stem)
    return match.group(4) if match else stem


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    match = DATE_PREFIX_RE.match(name)
    if not match:
        return None
    try:
        return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_date(value: Any) -> datetime:
    """Coerce a front matter or config date value to a naive datetime.

    YAML already turns ``2024-01-15`` into a date and ``2024-01-15 10:00``
    into a datetime; strings are accepted in ISO format.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
    raise ValueError(f"Invalid date: {value!r}")


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``.

    Nested mappings are merged key by key; any other value in ``overrides``
    replaces the value in ``base``.
    """
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def sanitized_path(base: Path, questionable: str | Path) -> Path:
    """Join ``questionable`` onto ``base`` without ever leaving ``base``.

    Leading slashes and ``..`` segments in ``questionable`` are discarded, so
    the result is always ``base`` itself or a path below it.

    Args:
        base: Absolute directory that bounds the result.
        questionable: Relative or absolute path fragment.

    Returns:
        Absolute path under ``base``.
    """
    text = str(questionable)
    if not text:
        return base
    candidate = Path(text)
    if candidate.is_absolute():
        try:
            return base / candidate.relative_to(base)
        except ValueError:
            pass
    parts = [part for part in Path(text.replace("\\", "/")).parts if part not in ("/", "..", ".")]
    return base.joinpath(*parts) if parts else base


def fingerprint(path: str | Path) -> list[int] | None:
    """Return a comparable change marker for a file, or None if missing.

    The marker is ``[mtime_ns, size]``; a list keeps it JSON friendly.
    """
    try:
        stat = os.stat(path)
    except OSError:
        return None
    return [stat.st_mtime_ns, stat.st_size]
