"""Site building entry point for Stheno.

This module ties configuration loading to a Site run and turns engine
errors into a BuildError that names the file responsible, which is what the
command line reports to the user.

Key functions:
- build_site: Load the configuration and process a Site.
- clean_site: Remove the destination, regeneration metadata and cache.
"""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import load_config
from .content import Document, Page
from .errors import SthenoError
from .plugins import PluginRegistry
from .site import Site


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}" if source_path else message)


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        site: The processed Site.
        output_dir: Directory where the site was built.
        written: Files written by this build.
    """

    site: Site
    output_dir: Path
    written: list[Path]

    @property
    def documents(self) -> list[Document]:
        return self.site.documents

    @property
    def pages(self) -> list[Page]:
        return self.site.pages


def _error_source(exc: SthenoError) -> Path | None:
    for attribute in ("source_path", "destination"):
        value = getattr(exc, attribute, None)
        if value is not None:
            return Path(value)
    return None


def build_site(
    project_root: Path,
    overrides: Mapping[str, Any] | None = None,
    registry: PluginRegistry | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        overrides: Configuration values taking precedence over stheno.yaml.
        registry: Plugin registry; the built-in one when omitted.

    Returns:
        BuildResult with the processed Site and the written files.

    Raises:
        BuildError: If configuration, reading, generation or rendering fails.
    """
    try:
        site = Site(load_config(project_root, overrides), registry)
        site.process()
    except SthenoError as exc:
        raise BuildError(_error_source(exc), str(exc), exc) from exc
    return BuildResult(site=site, output_dir=site.dest, written=list(site.written))


def clean_site(project_root: Path, overrides: Mapping[str, Any] | None = None) -> list[Path]:
    """Remove every artifact a build leaves behind.

    Returns:
        The paths that existed and were removed.
    """
    try:
        site = Site(load_config(project_root, overrides))
    except SthenoError as exc:
        raise BuildError(_error_source(exc), str(exc), exc) from exc
    removed: list[Path] = []
    for path in (site.dest, site.regenerator.metadata_file, site.in_cache_dir()):
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
        else:
            continue
        removed.append(path)
    return removed
