"""Command-line interface for Stheno.

This module defines the CLI commands using Click framework.

Commands:
- build: Build the site into the destination directory.
- clean: Remove the destination, regeneration metadata and cache.
- serve: Run development server with live reload.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s" if verbose else "%(message)s",
    )


def _report_failure(exc, project_root: Path) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.source_path is not None:
        try:
            shown = exc.source_path.relative_to(project_root)
        except ValueError:
            shown = exc.source_path
        click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="red"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="stheno")
def cli():
    """Stheno static site generator."""


@cli.command()
@click.option("--incremental", is_flag=True, default=None, help="Only rebuild what changed")
@click.option("--limit-posts", type=int, default=None, help="Only build the N newest posts")
@click.option("--baseurl", default=None, help="Serve the site from a sub-path, e.g. /blog")
@click.option("--safe", is_flag=True, default=None, help="Skip project plugins and the disk cache")
@click.option("--profile", is_flag=True, default=None, help="Log template and generator timings")
@click.option("--verbose", "-V", is_flag=True, help="Log debug output")
def build(
    incremental: bool | None,
    limit_posts: int | None,
    baseurl: str | None,
    safe: bool | None,
    profile: bool | None,
    verbose: bool,
):
    """Build the site into the destination directory."""
    _configure_logging(verbose)
    project_root = Path.cwd()
    from .build import BuildError, build_site

    overrides = {
        "incremental": incremental,
        "limit_posts": limit_posts,
        "baseurl": baseurl,
        "safe": safe,
        "profile": profile,
    }
    try:
        result = build_site(project_root, overrides)
    except BuildError as exc:
        _report_failure(exc, project_root)
        raise SystemExit(1) from None
    click.echo(f"Wrote {len(result.written)} files into {result.output_dir}")


@cli.command()
def clean():
    """Remove the built site, regeneration metadata and cache."""
    project_root = Path.cwd()
    from .build import BuildError, clean_site

    try:
        removed = clean_site(project_root)
    except BuildError as exc:
        _report_failure(exc, project_root)
        raise SystemExit(1) from None
    for path in removed:
        click.echo(f"Removed {path}")


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides stheno.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides stheno.yaml ws_port)",
)
@click.option("--verbose", "-V", is_flag=True, help="Log debug output")
def serve(port: int | None, ws_port: int | None, verbose: bool):
    """Run dev server with live reload."""
    _configure_logging(verbose)
    project_root = Path.cwd()
    from .build import BuildError
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port)
    except BuildError as exc:
        _report_failure(exc, project_root)
        raise SystemExit(1) from None
    server.start()


def main():
    """Entry point for the CLI application."""
    cli()
