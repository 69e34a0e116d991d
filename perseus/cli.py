"""Command-line interface for Perseus.

Commands:
- build: Build the site into the destination directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__


@click.group()
@click.version_option(version=__version__, prog_name="perseus")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
def cli(verbose: bool):
    """Perseus static site generator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--base-path", default=None, help="Serve the site from this sub-path")
@click.option("--no-clean", is_flag=True, help="Keep existing files in the destination")
def build(base_path: str | None, no_clean: bool):
    """Build the site into the destination directory."""
    project_root = Path.cwd()
    from .build import BuildError, build_site

    try:
        result = build_site(project_root, base_path=base_path, clean_output=not no_clean)
    except BuildError as exc:
        try:
            rel_path = exc.source_path.relative_to(project_root)
        except ValueError:
            rel_path = exc.source_path
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    click.echo(f"Built {len(result.resources)} resources into {result.output_dir}")


def main():
    """Entry point for the CLI application."""
    cli()
