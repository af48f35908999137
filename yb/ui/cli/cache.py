"""
CLI commands for the download cache.
"""

from __future__ import annotations

import json

import click

from yb.ui.cli.common import data_dirs


@click.group()
def cache() -> None:
    """Download cache — inspect or empty it."""


@cache.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show where downloads are cached and how much space they use."""
    from yb.core.services.download import cache_status

    result = cache_status(data_dirs(ctx).downloads)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.secho("📦 Download cache", fg="cyan", bold=True)
    click.echo(f"   Location: {result['cache_dir']}")
    click.echo(f"   Files:    {result['files']}")
    click.echo(f"   Size:     {result['size_mb']} MB")


@cache.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Delete every cached download."""
    from yb.core.services.download import clear_cache

    directory = data_dirs(ctx).downloads
    if not yes:
        click.confirm(f"Delete all downloads in {directory}?", abort=True)
    removed = clear_cache(directory)
    click.secho(f"✅ Removed {removed} cached download(s)", fg="green")
