"""
CLI commands for buildpacks — list and install toolchains.

Thin wrappers over ``yb.core.services.buildpack``.
"""

from __future__ import annotations

import json
import os
import sys

import click

from yb.ui.cli.common import data_dirs, interruptible


@click.group()
def buildpacks() -> None:
    """Buildpacks — list available toolchains, install them on the host."""


@buildpacks.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_(as_json: bool) -> None:
    """List buildpack names that can appear in .yourbase.yml."""
    from yb.core.services.buildpack import names

    if as_json:
        click.echo(json.dumps(names(), indent=2))
        return
    for name in names():
        click.echo(name)


@buildpacks.command()
@click.argument("specs", nargs=-1, required=True)
@click.option(
    "--tools-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Install into this directory (default: the yb cache).",
)
@click.option(
    "--package-dir",
    type=click.Path(file_okay=False, exists=True),
    default=".",
    help="Package directory the environment refers to.",
)
@click.pass_context
def install(ctx: click.Context, specs: tuple[str, ...], tools_dir: str | None, package_dir: str) -> None:
    """Install buildpacks on the host and print their environment.

    SPECS are NAME:VERSION pairs, e.g. go:1.15.2 or node:12.19.0.
    """
    from yb.adapters.biome import LocalBiome
    from yb.core.errors import YBError
    from yb.core.models import BuildpackSpec, Environment
    from yb.core.services.buildpack import Sys
    from yb.core.services.buildpack import install as install_buildpack
    from yb.core.services.download import Downloader

    try:
        parsed = [BuildpackSpec.parse(raw) for raw in specs]
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="SPECS") from e

    dirs = data_dirs(ctx)
    bio = LocalBiome(package_dir, tools_dir=tools_dir or str(dirs.tools))
    stream = None if ctx.obj.get("quiet") else sys.stderr
    system = Sys(biome=bio, downloader=Downloader.from_data_dirs(dirs), stdout=stream, stderr=stream)

    env = Environment()
    with interruptible() as run_ctx:
        for spec in parsed:
            try:
                env = env.merge(install_buildpack(run_ctx, system, spec))
            except YBError as e:
                click.secho(f"❌ {e}", fg="red", err=True)
                sys.exit(1)
            if not ctx.obj.get("quiet"):
                click.secho(f"✅ {spec}", fg="green", err=True)

    for line in env.append_to([], default_path=os.environ.get("PATH", ""), sep=os.pathsep):
        click.echo(line)
