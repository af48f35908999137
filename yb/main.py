"""
yb — CLI entrypoint.

Usage:
    yb build [TARGET]
    yb exec -- COMMAND [ARG]...
    yb buildpacks list
    yb cache status
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from yb import __version__
from yb.core.observability.logging_config import setup_logging
from yb.ui.cli.common import data_dirs, interruptible


@click.group()
@click.version_option(version=__version__, prog_name="yb")
@click.option("--verbose", "-v", is_flag=True, help="Show installer and build progress.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to .yourbase.yml (default: search upward from the current directory).",
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    default=None,
    envvar="YB_CACHE_DIR",
    help="Root for downloads, tools and build homes.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    cache_dir: str | None,
) -> None:
    """yb — build software in hermetic, reproducible environments."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["cache_dir"] = Path(cache_dir) if cache_dir else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = None  # YB_LOG_LEVEL or WARNING

    setup_logging(level=level)


def _load(ctx: click.Context):
    from yb.core.config.loader import ConfigError, load_package

    try:
        return load_package(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def _options(ctx: click.Context, no_container: bool):
    from yb.core.services.build import BuildOptions

    quiet = ctx.obj.get("quiet", False)
    return BuildOptions(
        data_dirs=data_dirs(ctx),
        use_containers=not no_container,
        stdout=sys.stdout,
        stderr=None if quiet else sys.stderr,
    )


@cli.command()
@click.argument("target", required=False)
@click.option("--no-container", is_flag=True, help="Build on the host even if the target names a container.")
@click.pass_context
def build(ctx: click.Context, target: str | None, no_container: bool) -> None:
    """Build TARGET (default: the "default" or first target) and its dependencies."""
    from yb.core.config.loader import ConfigError
    from yb.core.errors import YBError, is_cancelled
    from yb.core.services.build import run_build

    package = _load(ctx)
    if target is None:
        default = package.default_target()
        if default is None:
            click.secho("❌ No build targets defined", fg="red", err=True)
            sys.exit(1)
        target = default.name

    with interruptible() as run_ctx:
        try:
            built = run_build(run_ctx, _options(ctx, no_container), package, target)
        except ConfigError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            sys.exit(1)
        except YBError as e:
            if is_cancelled(e):
                click.secho("⚠️  Build cancelled", fg="yellow", err=True)
                sys.exit(130)
            click.secho(f"❌ Build failed: {e}", fg="red", err=True)
            sys.exit(1)

    if not ctx.obj.get("quiet"):
        click.secho(f"✅ Built {', '.join(built)}", fg="green", err=True)


@cli.command("exec", context_settings={"ignore_unknown_options": True})
@click.option("--target", "-t", "target_name", default=None, help="Target whose environment to use.")
@click.option("--no-container", is_flag=True, help="Run on the host even if the target names a container.")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def exec_(ctx: click.Context, target_name: str | None, no_container: bool, command: tuple[str, ...]) -> None:
    """Run COMMAND with a target's buildpacks and environment."""
    from yb.adapters.biome import Invocation
    from yb.core.errors import Cancelled, ExitError, YBError
    from yb.core.services.build import setup_target

    package = _load(ctx)
    target = package.target(target_name) if target_name else package.default_target()
    if target is None:
        click.secho(f"❌ No such build target: {target_name or 'default'}", fg="red", err=True)
        sys.exit(1)

    opts = _options(ctx, no_container)
    with interruptible() as run_ctx:
        try:
            with setup_target(run_ctx, opts, package, target) as bio:
                bio.run(
                    run_ctx,
                    Invocation(
                        argv=list(command),
                        dir=target.root,
                        stdin=sys.stdin,
                        stdout=sys.stdout,
                        stderr=sys.stderr,
                    ),
                )
        except Cancelled:
            sys.exit(130)
        except ExitError as e:
            sys.exit(e.exit_code)
        except (YBError, ValueError) as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            sys.exit(1)


# ── Register command groups ─────────────────────────────────────

from yb.ui.cli.buildpacks import buildpacks  # noqa: E402
from yb.ui.cli.cache import cache  # noqa: E402

cli.add_command(buildpacks)
cli.add_command(cache)


if __name__ == "__main__":
    cli()
