"""
ffpkg — CLI entrypoint.

Usage:
    ffpkg fetch
    ffpkg verify --tarball PATH --sig PATH
    sudo ffpkg install --cache ~/.cache/ffpkg
    ffpkg status
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from ffpkg import __version__
from ffpkg.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="ffpkg")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to config.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """ffpkg — fetch, verify and install the latest release build."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get("FFPKG_LOG_FILE"),
        log_file_level=os.environ.get("FFPKG_LOG_FILE_LEVEL"),
    )


def _settings(ctx: click.Context, as_json: bool = False):
    """Load settings or exit with the config error."""
    from ffpkg.core.config.loader import ConfigError, load_settings

    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e), as_json)


def _fail(message: str, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps({"ok": False, "error": message}, indent=2))
    else:
        click.secho(f"❌ {message}", fg="red")
    sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fetch(ctx: click.Context, as_json: bool) -> None:
    """Download and verify the latest release into the cache."""
    from ffpkg.core.use_cases.fetch import run_fetch

    settings = _settings(ctx, as_json)
    result = run_fetch(settings)

    if result.error:
        _fail(f"could not fetch: {result.error}", as_json)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    assert result.release is not None and result.receipt is not None
    click.secho(
        f"✅ Fetched {result.release.name} {result.release.version}",
        fg="green",
        bold=True,
    )
    if not ctx.obj.get("quiet"):
        click.echo(f"   Artifact:    {result.artifact}")
        click.echo(f"   Signature:   {result.signature}")
        click.echo(f"   Key:         {result.receipt.key_fingerprint}")
        click.echo(f"   State:       {result.state_path}")
        click.echo()
        click.echo(f"   Next: sudo ffpkg install --cache {result.cache_dir}")


@cli.command()
@click.option(
    "--tarball",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the release tarball.",
)
@click.option(
    "--sig",
    "signature",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the detached .asc signature.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify(ctx: click.Context, tarball: Path, signature: Path, as_json: bool) -> None:
    """Verify a tarball against its detached signature."""
    from ffpkg.core.use_cases.verify import run_verify

    settings = _settings(ctx, as_json)
    result = run_verify(settings, tarball, signature)

    if result.error:
        _fail(f"verification failed: {result.error}", as_json)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    assert result.receipt is not None
    click.secho(f"✅ Good signature on {tarball.name}", fg="green", bold=True)
    click.echo(f"   Key: {result.receipt.key_fingerprint}")


@cli.command()
@click.option(
    "--cache",
    "cache_dir",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="User cache directory written by 'ffpkg fetch'.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, cache_dir: Path, as_json: bool) -> None:
    """Install the verified release from CACHE into the install dir."""
    from ffpkg.core.use_cases.install import run_install

    settings = _settings(ctx, as_json)
    result = run_install(settings, cache_dir)

    if result.error:
        _fail(f"could not install: {result.error}", as_json)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    assert result.state is not None
    click.secho(
        f"✅ Installed {result.state.name} {result.state.version}",
        fg="green",
        bold=True,
    )
    if not ctx.obj.get("quiet"):
        click.echo(f"   Location: {result.install_dir} ({result.entries} entries)")
        click.echo(f"   State:    {result.state_path}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the installed and cached release."""
    from ffpkg.core.use_cases.status import get_status

    settings = _settings(ctx, as_json)
    result = get_status(settings)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        _fail(result.error, as_json)

    click.secho(f"\n📦 {result.install_dir}", fg="cyan", bold=True)
    if result.installed:
        marker = "" if result.install_present else "  (directory missing!)"
        click.echo(f"   Installed: {result.installed.name} {result.installed.version}{marker}")
        click.echo(f"   Key:       {result.installed.verified.key_fingerprint}")
    else:
        click.echo("   Installed: —")

    if result.cached:
        click.echo(f"   Fetched:   {result.cached.name} {result.cached.version}")
    else:
        click.echo("   Fetched:   —")

    if result.update_pending:
        click.echo()
        click.secho(f"   ⬆️  Update ready: sudo ffpkg install --cache {result.cache_dir}", fg="yellow")

    click.echo()


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
