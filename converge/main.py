"""
converge — CLI entrypoint.

Usage:
    converge --help
    converge paths
    converge config check
    converge update
"""

from __future__ import annotations

import json
import platform
import sys
from datetime import UTC, datetime
from pathlib import Path

import click

from converge import __version__
from converge.core.observability.logging_config import setup_from_flags


@click.group()
@click.version_option(version=__version__, prog_name="converge")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--root",
    "root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="CONVERGE_ROOT",
    default=None,
    help="Configuration root (default: per-user config directory).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    root: Path | None,
) -> None:
    """converge — bring this machine in line with its configuration."""
    from converge.core.config.loader import default_root

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["root"] = root or default_root()

    setup_from_flags(debug=debug, verbose=verbose, quiet=quiet)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def paths(ctx: click.Context, as_json: bool) -> None:
    """Print the paths converge uses."""
    from converge.core.config.loader import config_path
    from converge.core.persistence.state_file import default_state_path

    root: Path = ctx.obj["root"]
    state_path = default_state_path(root)
    data = {
        "os": platform.system().lower(),
        "root": str(root),
        "config_file": str(config_path(root)),
        "state_file": str(state_path),
        "state_dir": str(state_path.parent),
    }

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"OS: {data['os']}")
    click.echo(f"Root: {data['root']}")
    click.echo(f"Configuration File: {data['config_file']}")
    click.echo(f"State File: {data['state_file']}")
    click.echo(f"State Dir: {data['state_dir']}")


@cli.command()
@click.argument("url")
@click.pass_context
def init(ctx: click.Context, url: str) -> None:
    """Initialize the configuration root by cloning URL."""
    from converge.adapters.vcs.git import ExternalGit
    from converge.core.use_cases.update import init_config_repo

    root: Path = ctx.obj["root"]
    error = init_config_repo(root, url, ExternalGit())

    if error:
        click.secho(f"❌ {error}", fg="red")
        sys.exit(1)

    click.secho(f"✅ Initialized {root} from {url}", fg="green")


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate converge.yml."""
    from converge.core.use_cases.config_check import check_config

    result = check_config(ctx.obj["root"])

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Git refresh: {result.config.git_refresh}")
        click.echo(f"   Package refresh: {result.config.package_refresh}")
        workers = result.config.max_workers or "default"
        click.echo(f"   Workers: {workers}")
        click.echo(f"   Data keys: {len(result.config.data)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)


@cli.command()
@click.option("--force", is_flag=True, help="Hard reset to upstream, discarding local changes.")
@click.option(
    "--non-interactive",
    "-y",
    "non_interactive",
    is_flag=True,
    help="Don't ask before checking for updates.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def update(ctx: click.Context, force: bool, non_interactive: bool, as_json: bool) -> None:
    """Update the configuration checkout from its remote."""
    from converge.adapters.vcs.git import ExternalGit
    from converge.core.config.loader import ConfigError, config_path, load_config
    from converge.core.persistence.state_file import default_state_path, load_state, save_state
    from converge.core.use_cases.update import update_config_repo

    root: Path = ctx.obj["root"]

    if not root.is_dir():
        click.secho(f"❌ Missing configuration directory: {root}", fg="red")
        sys.exit(1)

    try:
        cfg = load_config(config_path(root))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    now = datetime.now(UTC)
    state_path = default_state_path(root)
    run_state = load_state(state_path, cfg, now)

    def _confirm() -> bool:
        return click.confirm("Do you want to check for updates?", default=True)

    result = update_config_repo(
        root,
        ExternalGit(),
        run_state,
        cfg,
        force=force,
        confirm=None if non_interactive or as_json else _confirm,
        now=now,
    )
    save_state(run_state, state_path)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ Update failed: {result.error}", fg="red")
        sys.exit(1)

    if result.updated:
        click.secho("✅ Configuration updated", fg="green")
    else:
        click.echo(f"⊘ Not updated ({result.reason})")


# ── Register sub-command groups from converge/ui/cli/ ─────────────

from converge.ui.cli.state import state  # noqa: E402

cli.add_command(state)


if __name__ == "__main__":
    cli()
