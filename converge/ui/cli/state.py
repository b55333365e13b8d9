"""
CLI commands for the persisted run state.

Thin wrappers over ``converge.core.persistence.state_file``.
"""

from __future__ import annotations

import json
import sys
from datetime import UTC, datetime
from pathlib import Path

import click


def _state_path(ctx: click.Context) -> Path:
    from converge.core.persistence.state_file import default_state_path

    return default_state_path(ctx.obj["root"])


@click.group()
def state() -> None:
    """Run state — what has been done, and when."""


@state.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, as_json: bool) -> None:
    """Show recorded updates, run-once markers and hashes."""
    from converge.core.models.config import Config
    from converge.core.persistence.state_file import load_state

    path = _state_path(ctx)
    run_state = load_state(path, Config(), datetime.now(UTC))

    if as_json:
        data = {
            "path": str(path),
            "last_update": {k: v.isoformat() for k, v in run_state.last_update.items()},
            "once": {k: v.isoformat() for k, v in run_state.once.items()},
            "hashes": {k: v.model_dump(mode="json") for k, v in run_state.hashes.items()},
        }
        click.echo(json.dumps(data, indent=2))
        return

    if not path.is_file():
        click.secho(f"⚠️  No state recorded yet ({path})", fg="yellow")
        return

    click.secho(f"📋 State: {path}", fg="cyan", bold=True)

    sections = (
        ("Last updates", run_state.last_update),
        ("Run once", run_state.once),
    )
    for title, entries in sections:
        click.secho(f"   {title}: {len(entries)}", fg="white", bold=True)
        for name, when in sorted(entries.items()):
            click.echo(f"     • {name}  → {when.isoformat()}")

    click.secho(f"   Hashes: {len(run_state.hashes)}", fg="white", bold=True)
    for name, hashed in sorted(run_state.hashes.items()):
        click.echo(f"     • {name}  {hashed.hash[:12]}  → {hashed.updated.isoformat()}")

    click.echo()


@state.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation.")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Forget everything recorded; the next run redoes all checks."""
    from converge.core.persistence.state_file import clear_state

    path = _state_path(ctx)

    if not path.exists():
        click.echo("Nothing to clear.")
        return

    if not yes and not click.confirm(f"Remove {path}?", default=False):
        click.echo("Aborted.")
        sys.exit(1)

    clear_state(path)
    click.secho("✅ State cleared", fg="green")
