"""
CLI status commands — cursor, recent merge logs, configuration check.

Usage:
    python -m pr_mirror.main status [--data-dir data] [--logs 5] [--json]
    python -m pr_mirror.main check-config
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import click

from ..config.settings import DEFAULT_DATA_DIR, REQUIRED_VARS, Settings, missing_vars
from ..errors import ConfigurationError, StorageError
from ..persistence.attempt_log import AttemptLogWriter
from ..persistence.cursor_store import CursorStore


@click.command("status")
@click.option("--data-dir", default=None, help="Data directory (default: $DATA_DIR or data)")
@click.option("--logs", "log_count", default=5, show_default=True, help="Number of recent merge logs to list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(data_dir: str | None, log_count: int, as_json: bool) -> None:
    """Show the cursor and the most recent merge logs."""
    root = Path(data_dir or os.environ.get("DATA_DIR") or DEFAULT_DATA_DIR)
    store = CursorStore(root / "last_pr_id")
    logs = AttemptLogWriter(root / "logs").list_logs()[:log_count]

    cursor_error = None
    try:
        cursor = store.peek()
    except StorageError as e:
        cursor = None
        cursor_error = str(e)

    recent = [
        {
            "file": p.name,
            "modified_iso": datetime.fromtimestamp(p.stat().st_mtime, timezone.utc).isoformat(),
        }
        for p in logs
    ]

    if as_json:
        click.echo(json.dumps({
            "data_dir": str(root),
            "cursor": cursor,
            "cursor_error": cursor_error,
            "recent_logs": recent,
        }, indent=2))
        return

    click.echo(f"Data dir:     {root}")
    if cursor_error:
        click.secho(f"Cursor:       unreadable — {cursor_error}", fg="red")
    elif cursor is None:
        click.secho("Cursor:       (not initialized — set START_PR_ID)", fg="yellow")
    else:
        click.echo(f"Cursor:       #{cursor}")

    click.echo("")
    if not recent:
        click.echo("No merge logs yet.")
        return
    click.echo("Recent merge logs:")
    for entry in recent:
        click.echo(f"  {entry['modified_iso'][:19]}  {entry['file']}")


@click.command("check-config")
def check_config() -> None:
    """Validate configuration without contacting GitHub."""
    missing = missing_vars()

    click.echo("\n🔧 Configuration\n")
    for name in REQUIRED_VARS:
        if name in missing:
            click.secho(f"  ❌ {name}: missing", fg="red")
        else:
            click.secho(f"  ✅ {name}", fg="green")

    if missing:
        click.echo()
        click.secho(f"Missing {len(missing)} required variable(s)", fg="red", bold=True)
        raise SystemExit(1)

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        click.echo()
        click.secho(f"Invalid configuration: {e}", fg="red", bold=True)
        raise SystemExit(1)

    click.echo()
    for key, value in settings.to_display_dict().items():
        click.echo(f"  {key:15} {value}")

    try:
        cursor = CursorStore(settings.cursor_path).peek()
    except StorageError as e:
        click.echo()
        click.secho(f"Cursor file unreadable: {e}", fg="red", bold=True)
        raise SystemExit(1)

    if cursor is None and settings.start_pr_id is None:
        click.echo()
        click.secho("No cursor file and START_PR_ID unset — first run will fail", fg="red", bold=True)
        raise SystemExit(1)

    click.echo()
    click.secho("✓ Configuration OK", fg="green")
