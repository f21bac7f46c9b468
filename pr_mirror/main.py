"""
PR Mirror — CLI Entry Point

Usage:
    python -m pr_mirror.main run [--max-cycles N]
    python -m pr_mirror.main cycle
    python -m pr_mirror.main status
    python -m pr_mirror.main check-config
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import logging
import signal
import sys
from typing import Optional

import click

from .config.settings import Settings
from .engine.cycle import SyncLoop
from .errors import ConfigurationError, StorageError
from .logging_config import setup_logging
from .mirror.executor import CommandRunner, MirrorExecutor
from .mirror.github_client import GitHubClient
from .mirror.lister import UpstreamLister
from .mirror.publisher import DownstreamPublisher
from .persistence.attempt_log import AttemptLogWriter
from .persistence.cursor_store import CursorStore
from .cli.status import check_config, status

logger = logging.getLogger(__name__)

EXIT_FATAL = 1


def build_sync_loop(
    settings: Settings,
    client: GitHubClient,
    runner: Optional[CommandRunner] = None,
) -> SyncLoop:
    """Wire the sync loop's collaborators from settings."""
    settings.logs_dir.mkdir(parents=True, exist_ok=True)

    return SyncLoop(
        cursor_store=CursorStore(settings.cursor_path, seed=settings.start_pr_id),
        lister=UpstreamLister(client, settings.upstream_owner, settings.upstream_repo),
        executor=MirrorExecutor(
            settings.merge_script,
            settings.repo_dir,
            timeout=settings.merge_timeout,
            runner=runner,
        ),
        publisher=DownstreamPublisher(
            client,
            settings.downstream_owner,
            settings.downstream_repo,
            settings.target_branch,
        ),
        attempt_logs=AttemptLogWriter(settings.logs_dir),
        target_branch=settings.target_branch,
        poll_interval=settings.poll_interval,
    )


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        click.secho(f"✗ {e}", fg="red", err=True)
        sys.exit(EXIT_FATAL)


def _fatal(e: Exception) -> None:
    logger.critical(f"Fatal: {e}")
    click.secho(f"✗ {e}", fg="red", err=True)
    sys.exit(EXIT_FATAL)


@click.group()
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR (default: $LOG_LEVEL or INFO)")
@click.option("--log-format", default=None, type=click.Choice(["text", "json"]), help="Log output format")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], log_format: Optional[str]) -> None:
    """PR Mirror — Replay merged upstream pull requests downstream."""
    setup_logging(level=log_level, format_type=log_format)
    ctx.ensure_object(dict)


@cli.command()
@click.option("--max-cycles", type=int, default=None, help="Stop after N cycles (default: run forever)")
def run(max_cycles: Optional[int]) -> None:
    """Poll upstream and mirror merged PRs until interrupted."""
    settings = _load_settings()

    with GitHubClient(settings.token, settings.api_url, settings.http_timeout) as client:
        loop = build_sync_loop(settings, client)

        def _shutdown_signal(signum, frame):
            logger.info("Shutdown requested, stopping after current cycle...")
            loop.stop()

        signal.signal(signal.SIGTERM, _shutdown_signal)

        logger.info(f"{'═' * 50}")
        logger.info(f"  Mirroring {settings.upstream_slug} → {settings.downstream_slug}")
        logger.info(f"  Branch: {settings.target_branch}")
        logger.info(f"  Poll interval: {settings.poll_interval}s")
        logger.info(f"{'═' * 50}")

        try:
            loop.run_forever(max_cycles=max_cycles)
        except (ConfigurationError, StorageError) as e:
            _fatal(e)
        except KeyboardInterrupt:
            logger.info("Shutting down...")


@cli.command()
def cycle() -> None:
    """Execute a single polling cycle (no sleep)."""
    settings = _load_settings()

    with GitHubClient(settings.token, settings.api_url, settings.http_timeout) as client:
        loop = build_sync_loop(settings, client)
        try:
            result = loop.run_cycle()
        except (ConfigurationError, StorageError) as e:
            _fatal(e)

    click.echo("")
    click.echo(f"  Cycle ID:   {result.cycle_id}")
    click.echo(f"  Cursor:     #{result.cursor_before} → #{result.cursor_after}")
    click.echo(f"  Discovered: {result.discovered}")
    click.echo(f"  Skipped:    {result.skipped}")
    click.echo(f"  Mirrored:   {result.mirrored}")
    if result.halted:
        click.secho(f"  ⚠ Halted: {result.halt_reason}", fg="yellow", bold=True)
        for error in result.errors:
            click.echo(f"    {error}")
        for path in result.log_paths[-1:]:
            click.echo(f"    Log: {path}")
    else:
        click.secho("✓ Cycle complete", fg="green")


cli.add_command(status)
cli.add_command(check_config)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
