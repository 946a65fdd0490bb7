"""CLI entry point for Gmail Transaction Sync."""

from __future__ import annotations

import time
from pathlib import Path

import click

from .auth import revoke_token, run_consent_flow
from .config import Settings, get_settings
from .constants import TRANSACTIONS_LIMIT
from .display import (
    console,
    display_status,
    display_sweep_results,
    display_sync_result,
    display_transactions,
)
from .errors import SyncError
from .export import export_transactions
from .logging_config import configure_logging
from .models import MailCredential
from .orchestrator import SyncOrchestrator
from .store import Database


def _open_db(settings: Settings) -> Database:
    return Database(settings.DATABASE_PATH)


def _make_orchestrator(settings: Settings, db: Database) -> SyncOrchestrator:
    return SyncOrchestrator.from_settings(settings, db)


@click.group()
@click.version_option(version="0.1.0", prog_name="gmail-txn-sync")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Gmail Transaction Sync - turn bank alert emails into transactions."""
    configure_logging("debug" if verbose else get_settings().LOG_LEVEL)


@cli.command()
@click.argument("user_id")
@click.option(
    "--client-secrets",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="OAuth client secrets file (default: ~/.gmail-txn-sync/credentials.json).",
)
def connect(user_id: str, client_secrets: Path | None) -> None:
    """Authorize Gmail read access for USER_ID and open a session."""
    try:
        refresh_token = run_consent_flow(client_secrets)
    except (FileNotFoundError, SyncError) as e:
        raise click.ClickException(str(e)) from e

    with _open_db(get_settings()) as db:
        credential = db.credentials.get(user_id) or MailCredential(user_id=user_id, refresh_token="")
        credential.refresh_token = refresh_token
        db.credentials.save(credential)
        db.sessions.open_session(user_id)

    console.print(f"[green]Gmail connected for {user_id}.[/green]")


@cli.command()
@click.argument("user_id")
def disconnect(user_id: str) -> None:
    """Remove USER_ID's Gmail access and end their sessions."""
    settings = get_settings()
    with _open_db(settings) as db:
        credential = db.credentials.get(user_id)
        if credential is None:
            raise click.ClickException(f"No Gmail account connected for {user_id}.")
        db.credentials.delete(user_id)
        db.sessions.revoke_all(user_id)

    if credential.has_refresh_token and not revoke_token(credential.refresh_token, settings.HTTP_TIMEOUT):
        console.print("[yellow]Could not revoke the token with Google; it was removed locally.[/yellow]")
    console.print(f"[green]Gmail disconnected for {user_id}.[/green]")


@cli.command()
@click.argument("user_id")
@click.option("--details", is_flag=True, help="List the outcome of every message.")
def sync(user_id: str, details: bool) -> None:
    """Run one incremental sync for USER_ID."""
    settings = get_settings()
    with _open_db(settings) as db, _make_orchestrator(settings, db) as orchestrator:
        result = orchestrator.sync_one(user_id)

    display_sync_result(user_id, result, show_details=details)
    if not result.success:
        raise click.exceptions.Exit(1)


@cli.command()
@click.option("--watch", is_flag=True, help="Keep running and sweep periodically.")
@click.option("--interval", default=None, type=int, help="Seconds between sweeps (default 1800).")
def sweep(watch: bool, interval: int | None) -> None:
    """Sync every connected, logged-in user."""
    settings = get_settings()
    interval = interval or settings.SWEEP_INTERVAL_SECONDS

    with _open_db(settings) as db, _make_orchestrator(settings, db) as orchestrator:
        while True:
            futures = orchestrator.sweep_all(wait=True)
            display_sweep_results({user_id: f.result() for user_id, f in futures.items()})
            if not watch:
                break
            console.print(f"[dim]Next sweep in {interval} seconds. Press Ctrl+C to stop.[/dim]")
            try:
                time.sleep(interval)
            except KeyboardInterrupt:
                console.print("[dim]Stopped.[/dim]")
                break


@cli.command()
def status() -> None:
    """Show connected accounts and database statistics."""
    settings = get_settings()
    with _open_db(settings) as db:
        credentials = db.credentials.all()
        active = {c.user_id: db.sessions.has_active_session(c.user_id) for c in credentials}
        counts = {c.user_id: db.transactions.count_for_user(c.user_id) for c in credentials}
        info = db.get_info()

    display_status(credentials, active, counts, info, ai_enabled=settings.ai_enabled)


@cli.command()
@click.argument("user_id")
@click.option("-n", "--limit", default=TRANSACTIONS_LIMIT, type=int, help="Maximum rows to show.")
def transactions(user_id: str, limit: int) -> None:
    """List USER_ID's stored transactions, newest first."""
    with _open_db(get_settings()) as db:
        rows = db.transactions.list_for_user(user_id, limit=limit)
        total = db.transactions.count_for_user(user_id)

    if not rows:
        console.print(f"[dim]No transactions stored for {user_id}.[/dim]")
        return
    display_transactions(user_id, rows, total)


@cli.command(name="export")
@click.argument("user_id")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Output format.",
)
@click.option("-o", "--output", required=True, help="Output file path.")
def export_cmd(user_id: str, fmt: str, output: str) -> None:
    """Export USER_ID's transactions to CSV or JSON."""
    with _open_db(get_settings()) as db:
        rows = db.transactions.list_for_user(user_id)

    if not rows:
        raise click.ClickException(f"No transactions stored for {user_id}. Run 'sync' first.")

    count = export_transactions(rows, format=fmt, output_path=output)
    console.print(f"Exported {count} transactions to {output}")
