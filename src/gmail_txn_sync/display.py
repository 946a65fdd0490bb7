"""Rich-based display functions for Gmail Transaction Sync."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import CandidateTransaction, MailCredential, SyncResult, TransactionType

console = Console()


def _type_color(txn_type: TransactionType) -> str:
    return "green" if txn_type == TransactionType.CREDIT else "red"


def format_watermark(internal_date_ms: int | None) -> str:
    if internal_date_ms is None:
        return "never"
    stamp = datetime.fromtimestamp(internal_date_ms / 1000, timezone.utc)
    return stamp.strftime("%Y-%m-%d %H:%M UTC")


def display_sync_result(user_id: str, result: SyncResult, show_details: bool = False) -> None:
    """Display the counters of one sync run."""
    if not result.success:
        console.print(
            Panel(f"[bold red]Sync failed:[/bold red] {result.error}", title=f"Sync {user_id}")
        )
        return

    lines = [
        f"[bold]Processed:[/bold] {result.processed}",
        f"[bold]Added:[/bold] [green]{result.added}[/green]",
        f"[bold]Skipped:[/bold] {result.skipped}",
    ]
    if show_details and result.details:
        lines.append("")
        lines.extend(f"  - {line}" for line in result.details)
    console.print(Panel("\n".join(lines), title=f"Sync {user_id}"))


def display_sweep_results(results: dict[str, SyncResult]) -> None:
    """One row per swept user."""
    if not results:
        console.print("[dim]No eligible users to sync.[/dim]")
        return

    table = Table(title="Sweep Results")
    table.add_column("User")
    table.add_column("Status")
    table.add_column("Processed", justify="right")
    table.add_column("Added", justify="right")
    table.add_column("Skipped", justify="right")

    for user_id, result in sorted(results.items()):
        status = "[green]ok[/green]" if result.success else f"[red]{result.error}[/red]"
        table.add_row(user_id, status, str(result.processed), str(result.added), str(result.skipped))

    console.print(table)


def display_transactions(user_id: str, transactions: list[CandidateTransaction], total: int) -> None:
    """Display stored transactions, newest first."""
    table = Table(title=f"Transactions for {user_id}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Merchant")
    table.add_column("Method")
    table.add_column("Source", style="dim")

    for idx, tx in enumerate(transactions, start=1):
        color = _type_color(tx.type)
        table.add_row(
            str(idx),
            tx.date.isoformat(),
            f"[{color}]{tx.type.value}[/{color}]",
            f"[{color}]{tx.amount} {tx.currency.value}[/{color}]",
            tx.merchant,
            tx.method.value,
            tx.source,
        )

    console.print(table)
    console.print(Panel(f"Shown: {len(transactions)}  |  Total stored: {total}", title="Summary"))


def display_status(
    credentials: list[MailCredential],
    active: dict[str, bool],
    counts: dict[str, int],
    info: dict,
    ai_enabled: bool = False,
) -> None:
    """Connected users with their session, watermark and transaction count."""
    if not credentials:
        console.print("[dim]No connected Gmail accounts.[/dim]")
    else:
        table = Table(title="Connected Accounts")
        table.add_column("User")
        table.add_column("Session")
        table.add_column("Last synced")
        table.add_column("Transactions", justify="right")
        for cred in credentials:
            session = "[green]active[/green]" if active.get(cred.user_id) else "[yellow]logged out[/yellow]"
            table.add_row(
                cred.user_id,
                session,
                format_watermark(cred.last_synced_internal_date_ms),
                str(counts.get(cred.user_id, 0)),
            )
        console.print(table)

    console.print(f"[bold]Database size:[/bold] {info['db_file_size'] / 1024:.1f} KB")
    console.print(f"[bold]Transactions:[/bold] {info['transaction_count']}")
    console.print(f"[bold]Scanned messages:[/bold] {info['scanned_count']}")
    ai_state = "[green]enabled[/green]" if ai_enabled else "[dim]disabled (no GEMINI_API_KEY)[/dim]"
    console.print(f"[bold]AI fallback:[/bold] {ai_state}")
