from __future__ import annotations

from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from subdomain_registrar.domain.models import (
    RegistrationEntry,
    SubdomainStatus,
    TrackedTransaction,
    ZonefileBackup,
)

_ZONEFILE_PREVIEW_CHARS = 48


def _preview(zonefile: str, limit: int = _ZONEFILE_PREVIEW_CHARS) -> str:
    flat = " ".join(zonefile.split())
    return flat if len(flat) <= limit else f"{flat[: limit - 1]}…"


def build_queue_table(entries: Sequence[RegistrationEntry], domain_name: str) -> Table:
    """Pending registrations, oldest first (the order the next batch will consider them)."""
    table = Table(
        title=f"Pending registrations for {domain_name}",
        box=box.ROUNDED,
        caption=f"{len(entries)} received",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Subdomain", style="cyan", no_wrap=True)
    table.add_column("Owner", style="magenta")
    table.add_column("Seq", justify="right", style="blue")
    table.add_column("Zonefile bytes", justify="right", style="green")
    table.add_column("Received", style="yellow")

    for position, entry in enumerate(entries, start=1):
        received = entry.received_at.strftime("%Y-%m-%d %H:%M:%S") if entry.received_at else "N/A"
        table.add_row(
            str(position),
            entry.subdomain_name,
            entry.owner,
            str(entry.sequence_number),
            f"{len(entry.zonefile.encode('utf-8')):,}",
            received,
        )
    return table


def build_tracked_table(tracked: Sequence[TrackedTransaction]) -> Table:
    table = Table(title="Tracked transactions", box=box.ROUNDED, caption=f"{len(tracked)} unconfirmed")
    table.add_column("Transaction", style="cyan", no_wrap=True)
    table.add_column("Zonefile", style="dim")
    for tx in tracked:
        table.add_row(tx.tx_hash, _preview(tx.zonefile))
    return table


def build_backup_table(backups: Sequence[ZonefileBackup]) -> Table:
    table = Table(title="Recent zonefile backups", box=box.ROUNDED)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Timestamp", style="yellow")
    table.add_column("Bytes", justify="right", style="green")
    table.add_column("Zonefile", style="dim")
    for backup in backups:
        table.add_row(
            str(backup.id),
            backup.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            f"{len(backup.zonefile.encode('utf-8')):,}",
            _preview(backup.zonefile),
        )
    return table


def print_queue_report(
    domain_name: str,
    entries: Sequence[RegistrationEntry],
    tracked: Sequence[TrackedTransaction],
    backups: Sequence[ZonefileBackup] = (),
    console: Optional[Console] = None,
) -> None:
    """
    Render a snapshot of the queue, tracked transactions, and recent backups.
    """
    console = console or Console()

    if not entries and not tracked:
        console.print(f"[yellow]Nothing queued or in flight for {domain_name}.[/yellow]")
    else:
        console.print(build_queue_table(entries, domain_name))
        console.print(build_tracked_table(tracked))

    if backups:
        console.print(build_backup_table(backups))


def print_status(subdomain_name: str, status: SubdomainStatus, console: Optional[Console] = None) -> None:
    console = console or Console()
    detail = f" ({status.status_more})" if status.status_more else ""
    console.print(f"[cyan]{subdomain_name}[/cyan]: [bold]{status.status.value}[/bold]{detail}")


__all__ = [
    "build_queue_table",
    "build_tracked_table",
    "build_backup_table",
    "print_queue_report",
    "print_status",
]
