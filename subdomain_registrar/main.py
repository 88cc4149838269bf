from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from subdomain_registrar.collaborators import load_collaborators
from subdomain_registrar.config import Settings, get_settings
from subdomain_registrar.errors import RegistrarError
from subdomain_registrar.infrastructure.store import PostgresStore
from subdomain_registrar.reporter import print_queue_report, print_status
from subdomain_registrar.server import SubdomainServer
from subdomain_registrar.utils.logging import configure_logging

app = typer.Typer(help="Subdomain registrar: registration queue and batch submission CLI.")

T = TypeVar("T")


def _setup() -> Settings:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    return settings


def _run(coro_factory: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine, turning registrar errors into a clean exit code."""
    try:
        return asyncio.run(coro_factory())
    except RegistrarError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _build_server(settings: Settings) -> SubdomainServer:
    if not settings.collaborators:
        typer.echo(
            "COLLABORATORS is not set; point it at a 'module:factory' returning Collaborators.",
            err=True,
        )
        raise typer.Exit(code=2)
    try:
        collaborators = load_collaborators(settings.collaborators)
    except (ImportError, ValueError) as exc:
        typer.echo(f"Could not load collaborators: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    return SubdomainServer(settings, PostgresStore.from_settings(settings), collaborators)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"domain={settings.domain_name} max_zonefile_size={settings.max_zonefile_size} "
        f"lock_timeout={settings.lock_timeout_seconds}s "
        f"collaborators={settings.collaborators or '<unset>'}"
    )


@app.command("init-db")
def init_db() -> None:
    """
    Open the database and create the registrar schema if it is absent.
    """
    settings = _setup()

    async def _init() -> None:
        store = PostgresStore.from_settings(settings)
        await store.initialize()
        await store.close()

    _run(_init)
    typer.echo(f"Schema ready in {settings.db_name}.")


@app.command()
def status(subdomain: str = typer.Argument(..., help="Subdomain name to look up.")) -> None:
    """
    Show the latest queue status for a subdomain.
    """
    settings = _setup()

    async def _status():
        store = PostgresStore.from_settings(settings)
        await store.initialize()
        try:
            return await store.get_status(subdomain)
        finally:
            await store.close()

    print_status(subdomain, _run(_status))


@app.command()
def queue(
    subdomain: str = typer.Argument(..., help="Subdomain name to register or update."),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner address."),
    sequence_number: int = typer.Option(0, "--sequence", "-n", help="Update sequence number."),
    zonefile: Path = typer.Option(
        ...,
        "--zonefile",
        "-z",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Path to the zonefile for this subdomain.",
    ),
) -> None:
    """
    Validate and queue one registration request.
    """
    settings = _setup()
    server = _build_server(settings)
    payload = zonefile.read_text(encoding="utf-8")

    async def _queue():
        async with server:
            return await server.queue_registration(subdomain, owner, sequence_number, payload)

    entry = _run(_queue)
    typer.echo(f"Queued {entry.subdomain_name} (seq={entry.sequence_number}).")


@app.command("submit-batch")
def submit_batch() -> None:
    """
    Run one batch cycle: compact queued registrations and broadcast them.
    """
    settings = _setup()
    server = _build_server(settings)

    async def _submit() -> Optional[str]:
        async with server:
            return await server.submit_batch()

    tx_hash = _run(_submit)
    typer.echo(f"Submitted transaction {tx_hash}." if tx_hash else "Nothing to submit.")


@app.command("check-zonefiles")
def check_zonefiles() -> None:
    """
    Check tracked transactions and retire the confirmed ones.
    """
    settings = _setup()
    server = _build_server(settings)

    async def _check():
        async with server:
            return await server.check_zonefiles()

    retired = _run(_check)
    typer.echo(f"Retired {len(retired)} confirmed transaction(s).")


@app.command()
def report(
    backups: int = typer.Option(
        5, "--backups", "-b", min=0, help="Number of recent zonefile backups to show."
    ),
) -> None:
    """
    Print the pending queue, tracked transactions, and recent backups.
    """
    settings = _setup()

    async def _snapshot():
        store = PostgresStore.from_settings(settings)
        await store.initialize()
        try:
            return (
                await store.list_received(),
                await store.list_tracked(),
                await store.list_backups(backups) if backups else [],
            )
        finally:
            await store.close()

    entries, tracked, recent = _run(_snapshot)
    print_queue_report(settings.domain_name, entries, tracked, recent)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
