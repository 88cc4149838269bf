"""
Infrastructure package for the subdomain registrar.

Centralizes durable storage concerns (connection pooling, schema, queries).
Keep this layer focused on I/O and resource management, decoupled from the
intake, batch, and reconciliation logic.
"""

from subdomain_registrar.infrastructure.db_factory import build_dsn, open_async_pool
from subdomain_registrar.infrastructure.store import PostgresStore, QueueStore

__all__ = [
    "build_dsn",
    "open_async_pool",
    "PostgresStore",
    "QueueStore",
]
