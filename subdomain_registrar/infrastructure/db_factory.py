"""
Database connection factory utilities for the subdomain registrar.

Builds the PostgreSQL DSN from settings and opens the async connection pool the
store runs on. Opening the pool retries transient connection failures with
tenacity before giving up.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from subdomain_registrar.config import Settings, get_settings
from subdomain_registrar.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, OSError)),
    reraise=True,
)
async def open_async_pool(
    dsn: str,
    min_size: int = 1,
    max_size: int = 5,
    timeout: float = 5.0,
) -> AsyncConnectionPool:
    """
    Open an async connection pool and wait until it holds `min_size` connections.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Connections hand out rows as dictionaries.

    Parameters
    ----------
    dsn : str
        PostgreSQL connection string.
    min_size : int
        Minimum number of idle connections to keep.
    max_size : int
        Maximum total connections in the pool.
    timeout : float
        Seconds to wait for the initial connections.

    Returns
    -------
    AsyncConnectionPool
        An opened pool. The caller owns it and must close it.

    Raises
    ------
    psycopg.OperationalError
        If the pool cannot be filled after all retry attempts.
    """
    pool = AsyncConnectionPool(
        conninfo=dsn,
        min_size=min_size,
        max_size=max_size,
        kwargs={"row_factory": dict_row},
        open=False,
    )
    try:
        await pool.open(wait=True, timeout=timeout)
    except BaseException:
        await pool.close()
        log.warning("Connection pool failed to open", extra={"max_size": max_size})
        raise
    return pool


__all__ = [
    "build_dsn",
    "open_async_pool",
]
