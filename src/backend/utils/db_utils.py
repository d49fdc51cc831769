"""Database utilities for the asyncpg pool.

Provides:
- Pool factory applying per-connection timeouts
- Transaction context manager
- Retry decorator for transient connection failures
- Health check and graceful close
"""

from __future__ import annotations

import asyncio
import functools
import random

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import asyncpg

from utils.logger import logger

P = ParamSpec("P")
T = TypeVar("T")


class PoolUnavailable(Exception):
    """The pool could not be created or a connection could not be acquired in time."""


async def create_database_pool(
    dsn: str,
    *,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
    connection_timeout: float = 10.0,
) -> asyncpg.Pool:
    """Create the application's connection pool.

    Each connection gets ``statement_timeout`` and ``lock_timeout`` matching
    ``command_timeout`` so a stuck query cannot hold a chat turn forever.

    Raises:
        PoolUnavailable: If the pool cannot be created within ``connection_timeout``
    """
    timeout_ms = int(command_timeout * 1000)

    async def init_connection(conn: asyncpg.Connection) -> None:
        await conn.execute(f"SET statement_timeout = '{timeout_ms}'")
        await conn.execute(f"SET lock_timeout = '{timeout_ms}'")

    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(
                dsn=dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
                init=init_connection,
            ),
            timeout=connection_timeout,
        )
    except asyncio.TimeoutError as e:
        raise PoolUnavailable(f"Connection pool creation timed out after {connection_timeout}s") from e
    except (OSError, asyncpg.PostgresError) as e:
        raise PoolUnavailable(f"Failed to create connection pool: {e}") from e

    if pool is None:
        raise PoolUnavailable("Failed to create connection pool")
    return pool


@asynccontextmanager
async def transaction(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Run statements inside one transaction.

    Example:
        async with transaction(pool) as conn:
            await conn.execute("UPDATE messages ...")
            await conn.execute("DELETE FROM messages ...")
    """
    try:
        async with pool.acquire(timeout=timeout) as conn, conn.transaction():
            yield conn
    except asyncio.TimeoutError as e:
        raise PoolUnavailable(f"Could not acquire database connection within {timeout}s") from e


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 0.2,
    max_delay: float = 2.0,
    retryable_exceptions: tuple[type[Exception], ...] = (
        asyncpg.PostgresConnectionError,
        asyncpg.InterfaceError,
        PoolUnavailable,
    ),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry idempotent reads/deletes on transient connection failures.

    Exponential backoff with jitter. Inserts are never wrapped: a retried
    create may duplicate the row.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:  # noqa: PERF203
                    if attempt + 1 >= max_attempts:
                        logger.error(
                            f"{func.__name__} failed after {max_attempts} attempts: {e}",
                            exc_info=True,
                        )
                        raise
                    delay = min(base_delay * (2**attempt) + random.uniform(0, 0.1), max_delay)
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt + 1}/{max_attempts}), retrying in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)
            raise RuntimeError("Retry loop exited unexpectedly")

        return wrapper

    return decorator


async def check_pool_health(pool: asyncpg.Pool) -> dict[str, Any]:
    """Run ``SELECT 1`` and report pool statistics."""
    try:
        async with pool.acquire(timeout=5.0) as conn:
            is_healthy = await conn.fetchval("SELECT 1") == 1
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.warning(f"Database health check failed: {e}")
        is_healthy = False

    return {
        "healthy": is_healthy,
        "pool_size": pool.get_size(),
        "free_connections": pool.get_idle_size(),
        "used_connections": pool.get_size() - pool.get_idle_size(),
    }


async def graceful_pool_close(pool: asyncpg.Pool, timeout: float = 10.0) -> None:
    """Wait up to ``timeout`` for checked-out connections, then close the pool."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    while pool.get_size() > pool.get_idle_size():
        if loop.time() - start > timeout:
            logger.warning(
                f"Timeout waiting for connections to drain, "
                f"forcing close ({pool.get_size() - pool.get_idle_size()} active)"
            )
            break
        await asyncio.sleep(0.1)

    await pool.close()
