import asyncio

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from utils.db_utils import (
    PoolUnavailable,
    check_pool_health,
    create_database_pool,
    graceful_pool_close,
    transaction,
    with_retry,
)


@pytest.mark.asyncio
async def test_create_database_pool_success() -> None:
    """Test successful pool creation and initialization."""
    mock_pool = AsyncMock(spec=asyncpg.Pool)

    with patch("asyncpg.create_pool", new_callable=AsyncMock) as mock_create:
        mock_create.return_value = mock_pool

        pool = await create_database_pool("postgres://dsn", command_timeout=5.0)

        assert pool == mock_pool
        mock_create.assert_called_once()

        # Verify init callback logic
        init_func = mock_create.call_args.kwargs["init"]
        mock_conn = AsyncMock()
        await init_func(mock_conn)

        # Expect SET statement_timeout and SET lock_timeout
        assert mock_conn.execute.call_count == 2
        assert mock_conn.execute.call_args_list[0][0][0] == "SET statement_timeout = '5000'"
        assert mock_conn.execute.call_args_list[1][0][0] == "SET lock_timeout = '5000'"


@pytest.mark.asyncio
async def test_create_database_pool_timeout() -> None:
    with (
        patch("asyncpg.create_pool", side_effect=asyncio.TimeoutError),
        pytest.raises(PoolUnavailable, match="timed out"),
    ):
        await create_database_pool("postgres://dsn", connection_timeout=0.1)


@pytest.mark.asyncio
async def test_create_database_pool_unreachable() -> None:
    with (
        patch("asyncpg.create_pool", new_callable=AsyncMock, side_effect=OSError("connection refused")),
        pytest.raises(PoolUnavailable, match="connection refused"),
    ):
        await create_database_pool("postgres://dsn")


@pytest.mark.asyncio
async def test_transaction_context_manager() -> None:
    mock_pool = MagicMock()
    mock_conn = AsyncMock()

    mock_conn_ctx = AsyncMock()
    mock_conn_ctx.__aenter__.return_value = mock_conn
    mock_pool.acquire.return_value = mock_conn_ctx

    # conn.transaction() is NOT async, it returns a CM.
    mock_tx_ctx = AsyncMock()
    mock_conn.transaction = MagicMock(return_value=mock_tx_ctx)

    async with transaction(mock_pool) as conn:
        assert conn == mock_conn

    mock_pool.acquire.assert_called_once_with(timeout=None)
    mock_conn.transaction.assert_called_once()
    mock_tx_ctx.__aenter__.assert_called_once()
    mock_tx_ctx.__aexit__.assert_called_once()


@pytest.mark.asyncio
async def test_transaction_acquire_timeout() -> None:
    mock_pool = MagicMock()
    mock_pool.acquire.side_effect = asyncio.TimeoutError

    with pytest.raises(PoolUnavailable, match="Could not acquire"):
        async with transaction(mock_pool, timeout=1.0):
            pass


@pytest.mark.asyncio
async def test_with_retry_success() -> None:
    """Test retry logic eventually succeeds."""
    mock_func = AsyncMock(side_effect=[asyncpg.PostgresConnectionError("Fail 1"), "Success"])

    @with_retry(max_attempts=3, base_delay=0.01)
    async def retried_func() -> str:
        return await mock_func()  # type: ignore

    result = await retried_func()
    assert result == "Success"
    assert mock_func.call_count == 2


@pytest.mark.asyncio
async def test_with_retry_exhausted() -> None:
    """Test retry logic gives up after max attempts."""
    mock_func = AsyncMock(side_effect=asyncpg.PostgresConnectionError("Persistent Fail"))

    @with_retry(max_attempts=2, base_delay=0.01)
    async def retried_func() -> None:
        await mock_func()

    with pytest.raises(asyncpg.PostgresConnectionError):
        await retried_func()

    assert mock_func.call_count == 2


@pytest.mark.asyncio
async def test_with_retry_does_not_retry_other_errors() -> None:
    mock_func = AsyncMock(side_effect=ValueError("bad input"))

    @with_retry(max_attempts=3, base_delay=0.01)
    async def retried_func() -> None:
        await mock_func()

    with pytest.raises(ValueError):
        await retried_func()

    assert mock_func.call_count == 1


@pytest.mark.asyncio
async def test_check_pool_health_healthy() -> None:
    mock_pool = MagicMock()
    mock_conn = AsyncMock()

    mock_ctx = AsyncMock()
    mock_ctx.__aenter__.return_value = mock_conn
    mock_pool.acquire.return_value = mock_ctx

    mock_conn.fetchval.return_value = 1

    mock_pool.get_size.return_value = 5
    mock_pool.get_idle_size.return_value = 3

    health = await check_pool_health(mock_pool)

    assert health == {"healthy": True, "pool_size": 5, "free_connections": 3, "used_connections": 2}


@pytest.mark.asyncio
async def test_check_pool_health_unhealthy() -> None:
    mock_pool = MagicMock()
    mock_pool.acquire.side_effect = OSError("DB Down")
    mock_pool.get_size.return_value = 0
    mock_pool.get_idle_size.return_value = 0

    health = await check_pool_health(mock_pool)

    assert health["healthy"] is False


@pytest.mark.asyncio
async def test_graceful_pool_close() -> None:
    """Test graceful shutdown waits for connections."""
    mock_pool = MagicMock()  # Use MagicMock to avoid auto-async methods
    mock_pool.close = AsyncMock()  # close IS async

    mock_pool.get_size.return_value = 5
    # First check: 2 active (5-3), second check: 0 active (5-5)
    mock_pool.get_idle_size.side_effect = [3, 5, 5]

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await graceful_pool_close(mock_pool, timeout=1.0)

        mock_sleep.assert_called()
        mock_pool.close.assert_called_once()
