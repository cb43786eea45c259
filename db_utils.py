# db_utils.py — Postgres helpers for the SpaceCat data-access layer and scripts.

from __future__ import annotations
import logging
import time
import atexit
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

logger = logging.getLogger("db_utils")

# ---------------------------------------------------------------------
# Connection Pool Management
# ---------------------------------------------------------------------

_connection_pool = None


def get_connection_pool():
    """Get or create the global connection pool."""
    global _connection_pool
    if _connection_pool is None:
        from config import CONFIG

        if not CONFIG.database.url:
            raise RuntimeError("DATABASE_URL not set")
        try:
            _connection_pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=CONFIG.database.pool_min_size,
                maxconn=CONFIG.database.pool_max_size,
                dsn=CONFIG.database.url
            )
            atexit.register(close_connection_pool)
            logger.info("Connection pool initialized (min=%s, max=%s)",
                        CONFIG.database.pool_min_size,
                        CONFIG.database.pool_max_size)
        except Exception as e:
            logger.error("Failed to create connection pool: %s", e)
            raise
    return _connection_pool


def close_connection_pool():
    """Close all connections in the pool."""
    global _connection_pool
    if _connection_pool:
        try:
            _connection_pool.closeall()
            logger.info("Connection pool closed")
        except Exception as e:
            logger.error("Error closing connection pool: %s", e)
        finally:
            _connection_pool = None


def _conn():
    """Get connection from pool."""
    try:
        return get_connection_pool().getconn()
    except Exception as e:
        logger.error("Failed to get connection from pool: %s", e)
        raise


def _release_conn(conn):
    """Return connection to pool."""
    if conn:
        try:
            get_connection_pool().putconn(conn)
        except Exception as e:
            logger.error("Failed to return connection to pool: %s", e)


@contextmanager
def _get_db_connection():
    """Context manager that guarantees connection return and proper transaction handling"""
    conn = _conn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        _release_conn(conn)


def _log_if_slow(query: str, started: float) -> None:
    from config import CONFIG

    duration_ms = int((time.perf_counter() - started) * 1000)
    if duration_ms > CONFIG.database.slow_query_ms:
        logger.warning("Slow query (%sms): %s", duration_ms, " ".join(query.split())[:200])


# Database operation helpers with guaranteed connection return
def execute(query: str, params: Sequence[Any] = ()) -> int:
    """Execute a single statement; returns the affected row count."""
    started = time.perf_counter()
    with _get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            rowcount = cur.rowcount
    _log_if_slow(query, started)
    return rowcount


def execute_returning(query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    """Execute an INSERT/UPDATE ... RETURNING statement and return the row as a dict."""
    started = time.perf_counter()
    with _get_db_connection() as conn:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            row = cur.fetchone()
    _log_if_slow(query, started)
    return dict(row) if row else None


@contextmanager
def transaction():
    """RealDictCursor whose statements commit together or roll back together."""
    with _get_db_connection() as conn:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            yield cur


def fetch_one(query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dict"""
    started = time.perf_counter()
    with _get_db_connection() as conn:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            row = cur.fetchone()
    _log_if_slow(query, started)
    return dict(row) if row else None


def fetch_all(query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    """Fetch all rows as dicts"""
    started = time.perf_counter()
    with _get_db_connection() as conn:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
    _log_if_slow(query, started)
    return [dict(r) for r in rows]


def test_connection() -> bool:
    """Return True when the database answers a trivial query."""
    try:
        row = fetch_one("SELECT NOW() AS now")
        logger.info("Database connection OK (server time %s)", row["now"] if row else None)
        return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False
