"""
Record Store Connection Pool

Read-only PostgreSQL access for the scoring engine. Connections are handed out
from a thread-safe pool, opened as read-only autocommit sessions with a
statement timeout, and replaced by a direct connection when the pool is
exhausted or could not be created.
"""

import threading
import time
import logging
from contextlib import contextmanager
from typing import Optional, Dict, Any

import psycopg2
from psycopg2 import pool

from config import Config
from utils.config import get_database_config

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("host", "port", "database", "user", "password")


class RecordStorePool:
    """Thread-safe, read-only connection pool for the record store."""

    def __init__(
        self,
        db_config: Optional[Dict[str, Any]] = None,
        statement_timeout_ms: Optional[int] = None,
        name: str = "store"
    ):
        """
        Args:
            db_config: psycopg2 connection keywords; read from the environment when None
            statement_timeout_ms: Per-statement limit, ``Config.STORE_STATEMENT_TIMEOUT_MS`` when None
            name: Label used in log messages

        Raises:
            ValueError: If required connection settings are missing
        """
        self.name = name
        self.db_config = dict(db_config) if db_config is not None else get_database_config()
        missing = [k for k in REQUIRED_KEYS if not self.db_config.get(k)]
        if missing:
            raise ValueError(
                f"Missing database configuration for {self.name}: {missing}. "
                f"Please check your .env file."
            )
        if statement_timeout_ms is None:
            statement_timeout_ms = Config.STORE_STATEMENT_TIMEOUT_MS
        if statement_timeout_ms:
            self.db_config.setdefault("options", f"-c statement_timeout={int(statement_timeout_ms)}")

        self.pool: Optional[pool.ThreadedConnectionPool] = None
        self.pool_lock = threading.Lock()
        self.stats = {
            "checkouts": 0,
            "returns": 0,
            "pool_exhausted": 0,
            "direct_connections": 0,
            "errors": 0,
            "slowest_checkout_seconds": 0.0,
        }

    def open(self, min_connections: int = 1, max_connections: int = 8) -> bool:
        """
        Create the underlying pool.

        A store that is down at start-up is not fatal: checkouts fall back to
        direct connections until the next ``open``.

        Returns:
            bool: True if the pool exists after the call
        """
        with self.pool_lock:
            if self.pool is not None:
                return True
            try:
                self.pool = pool.ThreadedConnectionPool(min_connections, max_connections, **self.db_config)
            except psycopg2.Error as e:
                logger.error(f"Could not open {self.name} pool: {e}")
                self.stats["errors"] += 1
                return False

        logger.info(f"Opened {self.name} pool ({min_connections}-{max_connections} read-only connections)")
        return True

    def _checkout(self):
        if self.pool is not None:
            try:
                connection = self.pool.getconn()
                self.stats["checkouts"] += 1
                return connection, True
            except pool.PoolError:
                self.stats["pool_exhausted"] += 1
                logger.warning(f"{self.name} pool exhausted, opening a direct connection")
        self.stats["direct_connections"] += 1
        return psycopg2.connect(**self.db_config), False

    def _release(self, connection, pooled: bool):
        try:
            if pooled and self.pool is not None:
                self.pool.putconn(connection)
                self.stats["returns"] += 1
            else:
                connection.close()
        except (psycopg2.Error, pool.PoolError) as e:
            logger.warning(f"Could not release {self.name} connection: {e}")
            self.stats["errors"] += 1

    @contextmanager
    def connection(self):
        """
        Borrow a read-only connection.

        Example:
            >>> with get_pool().connection() as conn:
            ...     with conn.cursor() as cursor:
            ...         cursor.execute("SELECT id, name FROM stations ORDER BY order_num")
        """
        conn = None
        pooled = False
        started = time.time()
        try:
            conn, pooled = self._checkout()
            if conn.autocommit is False:
                conn.set_session(readonly=True, autocommit=True)
            waited = time.time() - started
            self.stats["slowest_checkout_seconds"] = max(self.stats["slowest_checkout_seconds"], round(waited, 3))
            yield conn
        except psycopg2.Error as e:
            self.stats["errors"] += 1
            logger.error(f"{self.name} connection error after {time.time() - started:.2f}s: {e}")
            raise
        finally:
            if conn is not None:
                self._release(conn, pooled)

    def close(self):
        with self.pool_lock:
            if self.pool is not None:
                self.pool.closeall()
                self.pool = None
                logger.info(f"Closed {self.name} pool")

    def get_stats(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        stats["pool_open"] = self.pool is not None
        return stats

    def health_check(self) -> bool:
        """True when the store answers a trivial query."""
        try:
            with self.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1")
                    return cursor.fetchone() is not None
        except psycopg2.Error as e:
            logger.error(f"{self.name} health check failed: {e}")
            return False


_store_pool: Optional[RecordStorePool] = None
_pool_lock = threading.Lock()


def get_pool() -> RecordStorePool:
    """
    Shared record store pool, created on first use.

    Raises:
        ValueError: If the record store configuration is missing
    """
    global _store_pool

    with _pool_lock:
        if _store_pool is None:
            _store_pool = RecordStorePool()
            _store_pool.open()
        return _store_pool


def close_all_pools():
    global _store_pool

    with _pool_lock:
        if _store_pool is not None:
            _store_pool.close()
            _store_pool = None


@contextmanager
def get_store_connection():
    with get_pool().connection() as conn:
        yield conn


def get_pool_stats() -> Dict[str, Dict[str, Any]]:
    if _store_pool is None:
        return {}
    return {_store_pool.name: _store_pool.get_stats()}
