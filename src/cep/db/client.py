"""Database connection helpers."""

from contextlib import contextmanager
import time
from typing import Callable, Iterator, Optional

import psycopg

from cep.config import Settings
from cep.utils.logging import get_logger


logger = get_logger(__name__)


class DatabaseUnavailableError(RuntimeError):
    """Raised when the database stays unreachable past the retry budget."""


def get_connection(settings: Optional[Settings] = None) -> psycopg.Connection:
    """Create a new database connection."""
    settings = settings or Settings()
    return psycopg.connect(settings.get_database_url())


@contextmanager
def db_cursor(settings: Optional[Settings] = None) -> Iterator[psycopg.Cursor]:
    """Yield a cursor with automatic commit/rollback."""
    conn = get_connection(settings)
    try:
        with transaction_cursor(conn) as cursor:
            yield cursor
    finally:
        conn.close()


@contextmanager
def transaction_cursor(conn: psycopg.Connection) -> Iterator[psycopg.Cursor]:
    """Yield a cursor on a shared connection; commit on success, roll back on error."""
    try:
        with conn.cursor() as cursor:
            yield cursor
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def check_connection(conn: psycopg.Connection) -> bool:
    """Return True if the connection answers a trivial query."""
    try:
        with transaction_cursor(conn) as cursor:
            cursor.execute("select 1")
            cursor.fetchone()
    except Exception as exc:
        logger.warning("db.check.failed error=%s", exc)
        return False
    return True


def wait_for_database(
    connect: Callable[[], psycopg.Connection],
    retries: int = 30,
    delay_seconds: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> psycopg.Connection:
    """Connect and ping, retrying a bounded number of times before giving up."""
    for attempt in range(1, retries + 1):
        try:
            conn = connect()
        except Exception as exc:
            logger.warning(
                "db.wait.connect_failed attempt=%s/%s error=%s", attempt, retries, exc
            )
        else:
            if check_connection(conn):
                logger.info("db.wait.ready attempt=%s", attempt)
                return conn
            conn.close()

        if attempt < retries:
            sleep(delay_seconds)

    raise DatabaseUnavailableError(f"Failed to connect to database after {retries} attempts")
