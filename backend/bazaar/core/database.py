"""
PostgreSQL database access

This module centralizes every way of reaching the database:
- psycopg2 direct connections (all repositories use raw SQL)
- transaction() for multi-statement units of work
- SQLAlchemy engine (schema creation from bazaar.models.schema)

Repositories accept an optional ``conn``. When given, they run inside the
caller's transaction and never commit or close it; otherwise they open,
commit and close their own connection.
"""
import logging
import time
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from .config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# psycopg2 Direct Connections (for raw SQL queries)
# ============================================================================

def get_db_connection_dict():
    """
    Get a database connection with RealDictCursor (returns dictionaries)

    Returns:
        psycopg2 connection with RealDictCursor

    Example:
        conn = get_db_connection_dict()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM orders")
        results = cursor.fetchall()  # Returns list of dicts
        cursor.close()
        conn.close()
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL not configured")

    return psycopg2.connect(database_url, cursor_factory=RealDictCursor)


def get_db_connection_dict_with_retry(max_retries=None, retry_delay=None):
    """
    Get a RealDictCursor connection, retrying on connection failures

    Retries use exponential backoff. Non-connection errors fail immediately.

    Args:
        max_retries: Maximum number of connection attempts (default: settings.DB_CONNECT_RETRIES)
        retry_delay: Initial delay between retries in seconds (default: settings.DB_RETRY_DELAY)

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    max_retries = max_retries or settings.DB_CONNECT_RETRIES
    retry_delay = settings.DB_RETRY_DELAY if retry_delay is None else retry_delay

    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            return get_db_connection_dict()

        except psycopg2.OperationalError as e:
            last_error = e
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)

    logger.error(f"All {max_retries} connection attempts failed")
    raise last_error


@contextmanager
def transaction():
    """
    Unit of work: yields a connection, commits on success, rolls back on error

    Usage:
        with transaction() as conn:
            order_repo.mark_paid_if_pending(session_id, intent_id, now, conn=conn)
            product_repo.decrement_stock_if_available(product_id, qty, conn=conn)
    """
    conn = get_db_connection_dict_with_retry()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def use_connection(conn=None):
    """
    Reuse the caller's connection or open a short-lived one

    A connection opened here is committed on success and always closed.
    A borrowed connection is left for its owner to commit.
    """
    if conn is not None:
        yield conn
        return

    own = get_db_connection_dict_with_retry()
    try:
        yield own
        own.commit()
    except Exception:
        own.rollback()
        raise
    finally:
        own.close()


def ping() -> float:
    """Run SELECT 1 and return the latency in milliseconds"""
    start = time.time()
    conn = get_db_connection_dict_with_retry(max_retries=1, retry_delay=0)
    try:
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    finally:
        conn.close()
    return round((time.time() - start) * 1000, 2)


# ============================================================================
# SQLAlchemy (schema management only)
# ============================================================================

# Base for table definitions in bazaar.models
Base = declarative_base()


def get_engine(database_url: str = None):
    """Build an engine for DDL work (see scripts/migrations/init_schema.py)"""
    return create_engine(
        database_url or settings.DATABASE_URL,
        pool_pre_ping=True,
    )
