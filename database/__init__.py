"""Database module for managing connections to PostgreSQL.

This module handles:
- Database connection pool initialization
- Schema management
- Connection lifecycle
"""

import json
import logging
from typing import Optional, Dict, Any
from urllib.parse import urlparse
import backoff
import asyncpg

from .exceptions import DatabaseError, DatabaseSchemaError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_schema_manager: Optional[SchemaManager] = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Register codecs on every new pool connection."""
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )


def _get_connection_kwargs() -> Dict[str, Any]:
    """Get connection kwargs shared by every connection we open."""
    return {
        'server_settings': {
            'statement_timeout': '60000',  # 1 minute
            'application_name': 'localmart',
        }
    }


@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def create_database_if_not_exists(db_url: str) -> None:
    """Create the database if it doesn't exist.

    Args:
        db_url: Database connection URL

    Raises:
        Exception: If database creation fails after retries
    """
    parsed = urlparse(db_url)
    db_name = parsed.path.strip('/')
    if not db_name:
        return

    # Connect to the maintenance database
    base_url = parsed._replace(path='/postgres').geturl()
    logger.info(f"Connecting to postgres to create {db_name} if needed")

    conn = await asyncpg.connect(base_url, **_get_connection_kwargs())
    try:
        exists = await conn.fetchval(
            'SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = $1)',
            db_name
        )
        if not exists:
            await conn.execute(f'CREATE DATABASE "{db_name}"')
            logger.info(f"Created database {db_name}")
    finally:
        await conn.close()


@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def _create_pool(url: str) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        url,
        min_size=2,
        max_size=20,
        max_queries=10000,   # Reset connection after this many queries
        max_inactive_connection_lifetime=300.0,  # 5 minutes
        command_timeout=60.0,
        init=_init_connection,
        **_get_connection_kwargs()
    )


async def init_db(db_url: Optional[str] = None, force_recreate: bool = False) -> None:
    """Initialize the database connection pool and schema.

    Args:
        db_url: Optional database URL. If not provided, will use settings.
        force_recreate: If True, drop and recreate all tables

    Raises:
        ValueError: If database URL is not provided
        DatabaseError: If initialization fails after retries
    """
    global _pool, _schema_manager

    # Import here to avoid circular imports
    from config import settings_conf

    url = db_url or settings_conf.get('db_url')
    if not url:
        raise ValueError("Database URL not provided")

    try:
        try:
            await create_database_if_not_exists(url)
        except asyncpg.exceptions.PostgresError as e:
            # Managed databases often refuse CREATE DATABASE; the pool will fail loudly if it is really missing
            logger.warning(f"Could not ensure database exists: {e}")

        _pool = await _create_pool(url)
        _schema_manager = SchemaManager(_pool)

        if force_recreate:
            logger.info("Force recreate requested. Dropping all tables...")
            async with _pool.acquire() as conn:
                await _schema_manager.drop_tables(conn, include_version=True)

        await _schema_manager.initialize()

    except DatabaseSchemaError:
        raise
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise DatabaseError(f"Database initialization failed: {e}")


async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        The connection pool

    Raises:
        RuntimeError: If pool hasn't been initialized
    """
    if not _pool:
        await init_db()
    if not _pool:
        raise RuntimeError("Failed to initialize database pool")
    return _pool


async def close() -> None:
    """Close the database connection pool."""
    global _pool, _schema_manager

    if _pool:
        await _pool.close()
        _pool = None
        _schema_manager = None


# Export public interface
__all__ = ['init_db', 'get_pool', 'close', 'DatabaseError', 'DatabaseSchemaError']
