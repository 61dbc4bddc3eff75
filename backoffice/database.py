"""Database connection and migration management."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from backoffice.config import get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

# Tables the application cannot serve requests without.
REQUIRED_TABLES = ("users", "refresh_tokens", "articles", "categories", "audit_logs")

_CREATE_MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename VARCHAR(255) PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

# Global connection pool
_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        asyncpg connection pool

    Raises:
        RuntimeError: If pool is not initialized
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Initialize the database connection pool.

    Returns:
        asyncpg connection pool
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
        )
        logger.info("database_pool_created", min_size=2, max_size=10)
        return _pool
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise


async def close_database() -> None:
    """Close the database connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


async def run_migrations(migrations_dir: Optional[Path] = None) -> list[str]:
    """Apply pending SQL migrations in filename order.

    Applied filenames are recorded in ``schema_migrations``; each file runs
    at most once, inside its own transaction together with its record.

    Returns:
        Names of the files applied by this call
    """
    pool = await get_pool()
    migrations_dir = migrations_dir or MIGRATIONS_DIR

    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return []

    migration_files = sorted(migrations_dir.glob("*.sql"))

    if not migration_files:
        logger.info("no_migrations_found")
        return []

    applied: list[str] = []
    async with pool.acquire() as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        done = {
            row["filename"]
            for row in await conn.fetch("SELECT filename FROM schema_migrations")
        }

        for migration_file in migration_files:
            if migration_file.name in done:
                continue
            try:
                async with conn.transaction():
                    await conn.execute(migration_file.read_text())
                    await conn.execute(
                        "INSERT INTO schema_migrations (filename) VALUES ($1)",
                        migration_file.name,
                    )
                logger.info("migration_applied", file=migration_file.name)
                applied.append(migration_file.name)
            except Exception as e:
                logger.error(
                    "migration_failed",
                    file=migration_file.name,
                    error=str(e),
                )
                raise

    return applied


async def missing_tables(conn) -> list[str]:
    """Return the entries of REQUIRED_TABLES that do not exist."""
    rows = await conn.fetch(
        "SELECT name FROM unnest($1::text[]) AS name WHERE to_regclass(name) IS NULL",
        list(REQUIRED_TABLES),
    )
    return [row["name"] for row in rows]


async def health_check() -> bool:
    """Check database connectivity and that the schema is in place.

    Returns:
        True if the database answers and every required table exists
    """
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            if await conn.fetchval("SELECT 1") != 1:
                return False
            missing = await missing_tables(conn)
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False

    if missing:
        logger.warning("database_schema_incomplete", missing_tables=missing)
        return False
    return True
