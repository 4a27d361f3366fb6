"""Create the validation evidence table in the compliance schema.

This script never drops anything; every migration is written with
IF NOT EXISTS / OR REPLACE so it can be re-run safely.
"""

import asyncio
from pathlib import Path

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import get_settings
from app.core.logging import setup_logging

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "db" / "migrations"


def _extract_statements(sql: str) -> list[str]:
    """Split SQL on ';' and strip comment-only chunks, returning executable statements."""
    statements = []
    for chunk in sql.split(";"):
        sql_lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
        stmt = "\n".join(sql_lines).strip()
        if stmt:
            statements.append(stmt)
    return statements


async def setup() -> None:
    """Apply every migration in db/migrations in file-name order."""
    # DDL requires the admin connection (CREATE SCHEMA, CREATE RULE).
    engine = create_async_engine(get_settings().database.admin_async_url)

    # One transaction per file so a failure in one file does not roll back
    # objects created by an earlier file.
    for migration_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
        logger.info("Running migration", migration=migration_file.name)
        sql = migration_file.read_text(encoding="utf-8")
        async with engine.begin() as conn:
            for statement in _extract_statements(sql):
                try:
                    await conn.execute(text("SAVEPOINT _migration_stmt"))
                    await conn.execute(text(statement))
                    await conn.execute(text("RELEASE SAVEPOINT _migration_stmt"))
                except DBAPIError as e:
                    await conn.execute(text("ROLLBACK TO SAVEPOINT _migration_stmt"))
                    logger.warning("Statement skipped", migration=migration_file.name, error=str(e))

    await engine.dispose()
    logger.info("Database setup complete")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(setup())
