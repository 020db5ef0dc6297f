"""Database initialization helper.

Creates the configured database when it is missing, then creates the ConceptDeck
tables. CREATE DATABASE cannot be parameterized in PostgreSQL, so the target name
is validated before it is interpolated.
"""

import asyncio
import os
import re
import sys

from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine

# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


_DB_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def _validate_database_name(db_name: str) -> str:
  """Validate a PostgreSQL database name used as an identifier."""
  if not db_name:
    raise ValueError("Target database name is empty.")

  if not _DB_NAME_PATTERN.fullmatch(db_name):
    raise ValueError("Target database name contains invalid characters (allowed: A-Z, a-z, 0-9, _).")

  return db_name


async def create_database_if_not_exists(dsn: str) -> None:
  """Create the configured database if it does not already exist."""
  url = make_url(dsn)
  target_db = _validate_database_name(url.database or "")

  # Connect to the maintenance database with the async driver.
  postgres_url = url.set(database="postgres")
  if postgres_url.drivername.startswith("postgresql") and "+asyncpg" not in postgres_url.drivername:
    postgres_url = postgres_url.set(drivername="postgresql+asyncpg")

  print(f"Connecting to postgres to check for database '{target_db}'...")
  engine = create_async_engine(postgres_url, isolation_level="AUTOCOMMIT")
  try:
    async with engine.connect() as conn:
      result = await conn.execute(text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": target_db})
      if result.scalar() == 1:
        print(f"Database '{target_db}' already exists.")
      else:
        print(f"Database '{target_db}' does not exist. Creating...")
        await conn.execute(text(f'CREATE DATABASE "{target_db}"'))
  finally:
    await engine.dispose()


async def create_tables() -> None:
  """Create every table registered on the declarative base."""
  # Import after path setup so the script works when run directly.
  import conceptdeck.schema  # noqa: F401
  from conceptdeck.core.database import Base, get_db_engine

  engine = get_db_engine()
  if engine is None:
    raise RuntimeError("CONCEPTDECK_PG_DSN is not set.")
  try:
    async with engine.begin() as conn:
      await conn.run_sync(Base.metadata.create_all)
    print("Tables created.")
  finally:
    await engine.dispose()


async def main() -> None:
  from conceptdeck.config import get_database_settings

  dsn = get_database_settings().pg_dsn
  if not dsn:
    print("Error: CONCEPTDECK_PG_DSN is not set.")
    sys.exit(1)

  await create_database_if_not_exists(dsn)
  await create_tables()


if __name__ == "__main__":
  asyncio.run(main())
