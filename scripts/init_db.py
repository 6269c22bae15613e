"""Database initialization helper for local/dev environments.

Creates the configured database when it is missing, then creates the job and
enrichment tables. The database name cannot be a bind parameter for
``CREATE DATABASE``, so it is validated before use.
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
  """Restrict the identifier so it is safe to interpolate."""
  if not db_name:
    raise ValueError("Target database name is empty.")

  if not _DB_NAME_PATTERN.fullmatch(db_name):
    raise ValueError("Target database name contains invalid characters (allowed: A-Z, a-z, 0-9, _).")

  return db_name


def _asyncpg_url(url):  # noqa: ANN001, ANN202
  if url.drivername.startswith("postgresql") and "+asyncpg" not in url.drivername:
    return url.set(drivername="postgresql+asyncpg")
  return url


async def create_database_if_not_exists(dsn: str) -> None:
  """Create the configured database if it does not already exist."""
  url = make_url(dsn)
  target_db = _validate_database_name(url.database or "")
  postgres_url = _asyncpg_url(url.set(database="postgres"))

  print(f"Connecting to postgres to check for database '{target_db}'...")
  # CREATE DATABASE cannot run inside a transaction.
  engine = create_async_engine(postgres_url, isolation_level="AUTOCOMMIT")
  try:
    async with engine.connect() as conn:
      result = await conn.execute(text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": target_db})
      if result.scalar() == 1:
        print(f"Database '{target_db}' already exists.")
      else:
        print(f"Database '{target_db}' does not exist. Creating...")
        await conn.execute(text(f'CREATE DATABASE "{target_db}"'))
        print(f"Database '{target_db}' created successfully.")
  finally:
    await engine.dispose()


async def create_tables() -> None:
  """Create the ORM tables that do not exist yet."""
  import cvengine.schema.jobs  # noqa: F401
  from cvengine.core.database import Base, dispose_engine, get_db_engine

  engine = get_db_engine()
  if engine is None:
    raise RuntimeError("CVENGINE_PG_DSN is not set.")
  try:
    async with engine.begin() as conn:
      await conn.run_sync(Base.metadata.create_all)
    print("Tables ensured: " + ", ".join(sorted(Base.metadata.tables)))
  finally:
    await dispose_engine()


async def main() -> None:
  from cvengine.config import get_database_settings

  dsn = get_database_settings().pg_dsn
  if not dsn:
    print("Error: CVENGINE_PG_DSN is not set.")
    sys.exit(1)

  try:
    await create_database_if_not_exists(dsn)
    await create_tables()
  except Exception as e:  # noqa: BLE001
    print(f"Error initializing database: {e}")
    sys.exit(1)


if __name__ == "__main__":
  asyncio.run(main())
