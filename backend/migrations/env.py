"""
Alembic environment for the signal pipeline database.

DATABASE_URL comes from the environment (or .env) and is rewritten to the
psycopg2 driver; the application itself talks to the same database via
asyncpg. All pipeline models are imported so autogenerate sees them.
"""
import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context
from dotenv import load_dotenv

load_dotenv()

# backend/ on the path so `app` imports resolve when alembic runs from there
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.shared.db.base import Base
import app.modules.pipeline.models  # noqa: F401,E402

# Indexes created with raw SQL in migrations; autogenerate must not drop them
UNMANAGED_INDEXES = {"idx_post_vectors_embedding"}

config = context.config


def sync_database_url(url: str) -> str:
    """asyncpg URL -> psycopg2 URL. Migrations run on a sync driver."""
    for prefix in ("postgresql+asyncpg://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg2://" + url[len(prefix):]
    return url


database_url = os.environ.get("DATABASE_URL")
if not database_url:
    raise ValueError("DATABASE_URL environment variable is not set!")
config.set_main_option("sqlalchemy.url", sync_database_url(database_url))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "index" and name in UNMANAGED_INDEXES:
        return False
    return True


def run_migrations_offline() -> None:
    """Emit the SQL script without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
