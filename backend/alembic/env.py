"""
Alembic environment for the MovPlay schema.

The URL always comes from movplay.core.config.settings.DATABASE_URL, so
migrations and the API share one source of truth (.env or environment).

Usage:
  cd backend
  alembic upgrade head                       # Apply all pending migrations
  alembic upgrade head --sql > schema.sql    # Render SQL without a database
  alembic revision --autogenerate -m "add_review_language"

The initial revision targets PostgreSQL (pgcrypto, partial indexes,
updated_at triggers). SQLite URLs get batch mode so later ALTERs still run
against local scratch databases.
"""
import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from movplay.core.config import settings
from movplay.db.models import Base  # noqa: F401 (registers every model for autogenerate)

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _configure_kwargs(url: str) -> dict:
    backend = make_url(url).get_backend_name()
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": backend == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    url = settings.DATABASE_URL
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    logger.info("Migrating %s", make_url(settings.DATABASE_URL).render_as_string(hide_password=True))
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(settings.DATABASE_URL))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
