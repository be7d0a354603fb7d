import os
from logging.config import fileConfig

from sqlalchemy import create_engine
from sqlalchemy import pool
from sqlalchemy.engine.url import make_url

from alembic import context

config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Model metadata for 'autogenerate' support
from actify.db.models import Base  # noqa: E402
target_metadata = Base.metadata


def _database_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection.

    ALEMBIC_TEST_USE_CREATOR=1 builds psycopg2 connections directly from the
    URL parts, bypassing SQLAlchemy's URL handling for containerised test DBs.
    """
    url = _database_url()

    if os.getenv("ALEMBIC_TEST_USE_CREATOR") == "1":
        import psycopg2

        u = make_url(url)

        def _creator():
            return psycopg2.connect(
                host=u.host,
                port=u.port or 5432,
                user=u.username,
                password=u.password,
                dbname=u.database,
            )
        connectable = create_engine("postgresql+psycopg2://", poolclass=pool.NullPool, creator=_creator)
    else:
        connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
