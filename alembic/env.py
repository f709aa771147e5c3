"""Alembic environment: migrations for the gitops_db schema."""

from logging.config import fileConfig

from alembic import context

from gitops_db.infrastructure.postgres.config import DatabaseSettings
from gitops_db.infrastructure.postgres.database import Base, create_db_engine
from gitops_db.infrastructure.postgres import models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    """`-x url=...` or alembic.ini win over POSTGRES_* settings."""
    url = context.get_x_argument(as_dictionary=True).get("url") or config.get_main_option("sqlalchemy.url")
    return url or DatabaseSettings().database_url


def run_migrations_offline() -> None:
    """Emit SQL without a live connection."""
    url = _database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run against a live database with the same engine setup the query layer uses."""
    engine = create_db_engine(_database_url())

    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                # SQLite cannot ALTER most constraints in place
                render_as_batch=connection.dialect.name == "sqlite",
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
