from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context
from linksecure.core.database import DATABASE_URL, Base
from linksecure.models import access_grant, file, link_mapping, secure_link, user  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _sync_url() -> str:
    return DATABASE_URL.replace("+aiosqlite", "")


def run_migrations_offline():
    """Run migrations in 'offline' mode."""
    context.configure(
        url=_sync_url(), target_metadata=target_metadata, literal_binds=True, dialect_opts={"paramstyle": "named"},
        compare_type=True, compare_server_default=True
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode using a sync engine built
    from the app's DATABASE_URL (sqlite+aiosqlite becomes plain sqlite)."""
    connectable = create_engine(_sync_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
