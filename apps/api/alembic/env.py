from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

from clinic_agenda.db.base import Base
# Import all models so they are registered with Base.metadata
import clinic_agenda.db.models  # noqa: F401

from clinic_agenda.core.config import settings

config = context.config

# DATABASE_URL from settings always wins over alembic.ini
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The appointment exclusion constraint exists only in migrations, so
# autogenerate output for the appointments table needs a manual review.
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without a database connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against the configured database."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
