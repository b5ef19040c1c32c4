import os
import sys
from os.path import abspath, dirname
from logging.config import fileConfig
from dotenv import load_dotenv
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

# Make the project root importable before pulling in the models
sys.path.insert(0, dirname(dirname(abspath(__file__))))

import models  # noqa: F401  registers the tables on Base.metadata
from database import Base, SQLALCHEMY_DATABASE_URL

load_dotenv()   # reads .env

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# configparser does interpolation with '%' which breaks when passwords are
# URL-encoded and contain percent-escapes. Escape percent signs so config
# receives a literal percent (%%) and avoids ValueError: invalid interpolation.
safe_url = SQLALCHEMY_DATABASE_URL.replace('%', '%%')
config.set_main_option("sqlalchemy.url", safe_url)


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL
    and not an Engine. Calls to context.execute() here emit the given
    string to the script output.

    """
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
    """Run migrations in 'online' mode.

    In this scenario we need to create an Engine
    and associate a connection with the context.

    """
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
