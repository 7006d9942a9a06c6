"""Alembic environment for the escrow schema (users, videos, check_ins)."""

from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig
from pathlib import Path

from dotenv import load_dotenv
from alembic import context

# Ensure project root is importable (env.py lives in ./alembic/)
BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from src.deadmansdrop.config import DEFAULT_DATABASE_URL, build_engine  # noqa: E402
from src.deadmansdrop.db.db_init import enable_sqlite_foreign_keys  # noqa: E402
from src.deadmansdrop.db.db_models import Base  # noqa: E402

load_dotenv(".env", override=False)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _get_database_url() -> str:
    """``DATABASE_URL`` first, as the application resolves it."""
    return os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url") or DEFAULT_DATABASE_URL


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _skip_empty_autogenerate(context_, revision, directives) -> None:
    # an autogenerate run with no schema change should not leave an empty revision file
    if getattr(config.cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            logger.info("No changes in the escrow schema detected.")


def _configure_options(url: str) -> dict:
    sqlite = _is_sqlite(url)
    return {
        "target_metadata": target_metadata,
        # byte counters are BIGINT; a drift to INTEGER must show up in autogenerate
        "compare_type": True,
        # SQLite reflects server defaults as text, which would show up as a change on every run
        "compare_server_default": not sqlite,
        # SQLite cannot ALTER columns in place; batch mode copies the table instead
        "render_as_batch": sqlite,
        "process_revision_directives": _skip_empty_autogenerate,
    }


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = _get_database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = _get_database_url()
    connectable = build_engine(url)
    # check_ins cascade on video delete; SQLite only honours that with the pragma
    enable_sqlite_foreign_keys(connectable)

    try:
        with connectable.connect() as connection:
            context.configure(connection=connection, **_configure_options(url))

            with context.begin_transaction():
                context.run_migrations()
    finally:
        connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
