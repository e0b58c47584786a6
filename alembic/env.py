"""
Migration runner for the authcore schema.

The target database is ``sqlalchemy.url`` when the Alembic config sets one
(an alembic.ini or a programmatic ``Config``), otherwise authcore's
DATABASE_URL setting. SQLite gets batch mode so ALTERs are emitted as
table copies.
"""

import logging
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

os.environ.setdefault("APP_ENV", "dev")
import authcore.models  # noqa: E402  (registers every table on Base.metadata)
from authcore.core.config import get_settings  # noqa: E402

alembic_cfg = context.config
logger = logging.getLogger("alembic.env")

if alembic_cfg.config_file_name and alembic_cfg.file_config.has_section("loggers"):
    fileConfig(alembic_cfg.config_file_name)


def database_url() -> str:
    return alembic_cfg.get_main_option("sqlalchemy.url") or get_settings().DATABASE_URL


def _configure(url: str, **kwargs) -> None:
    context.configure(
        target_metadata=authcore.models.Base.metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def migrate_offline(url: str) -> None:
    """Emit the migration SQL to stdout instead of executing it."""
    _configure(url, url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def migrate_online(url: str) -> None:
    engine = create_engine(url, poolclass=NullPool)
    try:
        with engine.connect() as connection:
            _configure(url, connection=connection)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


_url = database_url()
# Credentials sit before the last '@'; only the host part is logged.
if context.is_offline_mode():
    logger.info("Generating migration SQL for %s", _url.split("@")[-1])
    migrate_offline(_url)
else:
    logger.info("Migrating %s", _url.split("@")[-1])
    migrate_online(_url)
