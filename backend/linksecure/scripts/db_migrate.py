"""Bring the database schema to the latest Alembic revision.

Databases created by ``Base.metadata.create_all`` (the app does that on
startup) have tables but no ``alembic_version``; those are stamped first so
the upgrade does not try to create tables twice.
"""
import logging
import os
import sys

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from linksecure.core.database import DATABASE_URL

logger = logging.getLogger("linksecure")

CORE_TABLES = ("users", "files", "secure_links", "link_mappings")

BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def needs_stamp(sync_url: str) -> bool:
    insp = inspect(create_engine(sync_url))
    has_alembic = insp.has_table("alembic_version")
    existing_core_tables = any(insp.has_table(t) for t in CORE_TABLES)
    logger.info("[db-migrate] has_alembic=%s existing_core_tables=%s", has_alembic, existing_core_tables)
    return existing_core_tables and not has_alembic


def main(ini_path: str | None = None):
    config = Config(ini_path or os.path.join(BACKEND_DIR, "alembic.ini"))
    config.set_main_option("script_location", os.path.join(BACKEND_DIR, "alembic"))
    if needs_stamp(DATABASE_URL.replace("+aiosqlite", "")):
        logger.info("[db-migrate] Existing tables detected without alembic_version, stamping head")
        command.stamp(config, "head")
    command.upgrade(config, "head")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        main()
    except Exception as e:
        logger.error("[db-migrate] Migration failed: %s", e)
        sys.exit(1)
