from __future__ import annotations

import logging
import os
import sys

from alembic import command
from alembic.config import Config

from app.infra.db import DATABASE_URL

logger = logging.getLogger(__name__)

ALEMBIC_CONFIG = os.getenv("ALEMBIC_CONFIG", "alembic.ini")


def build_config(database_url: str | None = None) -> Config:
    config = Config(ALEMBIC_CONFIG)
    if database_url is not None:
        config.set_main_option("sqlalchemy.url", database_url)
        config.attributes["explicit_url"] = True
    return config


def run_upgrade(revision: str = "head", database_url: str | None = None) -> None:
    logger.info("upgrading %s to %s", (database_url or DATABASE_URL).rsplit("@", 1)[-1], revision)
    command.upgrade(build_config(database_url), revision)


def run_upgrade_head() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    run_upgrade(sys.argv[1] if len(sys.argv) > 1 else "head")


if __name__ == "__main__":
    run_upgrade_head()
