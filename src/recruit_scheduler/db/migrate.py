"""Schema upgrades for the scheduler tables.

``recruit-scheduler-migrate [revision]`` upgrades to ``head`` (or the given
revision) using the migration scripts shipped inside the package, against
``RECRUIT_DATABASE_URL``.
"""

import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

from recruit_scheduler.config import Settings

logger = logging.getLogger(__name__)

# Revision that creates scheduled_tasks, tasks, notifications,
# automation_rules and scheduler_logs
INITIAL_REVISION = "6f1c2a9d4b10"

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_alembic_config(database_url: str | None = None) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url or Settings().database_url)
    return cfg


def upgrade(revision: str = "head", database_url: str | None = None) -> None:
    """Upgrade the schema, adopting tables the app created on its own.

    The app runs ``create_all`` at startup, so a database may hold the
    tables without an ``alembic_version`` row. The initial revision is then
    stamped as applied before the remaining revisions run.
    """
    cfg = get_alembic_config(database_url)
    try:
        command.upgrade(cfg, revision)
    except SQLAlchemyError as e:
        if "already exists" not in str(e):
            raise
        logger.warning(
            f"Scheduler tables exist without migration history, "
            f"stamping {INITIAL_REVISION} and retrying"
        )
        command.stamp(cfg, INITIAL_REVISION)
        command.upgrade(cfg, revision)
    logger.info(f"Scheduler schema at {revision}")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    upgrade(sys.argv[1] if len(sys.argv) > 1 else "head")
