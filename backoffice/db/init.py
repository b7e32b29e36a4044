"""Initialize database tables."""
from sqlmodel import SQLModel
from sqlalchemy.engine import Engine
import logging

# Registers every table on SQLModel.metadata
import backoffice.models  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine) -> None:
    """Create all tables in the database."""
    logger.info("Creating all tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("Tables created successfully.")
