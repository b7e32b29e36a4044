"""Database configuration for the back office scheduler."""
from typing import Optional
from sqlmodel import create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
import logging

from backoffice.config import SchedulerSettings

logger = logging.getLogger(__name__)


def create_db_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Create a SQLModel engine; SQLite gets thread-sharing and foreign keys enabled."""
    database_url = database_url or SchedulerSettings.from_env().database_url

    if database_url.startswith("postgresql"):
        logger.info("Using PostgreSQL database")
    else:
        logger.info(f"Using SQLite database: {database_url}")

    # Sessions are opened from worker threads during a generation run
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, echo=echo, connect_args=connect_args)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine

