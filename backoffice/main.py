"""
Main entry point for the recurring task scheduler.

Runs the generation engine once, or periodically every
SCHEDULER_INTERVAL_SECONDS.
"""

import argparse
import asyncio
import logging
from datetime import datetime
from typing import Optional

import pytz

from backoffice.config import SchedulerSettings
from backoffice.db.config import create_db_engine
from backoffice.db.init import init_db
from backoffice.errors import EngineFault
from backoffice.schemas.generation import RunResult
from backoffice.services.generation_engine import GenerationEngine
from backoffice.utils.logger import get_logger

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
scheduler_logger = get_logger("recurring-task-scheduler")


def current_time(timezone_name: str) -> datetime:
    """Wall-clock time in the scheduler timezone; its date decides what is due."""
    return datetime.now(pytz.timezone(timezone_name))


def build_engine(settings: SchedulerSettings) -> GenerationEngine:
    db_engine = create_db_engine(settings.database_url)
    init_db(db_engine)
    return GenerationEngine(db_engine, settings=settings)


def run_once(settings: SchedulerSettings, engine: Optional[GenerationEngine] = None) -> RunResult:
    """Run a single generation pass."""
    engine = engine or build_engine(settings)
    # Stored timestamps are naive local wall time
    now = current_time(settings.timezone).replace(tzinfo=None)
    result = engine.run_due_generations(now)
    logger.info(
        f"Generated {result.generated_count} task(s); "
        f"{result.deactivated_count} rule(s) ended; {len(result.errors)} error(s)"
    )
    for error in result.errors:
        scheduler_logger.warning("Recurring rule failed", rule_id=error.rule_id, error=error.message)
    return result


async def run_periodically(settings: SchedulerSettings) -> None:
    """Invoke the generation engine on a fixed cadence until cancelled."""
    engine = build_engine(settings)
    logger.info(f"Starting recurring task scheduler (every {settings.interval_seconds}s, {settings.timezone})")

    while True:
        try:
            # Keep the event loop free while a run is in progress
            await asyncio.to_thread(run_once, settings, engine)
        except EngineFault as e:
            scheduler_logger.error("Generation run failed, retrying next tick", code=e.code, error=e.message)
        await asyncio.sleep(settings.interval_seconds)


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Recurring task scheduler")
    parser.add_argument("--once", action="store_true", help="run a single generation pass and exit")
    args = parser.parse_args(argv)

    settings = SchedulerSettings.from_env()
    if args.once:
        run_once(settings)
    else:
        asyncio.run(run_periodically(settings))


if __name__ == "__main__":
    main()
