"""
Script to run the periodic sync of the current date
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.logging import setup_logging
from ingestion.scheduler import SyncScheduler

logger = logging.getLogger("scripts.run_scheduler")


async def run_forever():
    scheduler = SyncScheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


if __name__ == "__main__":
    setup_logging()
    try:
        asyncio.run(run_forever())
    except KeyboardInterrupt:
        logger.info("Scheduler interrupted, exiting")
