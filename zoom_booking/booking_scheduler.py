import asyncio
import logging
from sqlalchemy.orm import Session
from .config import settings
from .database import SessionLocal
from . import booking_service

# Get the logger
logger = logging.getLogger("booking_service")  # Use the main service logger


async def complete_finished_bookings(db: Session) -> int:
    """
    Completes every confirmed booking whose meeting has ended.
    Reads sweep on their own as well; this keeps the table current between reads.
    """
    completed = booking_service.sweep_completed(db)
    if completed:
        logger.info(f"Scheduler completed {completed} bookings.")
    return completed


async def run_booking_scheduler(poll_interval: int | None = None):
    """
    Main background loop for the scheduler.
    """
    interval = poll_interval or settings.SWEEP_INTERVAL_SECONDS
    while True:
        logger.debug("Scheduler waking up to complete finished bookings...")
        db: Session = SessionLocal()
        try:
            await complete_finished_bookings(db)
        except Exception as e:
            logger.error(f"Error in booking scheduler loop: {e}")
            db.rollback()
        finally:
            db.close()

        # Wait for the next poll interval
        await asyncio.sleep(interval)
