import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from . import crud, models
from .database import engine, SessionLocal
from .routers import auth_router, account_router, admin_router, booking_router
from .booking_scheduler import run_booking_scheduler

import redis.asyncio as redis
from fastapi_limiter import FastAPILimiter
from .config import settings

logging.basicConfig(level=settings.LOG_LEVEL)

# Setup logger
logger = logging.getLogger("booking_service")


def init_db():
    """
    Creates missing tables and seeds the account pool on first run.
    """
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        crud.seed_account_pool(db, size=settings.ACCOUNT_POOL_SIZE)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logger.info("Starting Zoom booking service...")
    init_db()

    redis_client = None
    if settings.RATE_LIMIT_ENABLED:
        try:
            redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
            await FastAPILimiter.init(redis_client)
            logger.info("FastAPILimiter initialized with Redis.")
        except Exception as e:
            logger.error(f"Failed to initialize FastAPILimiter: {e}")

    # Completes finished bookings between reads
    scheduler_task = asyncio.create_task(run_booking_scheduler())

    yield  # The application is now running

    logger.info("Shutting down background tasks...")

    if redis_client is not None:
        await redis_client.close()

    scheduler_task.cancel()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        logger.info("Booking scheduler task successfully cancelled.")
    except Exception as e:
        logger.error(f"Error during booking scheduler shutdown: {e}")


app = FastAPI(
    title="Zoom Booking Service API",
    description="Hands out shared Zoom accounts for scheduled meetings.",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(auth_router.router)
app.include_router(account_router.router)
app.include_router(admin_router.router)
app.include_router(booking_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Zoom Booking Service"}
