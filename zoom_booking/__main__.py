import uvicorn

from .config import settings


def main():
    # One worker: the date locks and the presence channel live in this process
    uvicorn.run("zoom_booking.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
