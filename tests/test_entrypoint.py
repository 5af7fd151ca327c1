from zoom_booking import __main__ as entrypoint
from zoom_booking.config import settings


def test_main_serves_the_app_with_uvicorn(mocker):
    run = mocker.patch("zoom_booking.__main__.uvicorn.run")

    entrypoint.main()

    run.assert_called_once_with(
        "zoom_booking.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower()
    )
