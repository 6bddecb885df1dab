import logging

from core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Configure the root logger for the API process and the Celery worker.

    basicConfig is a no-op once the root logger has handlers, so calling this
    more than once is harmless.
    """
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
