"""Route uvicorn's stdlib logging into loguru."""

import logging

from loguru import logger

UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(tag=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_uvicorn_logging(level: int = logging.INFO) -> None:
    """Replace uvicorn's default handlers with an InterceptHandler."""
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False
        uvicorn_logger.setLevel(level)
