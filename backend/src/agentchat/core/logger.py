import sys
from pathlib import Path

from loguru import logger

from ..config.config_loader import get_project_dir, load_config

SERVER_VERSION = "0.1.0"
_logger_initialized = False

DEFAULT_LOG_FORMAT = (
    "<green>{time:YYMMDD HH:mm:ss}</green>[{version}][<light-blue>{extra[tag]}</light-blue>]"
    "-<level>{level}</level>-<light-green>{message}</light-green>"
)
DEFAULT_LOG_FORMAT_FILE = (
    "{time:YYYY-MM-DD HH:mm:ss} - {version} - {name} - {level} - {extra[tag]} - {message}"
)


def formatter(record):
    """Default the tag to the module name."""
    record["extra"].setdefault("tag", record["name"])
    return record["message"]


def setup_logging():
    """Configure loguru sinks (console + rotating file)."""
    global _logger_initialized

    if not _logger_initialized:
        config = load_config()
        log_config = config.get("log", {}) or {}

        log_format = log_config.get("log_format", DEFAULT_LOG_FORMAT)
        log_format_file = log_config.get("log_format_file", DEFAULT_LOG_FORMAT_FILE)
        log_format = log_format.replace("{version}", SERVER_VERSION)
        log_format_file = log_format_file.replace("{version}", SERVER_VERSION)

        log_level = log_config.get("log_level", "INFO")
        log_dir = Path(log_config.get("log_dir", "logs"))
        if not log_dir.is_absolute():
            log_dir = Path(get_project_dir()) / log_dir
        log_file = log_config.get("log_file", "agentchat.log")

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            # Fallback to /tmp if logs directory is not writable
            log_dir = Path("/tmp/logs")
            log_dir.mkdir(parents=True, exist_ok=True)

        logger.remove()

        logger.add(sys.stdout, format=log_format, level=log_level, filter=formatter)

        logger.add(
            log_dir / log_file,
            format=log_format_file,
            level=log_level,
            filter=formatter,
            rotation="10 MB",
            retention="30 days",
            compression=None,
            encoding="utf-8",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
        _logger_initialized = True

    return logger


def get_logger(module_name: str = None):
    """Get a logger instance bound to ``tag=module_name``."""
    if not _logger_initialized:
        setup_logging()

    if module_name:
        return logger.bind(tag=module_name)
    return logger
