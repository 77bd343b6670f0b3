import sys
from pathlib import Path

from loguru import logger

from ctk.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"
FILE_NAME = "ctk.log"
ROTATION = "10 MB"
RETENTION = "10 days"
COMPRESSION = "zip"


def log_file_path() -> Path:
    return settings.log_dir / FILE_NAME


def setup_logging(verbose: bool = False) -> Path | None:
    """
    Routes loguru output to stderr and to a rotating `ctk.log`.

    Prompts and log lines share the terminal, so stderr only shows warnings
    unless `verbose` (or CTK_DEBUG) is set. The file keeps INFO and up.

    Returns:
        The log file path, or None when the log directory cannot be created.
    """
    debug = verbose or settings.debug
    handlers = [
        {
            "sink": sys.stderr,
            "level": "DEBUG" if debug else "WARNING",
            "format": CONSOLE_FORMAT,
        }
    ]

    path = log_file_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.configure(handlers=handlers)
        logger.warning(f"Logging to the console only, cannot create {path.parent}: {e}")
        return None

    handlers.append(
        {
            "sink": path,
            "level": "DEBUG" if debug else "INFO",
            "format": FILE_FORMAT,
            "rotation": ROTATION,
            "retention": RETENTION,
            "compression": COMPRESSION,
        }
    )
    logger.configure(handlers=handlers)
    logger.debug(f"Logging to {path}")
    return path
