import logging
from logging.handlers import RotatingFileHandler

from .config import LOG_DIR, LOG_FILE
from .utils import ensure_dir

LOGGER_NAME = "FocusFlow"


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def setup_logger(log_dir: str = LOG_DIR, log_file: str = LOG_FILE) -> logging.Logger:
    ensure_dir(log_dir)
    logger = get_logger()
    logger.setLevel(logging.INFO)

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    return logger
