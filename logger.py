import os
import logging
from logging.handlers import RotatingFileHandler
from config import LOG_DIR, LOG_FILE, LOG_LEVEL

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    os.makedirs(LOG_DIR, exist_ok=True)
    log_path = os.path.join(LOG_DIR, LOG_FILE)

    logger = logging.getLogger(f"tickets.{name}")
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.DEBUG))

    # one rotating handler per logger, shared file
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(
            log_path,
            maxBytes=5 * 1024 * 1024,   # 5 MB
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


def log_marker(logger: logging.Logger, label: str, phase: str, detail: str = "") -> None:
    """Write a '===== LABEL PHASE: detail' line so a script run can be cut out of the log later."""
    logger.info(f"===== {label.upper()} {phase.upper()}: {detail}".rstrip())
