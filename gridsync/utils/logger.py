# gridsync/utils/logger.py
# Plain-text access/error logs; observability.logger switches them to JSON at startup

import logging
import os
import traceback

from gridsync import config

os.makedirs(config.LOGS_PATH, exist_ok=True)

access_log_file = os.path.join(config.LOGS_PATH, "access.log")
error_log_file = os.path.join(config.LOGS_PATH, "error.log")

formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")


def setup_logger(name, log_file, level):
    """A helper function to set up a logger."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs in parent loggers

    # Avoid adding handlers if they already exist (e.g., during autoreload)
    if not logger.handlers:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


access_logger = setup_logger("access", access_log_file, logging.INFO)
error_logger = setup_logger("error", error_log_file, logging.ERROR)


def log_info(message):
    access_logger.info(message)


def log_request(method: str, path: str, status: int, detail: str = ""):
    """One access line per answered request: `POST /api/update -> 400 | reason`."""
    line = f"{method} {path} -> {status}"
    if detail:
        line = f"{line} | {detail}"
    access_logger.info(line)


def log_update(record, route: str = "update"):
    """One access line per appended update record."""
    client = record.client_id or "-"
    access_logger.info(f"{route}: id={record.id} type={record.payload.type} client={client}")


def log_exception(e: Exception, context: str = ""):
    error_logger.error(f"Exception in {context}: {type(e).__name__}: {e}\n{traceback.format_exc()}")
