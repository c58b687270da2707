"""Logging setup for the weather proxy: console plus a rotating file under backend/logs."""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FILE_NAME = "weatherproxy.log"
LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'


def setup_logging(name: str, level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """Return the proxy logger, attaching handlers on first use only.

    Both handlers follow *level*; upstream traffic (forward targets, cache
    hits) is logged at INFO/DEBUG by the handlers in routers/proxy.py.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)
    # keep records out of the root logger uvicorn configures
    logger.propagate = False

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_dir = log_dir or os.path.join(os.path.dirname(__file__), "logs")
    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
