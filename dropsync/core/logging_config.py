# dropsync/core/logging_config.py
"""
Centralized logging configuration for the application.

Library loggers are pinned at WARNING so pipeline and token logs stay readable.
"""

import logging
import os

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "urllib3.connectionpool",
    "selenium",
    "selenium.webdriver.remote",
    "WDM",
    "sqlalchemy",
    "sqlalchemy.engine",
    "asyncpg",
    "aiosqlite",
    "apscheduler",
)


def configure_logging():
    """
    Configure logging for the application.

    - App code: INFO (or whatever LOG_LEVEL says)
    - HTTP clients, Selenium, database drivers, scheduler: WARNING only
    """
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("dropsync").setLevel(level)
    logging.getLogger("__main__").setLevel(level)

    logging.getLogger(__name__).debug(f"Logging configured at level: {log_level}")
