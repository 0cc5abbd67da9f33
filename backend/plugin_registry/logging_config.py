"""
Logging setup for processes embedding the plugin registry
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure root logging with the registry format.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        log_file: Optional file receiving a copy of the log records
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, handlers=handlers, force=True)

    # Driver chatter stays at WARNING unless explicitly debugging
    if level.upper() != "DEBUG":
        for noisy in ("pymongo", "httpx", "urllib3"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
