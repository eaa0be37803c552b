"""
Central logging configuration: one console handler on the root logger.
"""
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level_name: str | None = "INFO") -> None:
    """Configure the root logger with a console handler at `level_name`."""
    level = getattr(logging, (level_name or "INFO").strip().upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        if getattr(handler, "_library_catalogue", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._library_catalogue = True
    root_logger.addHandler(console_handler)
