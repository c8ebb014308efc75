"""Logging configuration."""
import logging

from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
NOISY_LOGGERS = ("werkzeug", "urllib3", "schedule")


def setup_logging(level="INFO", log_file=None):
    """Configure the `swapwatch` logger: rich console output plus an optional log file.

    Safe to call repeatedly; later calls only adjust the level.
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    root = logging.getLogger("swapwatch")
    root.setLevel(numeric_level)

    if not root.handlers:
        root.addHandler(RichHandler(rich_tracebacks=True, markup=False, show_path=False))
        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            root.addHandler(file_handler)
    for handler in root.handlers:
        handler.setLevel(numeric_level)

    # Request and retry chatter only when debugging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING)

    return root
