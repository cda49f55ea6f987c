"""
Logging configuration for the ``raff`` namespace.

Importing this module (done by ``import raff``) attaches a NullHandler to the
package logger; scripts call ``setup_logging`` to see solver progress.
"""
import logging
import sys
from typing import Optional

LOGGER_NAME = "raff"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the 'raff' logger with a console handler and an optional file.

    Args:
        level: Logging level (e.g. logging.DEBUG for per-iteration solver records)
        log_file: Optional path to save logs to a file.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Re-running setup replaces handlers instead of duplicating output.
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
