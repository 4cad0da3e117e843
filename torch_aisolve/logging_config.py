"""
Logging configuration for the ``torch_aisolve`` namespace.

Modules only create loggers; nothing is printed until an application calls
:func:`setup_logging`.
"""
import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configures the logger of the 'torch_aisolve' package.

    Args:
        level: Logging level (e.g. logging.DEBUG for per-solve PCG iterations)
        log_file: Optional path to save logs to a file.
    """
    logger = logging.getLogger("torch_aisolve")
    logger.setLevel(level)

    # repeated calls replace the handlers instead of duplicating output
    if logger.hasHandlers():
        logger.handlers.clear()

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
