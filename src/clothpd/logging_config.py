"""
Logging Configuration
Sets up the 'clothpd' logger used by the assembly, solver and stepper modules.

Assembly sizes are reported at INFO, per-frame solver progress at DEBUG.
"""
import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    propagate: bool = True,
) -> logging.Logger:
    """
    Attach console (and optionally file) output to the package logger.

    Args:
        level: Logging level (e.g. logging.DEBUG to see every frame).
        log_file: Optional path; the file is truncated on each call.
        propagate: Whether records also reach the root logger.

    Returns:
        The configured 'clothpd' logger.
    """
    logger = logging.getLogger("clothpd")
    logger.setLevel(level)
    logger.propagate = propagate

    # Repeated calls replace, never stack, handlers
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug(f"Logging initialized at level {logging.getLevelName(level)}.")
    return logger
