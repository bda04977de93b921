"""
Logging setup for the imagecompression package.

Modules log through logging.getLogger(__name__). Nothing is printed until
configure_logging() is called by the host application.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "imagecompression"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())

_handler: Optional[logging.Handler] = None


def _write_header(log_path: Path):
    """Write log file header"""
    with open(log_path, 'w', encoding='utf-8') as f:
        f.write("=" * 70 + "\n")
        f.write("IMAGE COMPRESSION - LOG FILE\n")
        f.write(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"Log file: {log_path}\n")
        f.write("=" * 70 + "\n\n")


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Attach a handler to the package logger.

    Calling again replaces the previously installed handler.

    Args:
        level: Logging level for the package logger
        log_file: Optional log file path (overwritten on each run)

    Returns:
        The package logger
    """
    global _handler

    logger = logging.getLogger(PACKAGE_LOGGER)

    if _handler is not None:
        logger.removeHandler(_handler)
        _handler.close()

    if log_file is not None:
        log_path = Path(log_file)
        _write_header(log_path)
        _handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    else:
        _handler = logging.StreamHandler(sys.stderr)

    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_handler)
    logger.setLevel(level)
    return logger


def close_logging():
    """Remove the handler installed by configure_logging()."""
    global _handler
    if _handler is not None:
        logging.getLogger(PACKAGE_LOGGER).removeHandler(_handler)
        _handler.close()
        _handler = None
