"""Loguru setup for the command-line drivers.

The library itself only ever calls ``logger.<level>``; sinks are configured by
whoever runs it (drivers, notebooks, tests).
"""

import sys

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {name}:{line} | {message}"


def configure_logging(level: str = "INFO", sink=None) -> None:
    """Replace every loguru sink with a single one at *level*.

    Parameters
    ----------
    level : str, default='INFO'
    sink : file-like | str | callable | None
        Defaults to ``sys.stderr``.  A path string gets a rotating file sink.
    """
    logger.remove()
    if isinstance(sink, str):
        logger.add(sink, level=level, format=_FORMAT, rotation="10 MB", enqueue=True)
    else:
        logger.add(sink or sys.stderr, level=level, format=_FORMAT)
