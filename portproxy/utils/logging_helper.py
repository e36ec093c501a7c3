#!/usr/bin/env python3
import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the shared 'portproxy' logger.

    Output goes to stdout; a detached daemon has stdout redirected to its log
    file. Per-request lines are emitted at DEBUG, so they only show with
    verbose on.
    """
    logger = logging.getLogger('portproxy')
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Add the handler only once; repeated calls just adjust the level
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
