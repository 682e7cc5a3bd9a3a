from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s"

_HANDLER_NAME = "mwsim-stderr"


def setup_logging(level: str = "WARNING") -> logging.Logger:
    """Attach a single stderr handler to the ``mwsim`` logger.

    Calling it again only changes the level; no duplicate handlers are added.
    """
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger("mwsim")
    logger.setLevel(numeric)
    for handler in logger.handlers:
        if handler.get_name() == _HANDLER_NAME:
            handler.setLevel(numeric)
            return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(numeric)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
