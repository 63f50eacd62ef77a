"""
Logging for the school portal.

Every module logs through a child of the "school_portal" logger, so one
handler on stdout serves the whole app. Pass the module's ``__name__``:
"school_portal.services.bulk_upload" becomes the child "services.bulk_upload"
and records show up as "school_portal.services.bulk_upload".
"""
import logging
import sys

from school_portal.core.config import CONFIG

ROOT_LOGGER_NAME = "school_portal"

_logger = logging.getLogger(ROOT_LOGGER_NAME)
if not _logger.handlers:
    _logger.setLevel(CONFIG.LOG_LEVEL.upper())
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))
    _logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    if not name or name == ROOT_LOGGER_NAME:
        return _logger
    prefix = ROOT_LOGGER_NAME + "."
    if name.startswith(prefix):
        name = name[len(prefix):]
    return _logger.getChild(name)
