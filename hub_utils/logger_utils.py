import logging
import sys
from pythonjsonlogger import jsonlogger

LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(module)s %(funcName)s %(message)s'


def _json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(LOG_FORMAT, rename_fields={"asctime": "timestamp", "levelname": "level"})
    )
    return handler


def get_logger(name: str, log_level: str = "INFO") -> logging.Logger:
    """
    A logger writing one JSON object per line to stdout.

    Anything passed through `extra=` becomes a top-level key of the record.
    """
    log = logging.getLogger(name)
    log.setLevel(log_level.upper())
    log.propagate = False
    if not log.handlers:
        log.addHandler(_json_handler())
    return log


def set_log_level(log_level: str) -> None:
    """Called by the app factory once settings are loaded."""
    logger.setLevel(log_level.upper())


logger = get_logger("tutorhub")
