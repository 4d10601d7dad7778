# core/logger.py
import logging
from mediaflow.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

_level = logging.DEBUG if settings.DEBUG else logging.getLevelName(settings.LOG_LEVEL.upper())

logger = logging.getLogger("mediaflow-logger")
logger.setLevel(_level)
logger.propagate = False

_formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

# Console output for every run; batch workers log under their thread name
_console = logging.StreamHandler()
_console.setLevel(_level)
_console.setFormatter(_formatter)
logger.addHandler(_console)

# Optional run log next to the reports
if settings.LOG_FILE:
    _file = logging.FileHandler(settings.LOG_FILE, encoding="utf-8")
    _file.setLevel(_level)
    _file.setFormatter(_formatter)
    logger.addHandler(_file)
