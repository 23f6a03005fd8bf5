"""
Logging for the command line and the control API.

Every module logs through ``get_logger(<component>)``, a child of the
``astroboa.server`` logger. Console output goes to stderr; the same records
are kept in ``LOG_DIR/astroboa-cli.log`` so a failed install can be examined
afterwards.
"""

from __future__ import annotations
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from .settings import Settings

APP_LOGGER = "astroboa.server"
LOG_FILE_NAME = "astroboa-cli.log"
LOG_FILE_MAX_BYTES = 5_000_000
LOG_FILE_BACKUPS = 3

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class _JsonFormatter(logging.Formatter):
    """One JSON object per line; ``component`` is the logger name below ``astroboa.server``."""

    def format(self, record: logging.LogRecord) -> str:
        component = record.name[len(APP_LOGGER) + 1:] if record.name.startswith(APP_LOGGER + ".") else record.name
        payload = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "component": component,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _formatter(settings: Settings) -> logging.Formatter:
    if settings.log_json:
        return _JsonFormatter()
    return logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(settings: Settings) -> None:
    level = settings.log_level.upper()
    fmt = _formatter(settings)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    root.addHandler(console)

    app_log = logging.getLogger(APP_LOGGER)
    app_log.handlers.clear()
    app_log.propagate = True
    log_file = settings.log_dir / LOG_FILE_NAME
    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS,
                                 encoding="utf-8")
    except OSError as e:
        app_log.warning("Cannot write log file %s (%s); logging to the console only", log_file, e)
        return
    fh.setFormatter(fmt)
    fh.setLevel(level)
    app_log.addHandler(fh)


def get_logger(component: str) -> logging.Logger:
    """Logger for one part of the tool, e.g. ``get_logger("install")``."""
    return logging.getLogger(f"{APP_LOGGER}.{component}")
