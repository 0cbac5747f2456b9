"""
Logging setup for Warisin.

One stderr handler on the root logger. Production writes one JSON object
per line; development and tests get a short coloured line. A filter copies
the current request id and session user onto every record emitted while a
request is being served, so service-layer log lines can be correlated with
the access log without passing ids around.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes that end up in the JSON line when present
CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "program_id",
    "application_id",
)

QUIET_LOGGERS = ("werkzeug", "urllib3", "httpx", "botocore", "sqlalchemy.engine", "google_genai")

_LEVEL_COLOURS = {
    logging.DEBUG: "\033[2m",
    logging.INFO: "\033[34m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[41m",
}


class RequestContextFilter(logging.Filter):
    """Attach request_id / user_id from flask.g unless the caller passed them."""

    def filter(self, record):
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "current_user_id", None)
        return True


class JsonLineFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        entry.update({
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        })
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """``12:01:33 INFO  warisin.services.x  message  (req=… user=…)``"""

    def format(self, record):
        colour = _LEVEL_COLOURS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tags = " ".join(
            f"{label}={getattr(record, field)}"
            for label, field in (("req", "request_id"), ("user", "user_id"))
            if getattr(record, field, None)
        )
        line = f"{clock} {colour}{record.levelname:<5}\033[0m {record.name}  {record.getMessage()}"
        if tags:
            line += f"  ({tags})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler; JSON unless DEBUG or TESTING is on."""
    verbose = app.config.get("DEBUG") or app.config.get("TESTING")
    level_name = (app.config.get("LOG_LEVEL") or ("DEBUG" if verbose else "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ConsoleFormatter() if verbose else JsonLineFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    # create_app() runs once per test session app; never stack handlers
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging ready level=%s format=%s", level_name, "console" if verbose else "json",
    )
