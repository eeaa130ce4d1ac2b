"""
Logging setup for the InternTrack backend.

Every record carries the request id and the caller (user id + kind) set by the
request middleware, so a fan-out or a share decision in the logs can be tied to
the request that caused it. Production writes JSON lines; everything else gets a
compact colored console line.
"""

import logging
import logging.handlers
import json
import os
from datetime import datetime, timezone
from contextvars import ContextVar

from config import config

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_var: ContextVar[str] = ContextVar("user_id", default="-")
user_kind_var: ContextVar[str] = ContextVar("user_kind", default="-")

QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "motor": logging.WARNING,
    "pymongo": logging.WARNING,
    "httpx": logging.WARNING,
}


def request_context() -> dict:
    return {
        "request_id": request_id_var.get(),
        "user_id": user_id_var.get(),
        "user_kind": user_kind_var.get(),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line; ``extra={"data": {...}}`` lands under "data"."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            **request_context(),
            "message": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ctx = request_context()
        # Outside a request (startup, scripts) there is no caller to show
        caller = ""
        if ctx["user_id"] != "-":
            caller = f" {ctx['user_kind']}:{ctx['user_id']}"
        line = f"{color}{record.levelname:<7}{self.RESET} {record.name} [{ctx['request_id']}{caller}] {record.getMessage()}"

        data = getattr(record, "data", None)
        if data:
            line += f"  | {data}"
        if record.exc_info and record.exc_info[0] is not None:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging():
    env = config.ENV.lower()
    level = config.LOG_LEVEL.upper()

    root = logging.getLogger()
    root.setLevel(level)
    # Uvicorn reload re-imports main; don't stack handlers
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(JSONFormatter() if env == "production" else DevFormatter())
    root.addHandler(console)

    log_file = None
    if env != "testing":
        os.makedirs(config.LOG_DIR, exist_ok=True)
        log_file = os.path.join(config.LOG_DIR, "interntrack.log")
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.LOG_FILE_MAX_BYTES,
            backupCount=config.LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    get_logger("startup").info(
        "Logging initialized",
        extra={"data": {"env": env, "level": level, "file": log_file}},
    )


def get_logger(name: str) -> logging.Logger:
    """Named logger under the ``interntrack`` namespace."""
    return logging.getLogger(f"interntrack.{name}")
