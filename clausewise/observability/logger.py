import logging
import json
import os
import sys
from datetime import datetime, timezone
from typing import Optional


# Reserved LogRecord attributes that cannot be overwritten
_RESERVED_ATTRS = {
    "name", "msg", "args", "levelname", "levelno",
    "pathname", "filename", "module", "exc_info",
    "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread",
    "threadName", "processName", "process", "message",
    "taskName",
}

_NOISY_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "openai",
    "google",
    "grpc",
    "qdrant_client",
    "posthog",
)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter.

    Every `extra=` field becomes a top-level key; fields that collide
    with the base record are prefixed with `extra_`.
    """

    def format(self, record: logging.LogRecord) -> str:

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():

            if key.startswith("_"):
                continue

            if key in _RESERVED_ATTRS:
                continue

            if key in log_data:
                log_data[f"extra_{key}"] = value
            else:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # default=str keeps non-JSON extras (enums, datetimes) from crashing
        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = "logs"):

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(console_handler)

    if log_dir:

        os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(os.path.join(log_dir, "app.log"))
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_request_start(logger, request_id, endpoint, **kwargs):

    safe_extra = {
        "request_id": request_id,
        "endpoint": endpoint,
        **kwargs
    }

    logger.info(f"{endpoint}_started", extra=safe_extra)


def log_request_complete(logger, request_id, endpoint, latency_seconds, **kwargs):

    safe_extra = {
        "request_id": request_id,
        "endpoint": endpoint,
        "latency_seconds": round(latency_seconds, 3),
        **kwargs
    }

    logger.info(f"{endpoint}_completed", extra=safe_extra)


def log_request_error(logger, request_id, endpoint, error, **kwargs):

    safe_extra = {
        "request_id": request_id,
        "endpoint": endpoint,
        "error": str(error),
        "error_type": type(error).__name__,
        **kwargs
    }

    logger.error(
        f"{endpoint}_failed",
        extra=safe_extra,
        exc_info=True
    )
