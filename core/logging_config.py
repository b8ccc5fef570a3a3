"""
Logging Configuration for the VidTube API.

Development gets colored, human-readable console output; every other
environment gets one JSON document per record so logs can be shipped to an
aggregator. Each record is stamped with the correlation ID of the request
that produced it, and credentials passed as `extra` fields are masked before
they are written.

Key Components:
- `CorrelationFilter`: Copies the current request's correlation ID onto log
  records.
- `StructuredFormatter`: JSON formatter used outside development.
- `ColoredConsoleFormatter`: Level-colored formatter for local development.
- `get_logging_config` / `setup_logging`: Build and apply the `dictConfig`
  for the current environment (`ENVIRONMENT`, `LOG_LEVEL`, `LOG_FILE`,
  `LOG_SQL`).
- `log_function_call`: Decorator that logs entry, exit, timing and failure of
  service functions. Arguments are never logged.
"""

import os
import json
import time
import inspect
import functools
import logging
import logging.config
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variable for request correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Loggers owned by the application, one per top-level package
APP_LOGGERS = ("api", "services", "providers", "core")

# Keys of `extra` whose values must never reach a log sink
REDACTED_FIELDS = frozenset({"password", "password_hash", "access_token", "authorization", "api_key"})

# Attributes every LogRecord carries; anything else came in through `extra`
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "correlation_id"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: "***" if key.lower() in REDACTED_FIELDS else value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS
    }


class CorrelationFilter(logging.Filter):
    """Filter that adds correlation ID to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        current = get_correlation_id()
        if current:
            record.correlation_id = current
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON document per record"""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        document: Dict[str, Any] = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = getattr(record, "correlation_id", None) or get_correlation_id()
        if request_id:
            document["correlation_id"] = request_id

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            document["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        extra = _extra_fields(record)
        if extra:
            document["extra"] = extra

        return json.dumps(document, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        request_id = getattr(record, "correlation_id", None)
        prefix = f"{when} {record.levelname:<8} {record.name}"
        if request_id:
            prefix += f" [{request_id}]"

        line = f"{color}{prefix}: {record.getMessage()}{self.RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logging_config() -> Dict[str, Any]:
    """Build the dictConfig for the current environment"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    handlers = ["console"]

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"correlation": {"()": CorrelationFilter}},
        "formatters": {
            "structured": {"()": StructuredFormatter},
            "colored_console": {"()": ColoredConsoleFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "colored_console" if environment == "development" else "structured",
                "filters": ["correlation"],
                "stream": "ext://sys.stdout",
            },
        },
    }

    if environment == "production":
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "structured",
            "filters": ["correlation"],
            "filename": os.getenv("LOG_FILE", "/var/log/vidtube/app.log"),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
        }
        handlers = ["console", "file"]

    # SQL statements are only logged when asked for
    sql_level = "INFO" if os.getenv("LOG_SQL", "").lower() in ("1", "true", "yes") else "WARNING"
    levels = {name: level for name in APP_LOGGERS}
    levels.update({"uvicorn": "INFO", "uvicorn.access": "INFO", "sqlalchemy.engine": sql_level})

    config["loggers"] = {
        name: {"level": logger_level, "handlers": list(handlers), "propagate": False}
        for name, logger_level in levels.items()
    }
    config["root"] = {"level": level, "handlers": list(handlers)}
    return config


def setup_logging():
    """Initialize logging configuration"""
    logging.config.dictConfig(get_logging_config())
    logging.getLogger("core.logging").info(
        f"Logging initialized for {os.getenv('ENVIRONMENT', 'development')} environment"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(corr_id: str):
    correlation_id.set(corr_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id.get()


def log_function_call(logger: logging.Logger):
    """
    Log a call to a service function: a DEBUG line on entry and on success,
    an ERROR line with the exception type on failure. Works for both plain
    and coroutine functions.
    """

    def decorator(func):
        name = func.__name__

        def started() -> float:
            logger.debug(f"Calling {name}", extra={"function_name": name})
            return time.perf_counter()

        def finished(start: float, error: Optional[BaseException] = None):
            extra = {
                "function_name": name,
                "execution_time_ms": round((time.perf_counter() - start) * 1000, 2),
                "success": error is None,
            }
            if error is None:
                logger.debug(f"Completed {name}", extra=extra)
            else:
                extra["error_type"] = type(error).__name__
                logger.error(f"Failed {name}: {error}", extra=extra)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = started()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    finished(start, e)
                    raise
                finished(start)
                return result

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = started()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                finished(start, e)
                raise
            finished(start)
            return result

        return sync_wrapper

    return decorator
