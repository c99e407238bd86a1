# clipshare/observability/logger.py

# structured JSON logger
import logging
import os
import sys
import traceback

from opentelemetry import trace
from pythonjsonlogger.json import JsonFormatter

# Business loggers: "access" for request-level info, "error" for tracebacks
access_logger = logging.getLogger("access")
error_logger = logging.getLogger("error")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(pathname)s %(lineno)d %(trace_id)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class TraceIdFilter(logging.Filter):
    """Inject trace_id into the record when a span is active."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            ctx = trace.get_current_span().get_span_context()
            record.trace_id = f"{ctx.trace_id:032x}" if ctx and ctx.trace_id else ""
        return True


def _build_formatter() -> logging.Formatter:
    return JsonFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def configure_logging(settings) -> None:
    """Configure root logging with JSON output on stdout.

    - Root and business loggers share one JSON console handler.
    - When settings.LOGS_PATH is set, errors also go to <LOGS_PATH>/error.log.
    - Safe to call more than once (handlers are not duplicated).
    """
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL)

    formatter = _build_formatter()
    trace_filter = TraceIdFilter()

    have_console = any(getattr(h, "_clipshare_console", False) for h in root.handlers)
    if not have_console:
        console = logging.StreamHandler(stream=sys.stdout)
        console.setFormatter(formatter)
        console.addFilter(trace_filter)
        console._clipshare_console = True  # type: ignore[attr-defined]
        root.addHandler(console)

    access_logger.setLevel(logging.INFO)
    error_logger.setLevel(logging.ERROR)

    if settings.LOGS_PATH:
        os.makedirs(settings.LOGS_PATH, exist_ok=True)
        error_log_file = os.path.join(settings.LOGS_PATH, "error.log")
        if not any(isinstance(h, logging.FileHandler) for h in error_logger.handlers):
            handler = logging.FileHandler(error_log_file, encoding="utf-8")
            handler.setFormatter(formatter)
            handler.addFilter(trace_filter)
            error_logger.addHandler(handler)

    logging.getLogger("startup").info(
        "logging configured", extra={"service": settings.SERVICE_NAME}
    )


def log_info(message: str) -> None:
    access_logger.info(message)


def log_exception(e: Exception, context: str = "") -> None:
    error_logger.error(
        f"Exception in {context}: {type(e).__name__}: {e}",
        extra={"traceback": "".join(traceback.format_exception(type(e), e, e.__traceback__))},
    )
