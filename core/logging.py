"""Centralized logging setup."""

import logging
import os
import sys
from contextvars import ContextVar
from logging.handlers import WatchedFileHandler
from typing import Optional

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)-5s] [%(name)-20s] [%(request_id)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Logger whose CRITICAL records (captured-but-unrecorded payments, amount mismatches)
# need an operator
PAYMENT_ALERT_LOGGER = "routers.payments"

NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "descope")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


def _has_file_handler(logger: logging.Logger, filename: str) -> bool:
    target = os.path.abspath(filename)
    return any(getattr(h, "baseFilename", None) == target for h in logger.handlers)


def _attach_file_handler(
    logger: logging.Logger, path: str, *, level: int, formatter: logging.Formatter
) -> Optional[logging.Handler]:
    if _has_file_handler(logger, path):
        return None
    try:
        log_dir = os.path.dirname(path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handler = WatchedFileHandler(path)
    except OSError as exc:
        logger.warning("Failed to open log file %s: %s", path, exc)
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    logger.addHandler(handler)
    return handler


def configure_logging(*, environment: str, log_level: str) -> int:
    """
    Configure the root logger once per process and return the effective level.

    ``APP_LOG_PATH`` adds a file copy of everything; ``PAYMENT_ALERT_LOG_PATH`` collects
    only CRITICAL payment records so reconciliation cases are not lost in the app log.
    """
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    root = logging.getLogger()
    root.setLevel(level)

    if not any(
        type(h) is logging.StreamHandler and getattr(h, "stream", None) is sys.stdout
        for h in root.handlers
    ):
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        root.addHandler(handler)

    app_log_path = os.getenv("APP_LOG_PATH", "").strip()
    if app_log_path:
        _attach_file_handler(root, app_log_path, level=level, formatter=formatter)

    alert_log_path = os.getenv("PAYMENT_ALERT_LOG_PATH", "").strip()
    if alert_log_path:
        _attach_file_handler(
            logging.getLogger(PAYMENT_ALERT_LOGGER),
            alert_log_path,
            level=logging.CRITICAL,
            formatter=formatter,
        )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
        uv_logger.setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    if environment == "production":
        logging.getLogger("db.slow_query").setLevel(logging.WARNING)

    return level
