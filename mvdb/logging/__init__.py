"""Application logging setup."""

import logging

from mvdb.middleware.correlation import get_correlation_id

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(correlation_id)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Chatty third-party loggers kept at WARNING
NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "sqlalchemy.pool",
    "sqlalchemy.dialects",
    "aiosqlite",
    "httpcore",
    "httpx",
    "asyncio",
    "watchfiles",
)


class CorrelationIDFilter(logging.Filter):
    """Attach the current request's correlation ID to every record ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    correlation_filter = CorrelationIDFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CorrelationIDFilter) for f in handler.filters):
            handler.addFilter(correlation_filter)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["CorrelationIDFilter", "configure_logging"]
