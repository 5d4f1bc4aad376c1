import logging
import os
from logging.config import dictConfig

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Appends the record's `extra` fields as sorted key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS and not k.startswith("_")}
        if not fields:
            return base
        return base + " " + " ".join(f"{key}={fields[key]!r}" for key in sorted(fields))


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Console logging for the engine. LOG_LEVEL picks the level; LOG_FORMAT=plain
    drops the extra fields the services attach to their records.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.environ.get("LOG_FORMAT", "structured")).lower()
    if log_format not in ("structured", "plain"):
        raise ValueError(f"Unknown LOG_FORMAT: {log_format!r}")

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": StructuredFormatter,
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                },
                "plain": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": log_format,
                    "level": log_level,
                }
            },
            "loggers": {
                "glucose_engine": {"level": log_level, "propagate": True},
            },
            "root": {"handlers": ["console"], "level": log_level},
        }
    )
    logging.getLogger(__name__).debug("Logging configured", extra={"level": log_level, "format": log_format})


__all__ = ["StructuredFormatter", "configure_logging"]
