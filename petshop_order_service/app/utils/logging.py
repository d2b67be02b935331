"""
Structured logging for the order service.

Every record is written as one JSON object per line. Fields passed through
``extra=`` (order_id, product_id, correlation_id, ...) become top-level keys so
that stock movements can be traced across log lines.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

# Attributes of a bare LogRecord; anything beyond these came in through ``extra``.
_STANDARD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"


class OrderJSONFormatter(logging.Formatter):
    """Render log records as JSON lines tagged with the service name"""

    def __init__(
        self,
        service: str = "order_service",
        exclude_fields: Optional[Iterable[str]] = None,
    ):
        super().__init__()
        self.service = service
        self.exclude_fields = frozenset(exclude_fields or ())

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRIBUTES and key not in self.exclude_fields
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def _rotating(
    path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backups: int
) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_order_logging(
    service_name: str = "order_service",
    log_level: str = "INFO",
    enable_file_logging: bool = False,
    log_dir: Optional[str] = None,
    max_file_size: int = 50 * 1024 * 1024,
    backup_count: int = 5,
    exclude_fields: Optional[Iterable[str]] = None,
) -> logging.Logger:
    """
    Configure the named logger with a stdout JSON handler.

    With ``enable_file_logging`` two rotating files are added under ``log_dir``:
    ``<service_name>.log`` for everything and ``<service_name>_errors.log`` for
    ERROR and above. Calling this again replaces the previous handlers.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = OrderJSONFormatter(exclude_fields=exclude_fields)

    stream = logging.StreamHandler(sys.stdout)
    stream.setLevel(level)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if enable_file_logging:
        directory = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        logger.addHandler(
            _rotating(
                directory / f"{service_name}.log",
                level,
                formatter,
                max_file_size,
                backup_count,
            )
        )
        logger.addHandler(
            _rotating(
                directory / f"{service_name}_errors.log",
                logging.ERROR,
                formatter,
                max_file_size,
                backup_count,
            )
        )

    logger.debug(
        "Logging configured",
        extra={"log_level": log_level, "file_logging": enable_file_logging},
    )
    return logger
