"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from collection_gateway.domain.diagnostics import Diagnostics


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "collection-gateway"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_reconciliation(
    request_id: str,
    member_id: str,
    view: str,
    active_rows: int,
    diagnostics: Diagnostics,
    duration_ms: float,
) -> None:
    """Log one member's reconciliation pass for later analysis"""
    logging.info(
        "Reconciliation completed",
        extra={
            "request_id": request_id,
            "member_id": member_id,
            "step": "reconciliation_complete",
            "view": view,
            "active_rows": active_rows,
            "duration_ms": duration_ms,
            **diagnostics.as_dict(),
        },
    )
