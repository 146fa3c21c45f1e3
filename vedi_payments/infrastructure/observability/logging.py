"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from vedi_payments.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


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


def log_charge(
    request_id: str,
    intent_id: str,
    restaurant_id: str,
    gross_cents: int,
    venue_fee_cents: int,
    duration_ms: float,
) -> None:
    """Log structured charge creation outcome for analysis"""
    logging.info(
        "Charge created",
        extra={
            "request_id": request_id,
            "intent_id": intent_id,
            "restaurant_id": restaurant_id,
            "step": "charge_created",
            "gross_cents": gross_cents,
            "venue_fee_cents": venue_fee_cents,
            "duration_ms": duration_ms,
        },
    )


def log_settlement(
    request_id: str,
    intent_id: str,
    attempted: int,
    succeeded: int,
    replayed: bool,
    duration_ms: Optional[float] = None,
) -> None:
    """Log settlement outcome; partial payouts go out at ERROR so they get reconciled"""
    level = logging.ERROR if succeeded < attempted else logging.INFO
    logging.log(
        level,
        "Settlement completed" if succeeded == attempted else "Settlement completed with failed transfers",
        extra={
            "request_id": request_id,
            "intent_id": intent_id,
            "step": "settlement_complete",
            "transfers_attempted": attempted,
            "transfers_succeeded": succeeded,
            "replayed": replayed,
            "duration_ms": duration_ms,
        },
    )


def log_split_integrity_failure(restaurant_id: str, context: Dict[str, Any]) -> None:
    """Split integrity breaches are alerts, not validation noise"""
    logging.critical(
        "Split integrity violated",
        extra={"alert": "split_integrity", "restaurant_id": restaurant_id, **context},
    )
