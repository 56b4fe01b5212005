"""
Structured logging for the AI Predict oracle backend.
JSON output on stdout so log shippers can index the extra fields.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger


ROOT_LOGGER = "aipredict"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['timestamp'] = self.formatTime(record, self.datefmt)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Whether to emit JSON lines
        logger_name: Optional specific logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name or ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger with the given name."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class OracleLogger:
    """Specialized logger for market generation, resolution and faucet events."""

    def __init__(self):
        self.logger = get_logger("events")

    def predictions_generated(self, topic: str, count: int):
        """Log when the LLM returned a batch of prediction drafts."""
        self.logger.info(
            "Predictions generated",
            extra={
                "event": "predictions_generated",
                "topic": topic,
                "count": count
            }
        )

    def prediction_published(
        self,
        description: str,
        tx_hash: str,
        block_number: Optional[int]
    ):
        """Log when a prediction was created on the contract."""
        self.logger.info(
            "Prediction published",
            extra={
                "event": "prediction_published",
                "description": description[:80],
                "tx_hash": tx_hash,
                "block_number": block_number
            }
        )

    def prediction_publish_failed(self, description: str, error: str):
        """Log when creating a prediction on the contract failed."""
        self.logger.error(
            "Prediction publish failed",
            extra={
                "event": "prediction_publish_failed",
                "description": description[:80],
                "error": error
            }
        )

    def outcome_determined(
        self,
        prediction_id: Optional[int],
        outcome: int,
        confidence: float
    ):
        """Log the LLM verdict for a prediction."""
        self.logger.info(
            "Outcome determined",
            extra={
                "event": "outcome_determined",
                "prediction_id": prediction_id,
                "outcome": outcome,
                "confidence": confidence
            }
        )

    def prediction_finalized(self, prediction_id: int, outcome: int, tx_hash: str):
        """Log when a prediction was finalized on the contract."""
        self.logger.info(
            "Prediction finalized",
            extra={
                "event": "prediction_finalized",
                "prediction_id": prediction_id,
                "outcome": outcome,
                "tx_hash": tx_hash
            }
        )

    def faucet_dispensed(self, address: str, amount_eth: str, tx_hash: str):
        """Log a successful faucet payout."""
        self.logger.info(
            "Faucet dispensed",
            extra={
                "event": "faucet_dispensed",
                "address": address,
                "amount_eth": amount_eth,
                "tx_hash": tx_hash
            }
        )

    def faucet_rejected(self, address: str, reason: str):
        """Log a refused faucet request."""
        self.logger.warning(
            "Faucet request rejected",
            extra={
                "event": "faucet_rejected",
                "address": address,
                "reason": reason
            }
        )
