"""
Structured logging for training, prediction and storage operations.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for classifier and persistence operations."""

    def __init__(self, name: str = "leafknn"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status == "failed":
            self.logger.error(message)
        elif status in ("degraded", "skipped"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_storage_operation(self, operation: str, key: str = None, status: str = "success", details: Dict[str, Any] = None):
        """Log a key-value storage operation."""
        log_details = {}
        if key is not None:
            log_details["key"] = key
        if details:
            log_details.update(details)

        self.log_operation(f"storage.{operation}", status, log_details)

    def log_training_batch(self, label: int, added: int, skipped: int, saved: bool):
        """Log completion of a training upload batch."""
        log_details = {
            "label": label,
            "added": added,
            "skipped": skipped,
            "saved": saved
        }
        status = "success" if saved or added == 0 else "degraded"
        self.log_operation("training.batch", status, log_details)

    def log_prediction(self, label: int, confidence: float, k: int, num_examples: int):
        """Log a classifier prediction."""
        log_details = {
            "label": label,
            "confidence": round(confidence, 4),
            "k": k,
            "num_examples": num_examples
        }
        self.log_operation("classifier.predict", "success", log_details)

    def log_codec_failure(self, key: str, error: Exception):
        """Log a decode failure that degrades a persisted field to absent."""
        log_details = {
            "key": key,
            "error": str(error)[:100]
        }
        self.log_operation("codec.decode", "degraded", log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
