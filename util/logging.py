"""
Structured diagnostic logging for the vector store and indexing pipeline.
Every component accepts any object with debug/error methods; this is the default one.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for vector store and indexing operations."""

    def __init__(self, name: str = "aide", level: int = None):
        self.logger = logging.getLogger(name)
        if level is None:
            from aide.core.config import debug_enabled
            level = logging.DEBUG if debug_enabled() else logging.INFO
        self.logger.setLevel(level)

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
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_indexing_operation(self, operation: str, document_count: int, chunk_count: int, status: str = "success"):
        """Log a document indexing pass."""
        self.log_operation(f"indexer.{operation}", status, {
            "document_count": document_count,
            "chunk_count": chunk_count,
        })

    # Standard logging methods, printf-style like the stdlib logger
    def info(self, message: str, *args) -> None:
        """Log an info message."""
        self.logger.info(message, *args)

    def warning(self, message: str, *args) -> None:
        """Log a warning message."""
        self.logger.warning(message, *args)

    def error(self, message: str, *args) -> None:
        """Log an error message."""
        self.logger.error(message, *args)

    def debug(self, message: str, *args) -> None:
        """Log a debug message."""
        self.logger.debug(message, *args)


# Global logger instance
logger = StructuredLogger()
