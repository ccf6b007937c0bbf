"""
Structured operation logging for the code search service.
"""

import logging
import time
from typing import Any, Dict


def _truncate(value: str, limit: int = 50) -> str:
    return value[:limit] + "..." if len(value) > limit else value


class StructuredLogger:
    """Structured logger for project, ingest, search and storage operations."""

    def __init__(self, name: str = "codevec", level: str = None):
        self.logger = logging.getLogger(name)
        if level is None:
            from codevec.core.config import LOG_LEVEL
            level = LOG_LEVEL
        self.logger.setLevel(getattr(logging, level, logging.INFO))

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

    def log_project_operation(self, operation: str, project_name: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a project lifecycle operation."""
        log_details = {"project": project_name}
        if details:
            log_details.update(details)

        self.log_operation(f"project.{operation}", status, log_details)

    def log_ingest(self, project_name: str, block_count: int, start_time: float, status: str = "success", details: Dict[str, Any] = None):
        """Log an ingest with its duration."""
        log_details = {
            "project": project_name,
            "blocks": block_count,
            "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
        }
        if details:
            log_details.update(details)

        self.log_operation("project.ingest", status, log_details)

    def log_search(self, project_name: str, search_type: str, query: str, result_count: int, details: Dict[str, Any] = None):
        """Log a search over one project."""
        log_details = {
            "project": project_name,
            "query": _truncate(query),
            "results": result_count,
        }
        if details:
            log_details.update(details)

        self.log_operation(f"search.{search_type}", "success", log_details)

    def log_storage_error(self, operation: str, project_name: str, error: Exception):
        """Log a backing store failure before it propagates."""
        self.log_operation(f"storage.{operation}", "failed", {
            "project": project_name,
            "error": _truncate(str(error), 200),
        })

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
