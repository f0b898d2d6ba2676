"""
logging_config.py - Centralized JSON Logging Configuration

PURPOSE:
    Provides structured JSON logging for the inventory service with
    timezone-aware timestamps, correlation tracking, and service context.

KEY FEATURES:
    - JSON Format: All logs are formatted as JSON for easy parsing and aggregation
    - Timezone Aware: Timestamps use America/Los_Angeles via ZoneInfo by default
    - Correlation Tracking: correlation_id ties together the logs and events of one mutation
    - Ledger Context: record_id / operation fields identify which stock record was touched
    - Service Context: Automatically adds service_name to all log entries
    - Exception Handling: Full stack traces included in log entries

JSON LOG FIELDS:
    - timestamp: ISO 8601 format (e.g., "2026-02-23T22:48:51.001014-08:00")
    - level: Log level (INFO, ERROR, WARNING, DEBUG, CRITICAL)
    - logger: Module name where the log originated
    - message: The actual log message
    - service_name: Name of the service (injected automatically)
    - correlation_id / event_type / record_id / operation: optional context passed via `extra`
    - exception: Full stack trace (only when exc_info is set)

USAGE:
    from shared.logging_config import setup_logging
    setup_logging("inventory-service", level="INFO")

    logger = logging.getLogger(__name__)
    logger.info("Stock added", extra={"record_id": "STK-1A2B3C4D5E6F", "operation": "add_stock"})

EXAMPLE JSON OUTPUT:
    {
        "timestamp": "2026-02-23T22:48:51.001014-08:00",
        "level": "INFO",
        "logger": "services.inventory_service.allocation",
        "message": "add_stock committed on STK-1A2B3C4D5E6F (version 4)",
        "service_name": "inventory-service",
        "correlation_id": "9a63a606-fbef-4a4b-a5a4-ef1f127bc304",
        "record_id": "STK-1A2B3C4D5E6F",
        "operation": "add_stock"
    }
"""

import json
import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Any, Dict

CONTEXT_FIELDS = ("correlation_id", "service_name", "event_type", "record_id", "operation")


class JsonFormatter(logging.Formatter):
    """Custom formatter that outputs JSON logs with correlation context."""

    def __init__(self, tz: str = "America/Los_Angeles"):
        super().__init__()
        self.tz = ZoneInfo(tz)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(self.tz).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ServiceFilter(logging.Filter):
    """Stamps service_name onto every record passing through the handler."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        return True


def setup_logging(service_name: str, level: str = "INFO", tz: str = "America/Los_Angeles") -> None:
    """Setup JSON logging for a service. Calling it again replaces the previous handler."""
    root = logging.getLogger()
    root.setLevel(level)

    for existing in list(root.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(tz))
    handler.addFilter(ServiceFilter(service_name))
    root.addHandler(handler)
