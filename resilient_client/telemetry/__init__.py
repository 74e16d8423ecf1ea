"""
Telemetry module for structured logging and observability.

This module provides:
- JSONFormatter for structured JSON log output
- TelemetryService for centralized logging, metrics and tracing
- Request ID correlation for outbound calls
"""

from resilient_client.telemetry.context import (
    REQUEST_ID_HEADER,
    get_request_id,
    request_id_scope,
    request_id_var,
    set_request_id,
)
from resilient_client.telemetry.service import (
    JSONFormatter,
    TelemetryService,
    get_telemetry_service,
    initialize_telemetry,
    reset_telemetry,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "JSONFormatter",
    "TelemetryService",
    "get_request_id",
    "get_telemetry_service",
    "initialize_telemetry",
    "request_id_scope",
    "request_id_var",
    "reset_telemetry",
    "set_request_id",
]
