"""
Structured logging, client spans and metrics for outbound calls.

Every log line is a JSON object tagged with the request ID of the call
in progress, so the attempts, backoff waits and shared refresh made for
one call can be followed together. Tracing is optional: it is set up
only when an OTLP endpoint is configured and the `tracing` extra is
installed.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from resilient_client.telemetry.context import request_id_var

TELEMETRY_LOGGER = "resilient_client.telemetry"


class JSONFormatter(logging.Formatter):
    """
    Formats a record as one JSON line.

    Fields: timestamp (UTC, Z suffix), level, message, logger, request_id,
    the call site, and anything passed as extra={"extra_data": {...}}.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(""),
            "module": record.module,
            "line": record.lineno,
        }
        if record.funcName and record.funcName != "<module>":
            entry["function"] = record.funcName

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry.update(extra_data)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TelemetryService:
    """
    Logging, tracing and metrics for the client.

    ResilientClient looks the service up with get_telemetry_service() on
    every call; when none was initialized, calls run without spans or
    duration metrics and logging is left to the host application.
    """

    def __init__(self, settings: Optional[Any] = None):
        """
        Args:
            settings: Object with log_level, otel_endpoint and
                otel_service_name (normally Settings). None uses INFO
                logging and no tracing.
        """
        self.settings = settings
        self.tracer = None
        self._client_span_kind = None
        self._logger = logging.getLogger(TELEMETRY_LOGGER)
        self._configure_logging()
        self._configure_tracing()

    def _configure_logging(self) -> None:
        level_name = getattr(self.settings, "log_level", None) or "INFO"
        level = getattr(logging, level_name.upper(), logging.INFO)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(JSONFormatter())

        root = logging.getLogger()
        root.setLevel(level)
        for existing in root.handlers[:]:
            root.removeHandler(existing)
        root.addHandler(handler)

        self._logger.info("Client logging configured", extra={
            "extra_data": {"log_level": level_name}
        })

    def _configure_tracing(self) -> None:
        otel_endpoint = getattr(self.settings, "otel_endpoint", None)
        if not otel_endpoint:
            self._logger.debug("No OpenTelemetry endpoint, client spans disabled")
            return

        try:
            from opentelemetry import trace
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.resources import SERVICE_NAME, Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
        except ImportError as e:
            self._logger.warning(
                "OpenTelemetry packages not installed, client spans disabled",
                extra={"extra_data": {"error": str(e)}}
            )
            return

        service_name = getattr(self.settings, "otel_service_name", None) or "resilient-client"
        provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: service_name}))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint)))
        trace.set_tracer_provider(provider)

        self.tracer = trace.get_tracer(service_name)
        self._client_span_kind = trace.SpanKind.CLIENT
        self._logger.info("OpenTelemetry tracing configured", extra={
            "extra_data": {"otel_endpoint": otel_endpoint, "service_name": service_name}
        })

    def record_metric(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """Emit a metric as a debug log line for the log shipper to aggregate."""
        metric: Dict[str, Any] = {"metric_name": name, "metric_value": value}
        if tags:
            metric["tags"] = tags
        self._logger.debug(f"Metric: {name}={value}", extra={"extra_data": metric})

    def create_client_span(
        self,
        method: str,
        url: str,
        attributes: Optional[Dict[str, Any]] = None
    ):
        """
        Span covering one logical call: every attempt, backoff wait and
        credential refresh made for it.

        Returns a context manager. Without tracing it yields a no-op span.
        """
        if self.tracer is None:
            return _NoOpSpan()

        span_attributes: Dict[str, Any] = {"http.method": method, "http.url": url}
        if attributes:
            span_attributes.update(attributes)
        return self.tracer.start_as_current_span(
            f"HTTP {method}",
            kind=self._client_span_kind,
            attributes=span_attributes,
        )


class _NoOpSpan:
    """Stands in for a span when tracing is off."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def record_exception(self, exception: Exception) -> None:
        pass


_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """Create the process-wide telemetry service used by every client."""
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service


def reset_telemetry() -> None:
    global _telemetry_service
    _telemetry_service = None
