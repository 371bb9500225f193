"""
Distributed Tracing with OpenTelemetry.

Only the OpenTelemetry API is used here; spans are no-ops until the host
application installs a tracer provider.
"""

from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from storeverify.config import settings


def get_tracer(name: str) -> Tracer:
    """
    Get a tracer instance for manual span creation.

    Usage:
        tracer = get_tracer(__name__)
        with tracer.start_as_current_span("operation_name") as span:
            span.set_attribute("key", "value")
    """
    return trace.get_tracer(name)


def add_span_attributes(span: Span, **attributes: Any) -> None:
    """Add attributes to a span, skipping None values."""
    for key, value in attributes.items():
        if value is not None:
            if isinstance(value, (str, int, float, bool)):
                span.set_attribute(key, value)
            else:
                span.set_attribute(key, str(value))


def set_span_error(span: Span, error: BaseException) -> None:
    """Mark span as error and record exception."""
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)


class trace_operation:
    """
    Context manager for creating traced operations.

    Usage:
        with trace_operation("playstore.get_product", package_name=pkg) as span:
            ...
            span.set_attribute("purchase_state", 0)
    """

    def __init__(self, operation_name: str, **attributes: Any) -> None:
        self.operation_name = operation_name
        self.attributes = attributes
        self.span: Span = trace.INVALID_SPAN
        self.tracer = get_tracer("storeverify.operations")
        self._token: object | None = None

    def __enter__(self) -> Span:
        """Start span and make it current."""
        if not settings.tracing_enabled:
            return self.span
        self.span = self.tracer.start_span(self.operation_name)
        add_span_attributes(self.span, **self.attributes)
        self._token = otel_context.attach(trace.set_span_in_context(self.span))
        return self.span

    def __exit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        """End span and record any errors."""
        if self._token is None:
            return
        if exc_val is not None:
            set_span_error(self.span, exc_val)
        otel_context.detach(self._token)  # type: ignore[arg-type]
        self.span.end()
        self._token = None
