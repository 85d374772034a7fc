"""Tracing helpers on the OpenTelemetry API.

Spans are no-ops unless the deployment installs an SDK tracer provider.
"""

import asyncio
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

T = TypeVar("T")

# Allowlist of kwarg names recorded as span attributes; anything else may be sensitive.
_SAFE_SPAN_ATTR_KEYS = frozenset({
    "category", "tenant_id", "user_id", "source", "path", "method", "status",
})


def _set_safe_span_attrs(span: trace.Span, kwargs: dict) -> None:
    for key, value in kwargs.items():
        if key.lower() in _SAFE_SPAN_ATTR_KEYS:
            span.set_attribute(f"arg.{key}", str(getattr(value, "value", value)))


def traced(operation_name: str | None = None) -> Callable:
    """Decorator to run an async function inside a span.

    Exceptions are recorded on the span and re-raised.

    Args:
        operation_name: Span name (defaults to module.funcname).
    """

    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"traced() supports async functions only, got {func.__name__}")
        tracer = trace.get_tracer(func.__module__)
        span_name = operation_name or f"{func.__module__}.{func.__name__}"

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(span_name) as span:
                _set_safe_span_attrs(span, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator


def add_span_attributes(**attributes: str | int | float | bool) -> None:
    """Add attributes to the current span."""
    span = trace.get_current_span()
    if span and span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)
