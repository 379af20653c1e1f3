import logging
from typing import Literal

from opentelemetry import trace

from .config import StorefrontSettings


_NO_TRACE = "-"
_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | trace_id=%(trace_id)s span_id=%(span_id)s | %(message)s"
)


class TraceContextFilter(logging.Filter):
    """Stamp log records with the active OpenTelemetry trace and span ids."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = _NO_TRACE
            record.span_id = _NO_TRACE
        return True


def _attach_filter(target: logging.Filterer, context_filter: TraceContextFilter) -> None:
    if not any(isinstance(f, TraceContextFilter) for f in target.filters):
        target.addFilter(context_filter)


def configure_logging(settings: StorefrontSettings) -> None:
    """Configure root logging level and the trace-aware format."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = settings.log_level
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    root_logger = logging.getLogger()
    context_filter = TraceContextFilter()
    _attach_filter(root_logger, context_filter)
    for handler in root_logger.handlers:
        _attach_filter(handler, context_filter)
