import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # type: ignore[attr-defined]
    OTLPSpanExporter as OTLPGrpcExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (  # type: ignore[attr-defined]
    OTLPSpanExporter as OTLPHttpExporter,
)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Tracer

from .config import StorefrontSettings

logger = logging.getLogger(__name__)

_INSTRUMENTED_APPS: set[int] = set()
_httpx_instrumented = False


def get_tracer(name: str) -> Tracer:
    """Return a tracer; spans are no-ops until tracing is configured."""

    return trace.get_tracer(name)


def _build_exporter(settings: StorefrontSettings) -> SpanExporter | None:
    if settings.tracing_endpoint is None:
        return None
    if settings.tracing_protocol == "grpc":
        return OTLPGrpcExporter(endpoint=settings.tracing_endpoint, insecure=settings.tracing_insecure)
    return OTLPHttpExporter(endpoint=settings.tracing_endpoint)


def _provider_for(settings: StorefrontSettings) -> trace.TracerProvider:
    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider):
        return current

    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": settings.app_name, "deployment.environment": settings.environment}
        ),
        sampler=TraceIdRatioBased(settings.tracing_sample_rate),
    )
    exporter = _build_exporter(settings)
    if exporter is None:
        logger.warning("Tracing enabled for %s without an OTLP endpoint; spans stay local.", settings.app_name)
    else:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return trace.get_tracer_provider()


def configure_tracing(app: FastAPI, settings: StorefrontSettings) -> None:
    """Instrument the app and outbound httpx calls when tracing is enabled."""

    global _httpx_instrumented
    if not settings.enable_tracing:
        return

    provider = _provider_for(settings)
    if id(app) not in _INSTRUMENTED_APPS:
        FastAPIInstrumentor().instrument_app(app, tracer_provider=provider)
        _INSTRUMENTED_APPS.add(id(app))
    if not _httpx_instrumented:
        HTTPXClientInstrumentor().instrument(tracer_provider=provider)
        _httpx_instrumented = True
