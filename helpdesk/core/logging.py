"""Logging and tracing setup for the helpdesk API."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from helpdesk import __version__
from helpdesk.core.config import Settings

_TRACER_INITIALISED = False

# Third party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


def parse_otlp_headers(header_string: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` into a header mapping."""

    headers: dict[str, str] = {}
    for item in (header_string or "").split(","):
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            continue
        headers[key.strip()] = value.strip()
    return headers


class TraceContextFilter(logging.Filter):
    """Expose the active span as ``trace_id`` and ``span_id`` on log records.

    Both are empty strings outside a span, so formats may always reference them.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = ""
            record.span_id = ""
        return True


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure root logging from settings and return the application logger."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "trace_context": {"()": TraceContextFilter},
            },
            "formatters": {
                "default": {
                    "format": settings.log_format,
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["trace_context"],
                    "level": level,
                }
            },
            "loggers": {
                name: {"level": max(level, logging.WARNING)} for name in _QUIET_LOGGERS
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )

    logger = logging.getLogger("helpdesk")
    logger.setLevel(level)
    return logger


def tracing_resource(settings: Settings) -> Resource:
    """Resource attributes attached to every span the service emits."""

    return Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment,
            "helpdesk.storage.path": settings.storage_file_path,
            "helpdesk.ai.model": settings.ai_model_name if settings.ai_enabled else "disabled",
        }
    )


def build_tracer_provider(settings: Settings, exporter: SpanExporter | None = None) -> TracerProvider:
    """Create a tracer provider exporting ticket spans over OTLP/HTTP.

    Without an explicit ``exporter`` one is built from the ``otel_exporter_*``
    settings.
    """

    provider = TracerProvider(resource=tracing_resource(settings))
    if exporter is None:
        exporter_kwargs: dict[str, object] = {}
        if settings.otel_exporter_otlp_endpoint:
            exporter_kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
        headers = parse_otlp_headers(settings.otel_exporter_otlp_headers)
        if headers:
            exporter_kwargs["headers"] = headers
        exporter = OTLPSpanExporter(**exporter_kwargs)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install the global tracer provider when tracing is enabled."""

    global _TRACER_INITIALISED

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    provider = build_tracer_provider(settings)
    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    """Flush and shut down the tracer provider created by :func:`init_tracer`."""

    global _TRACER_INITIALISED

    if provider is None:
        return
    provider.shutdown()
    _TRACER_INITIALISED = False
