"""
OpenTelemetry setup for the sync service.

Nothing is exported until ``initialize_tracing()`` installs an SDK
provider; before that ``get_tracer()`` returns whatever the global provider
hands out, which is the API's no-op tracer in a plain process.
"""

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from cardsync import __version__

logger = logging.getLogger(__name__)

TRACER_NAME = "cardsync"

_provider: TracerProvider | None = None
_tracer: trace.Tracer | None = None
_is_initialized = False


def _exporters(otlp_endpoint: str | None, console_export: bool) -> dict:
    exporters = {}
    if otlp_endpoint:
        exporters["otlp"] = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
    if console_export:
        exporters["console"] = ConsoleSpanExporter()
    return exporters


def initialize_tracing(
    service_name: str = "staff-card-sync",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Install an SDK tracer provider and return the service tracer.

    Args:
        service_name: ``service.name`` resource attribute
        otlp_endpoint: gRPC collector address (default: OTLP_ENDPOINT)
        console_export: Also print spans to stdout (or set TRACE_CONSOLE=true)

    Calling it again returns the existing tracer.
    """
    global _provider, _tracer, _is_initialized

    if _is_initialized:
        logger.warning("Tracing already initialized")
        return _tracer

    exporters = _exporters(
        otlp_endpoint or os.getenv("OTLP_ENDPOINT"),
        console_export or os.getenv("TRACE_CONSOLE", "").lower() == "true",
    )

    _provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name, SERVICE_VERSION: __version__})
    )
    for exporter in exporters.values():
        _provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(_provider)

    _tracer = _provider.get_tracer(TRACER_NAME, __version__)
    _is_initialized = True

    if exporters:
        logger.info(f"Tracing initialized for {service_name}, exporting to {', '.join(exporters)}")
    else:
        logger.warning("Tracing initialized without exporters; spans are dropped")
    return _tracer


def get_tracer() -> trace.Tracer:
    if _tracer is not None:
        return _tracer
    return trace.get_tracer(TRACER_NAME)


def shutdown_tracing() -> None:
    """Flush queued spans and release the exporters."""
    global _provider, _tracer, _is_initialized

    if not _is_initialized:
        return

    try:
        _provider.shutdown()
        logger.info("Tracing shut down")
    finally:
        _provider = None
        _tracer = None
        _is_initialized = False
