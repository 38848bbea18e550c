"""OpenTelemetry SDK initialization."""

import logging
from dataclasses import dataclass, field

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.instrumentation.asyncpg import AsyncPGInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

logger = logging.getLogger(__name__)

# Track if telemetry has been initialized
_telemetry_initialized = False


@dataclass
class TelemetryConfig:
    """Configuration for OpenTelemetry."""

    # Service identification
    service_name: str = "courier-hub"
    service_version: str = "0.1.0"
    environment: str = "development"

    # OTLP exporter settings
    otlp_endpoint: str = "http://localhost:4317"
    otlp_insecure: bool = True

    # Feature flags
    enable_tracing: bool = True
    enable_metrics: bool = True

    trace_sample_rate: float = 1.0

    resource_attributes: dict[str, str] = field(default_factory=dict)


def init_telemetry(config: TelemetryConfig | None = None) -> bool:
    """
    Initialize OpenTelemetry SDK.

    Sets up:
    - Tracer provider with OTLP exporter
    - Meter provider with Prometheus reader
    - Instrumentation for httpx (courier calls) and asyncpg

    Returns:
        True if initialization was successful, False otherwise.
    """
    global _telemetry_initialized

    if _telemetry_initialized:
        logger.debug("Telemetry already initialized")
        return True

    if config is None:
        config = TelemetryConfig()

    try:
        resource = Resource.create({
            "service.name": config.service_name,
            "service.version": config.service_version,
            "deployment.environment": config.environment,
            **config.resource_attributes,
        })

        if config.enable_tracing:
            tracer_provider = TracerProvider(
                resource=resource,
                sampler=TraceIdRatioBased(config.trace_sample_rate),
            )
            tracer_provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(
                        endpoint=config.otlp_endpoint,
                        insecure=config.otlp_insecure,
                    )
                )
            )
            trace.set_tracer_provider(tracer_provider)
            logger.info("Tracing initialized with endpoint: %s", config.otlp_endpoint)

            HTTPXClientInstrumentor().instrument()
            AsyncPGInstrumentor().instrument()

        if config.enable_metrics:
            meter_provider = MeterProvider(
                resource=resource,
                metric_readers=[PrometheusMetricReader()],
            )
            metrics.set_meter_provider(meter_provider)
            logger.info("Metrics initialized with Prometheus reader")

        _telemetry_initialized = True
        return True

    except Exception as e:
        logger.error("Failed to initialize OpenTelemetry: %s", e)
        return False


def shutdown_telemetry() -> None:
    """Shutdown OpenTelemetry SDK gracefully."""
    global _telemetry_initialized

    if not _telemetry_initialized:
        return

    tracer_provider = trace.get_tracer_provider()
    if isinstance(tracer_provider, TracerProvider):
        tracer_provider.shutdown()

    meter_provider = metrics.get_meter_provider()
    if isinstance(meter_provider, MeterProvider):
        meter_provider.shutdown()

    logger.info("Telemetry shutdown complete")
    _telemetry_initialized = False
