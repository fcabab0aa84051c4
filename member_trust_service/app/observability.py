from member_trust_service.app.config import settings
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader, ConsoleMetricExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME as ResourceAttributesServiceName
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from pythonjsonlogger import jsonlogger


logger = logging.getLogger("member_trust_service")

def setup_json_logging():
    root_logger = logging.getLogger()
    if any(isinstance(h.formatter, jsonlogger.JsonFormatter) for h in root_logger.handlers):
        return
    logHandler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(module)s %(funcName)s %(lineno)d %(message)s",
        rename_fields={"levelname": "level", "name": "logger_name", "asctime": "timestamp"},
    )
    logHandler.setFormatter(formatter)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(logHandler)
    log_level = settings.LOG_LEVEL.upper()
    root_logger.setLevel(log_level)
    logger.setLevel(log_level)
    logger.info(f"JSON logging configured at level {log_level}.")

def setup_opentelemetry(service_name: str):
    resource = Resource(attributes={
        ResourceAttributesServiceName: service_name,
    })
    tracer_provider = TracerProvider(resource=resource)
    console_span_exporter = ConsoleSpanExporter()
    tracer_provider.add_span_processor(BatchSpanProcessor(console_span_exporter))
    if settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT:
        logger.info(f"Configuring OTLP Span Exporter. Endpoint: {settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT}")
        otlp_span_exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT, insecure=True)
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
    else:
        logger.info("OTLP Span Exporter not configured. Using Console for spans.")
    trace.set_tracer_provider(tracer_provider)
    logger.info(f"OpenTelemetry TracerProvider configured for service: {service_name}.")

    console_metric_exporter = ConsoleMetricExporter()
    metric_reader_console = PeriodicExportingMetricReader(console_metric_exporter, export_interval_millis=5000)
    metric_readers = [metric_reader_console]
    if settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT:
        logger.info(f"Configuring OTLP Metric Exporter. Endpoint: {settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT}")
        otlp_metric_exporter = OTLPMetricExporter(endpoint=settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT, insecure=True)
        otlp_metric_reader = PeriodicExportingMetricReader(otlp_metric_exporter, export_interval_millis=5000)
        metric_readers.append(otlp_metric_reader)
    else:
        logger.info("OTLP Metric Exporter not configured. Using Console for metrics.")
    meter_provider = MeterProvider(resource=resource, metric_readers=metric_readers)
    metrics.set_meter_provider(meter_provider)
    logger.info(f"OpenTelemetry MeterProvider configured for service: {service_name}.")

# Call at module load time
setup_json_logging()

# --- Tracer and Meter instances ---
# Global after setup_opentelemetry is called by an entry point (API or sweep runner).
tracer = trace.get_tracer("member_trust_service.tracer")
meter = metrics.get_meter("member_trust_service.meter")

# --- Custom Metrics Definitions ---
sweep_items_counter = meter.create_counter(
    name="member_trust.sweep.items.total",
    description="Counts records transitioned by expiry sweeps, partitioned by sweep and outcome.",
    unit="1"
)

suppressed_notifications_counter = meter.create_counter(
    name="member_trust.notifications.suppressed.total",
    description="Counts best-effort notifications that failed or timed out and were suppressed.",
    unit="1"
)

audit_record_failures_counter = meter.create_counter(
    name="member_trust.audit.record_failures.total",
    description="Counts audit entries that could not be persisted.",
    unit="1"
)

audit_approval_required_counter = meter.create_counter(
    name="member_trust.audit.approval_required.total",
    description="Counts audit entries flagged for a secondary approval, partitioned by action.",
    unit="1"
)
logger.info("Custom metrics (Counters) defined in observability.py.")
