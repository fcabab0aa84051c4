import pytest
from unittest.mock import patch, MagicMock
import logging

from member_trust_service.app import observability
from member_trust_service.app.config import settings


@pytest.fixture(autouse=True)
def preserve_original_settings():
    original_log_level = settings.LOG_LEVEL
    original_otel_traces_endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT
    original_otel_metrics_endpoint = settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT
    yield
    settings.LOG_LEVEL = original_log_level
    settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT = original_otel_traces_endpoint
    settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT = original_otel_metrics_endpoint


@pytest.fixture
def mock_logger_dependencies(mocker):
    mock_logging = mocker.patch('member_trust_service.app.observability.logging')
    mock_jsonlogger = mocker.patch('member_trust_service.app.observability.jsonlogger')
    mock_root_logger = MagicMock(spec=logging.Logger)
    mock_root_logger.handlers = []
    mock_logging.getLogger.return_value = mock_root_logger
    return mock_logging, mock_jsonlogger, mock_root_logger


def test_setup_json_logging_configures_root_handler(mock_logger_dependencies):
    mock_logging, mock_jsonlogger, mock_root_logger = mock_logger_dependencies
    settings.LOG_LEVEL = "debug"

    observability.setup_json_logging()

    mock_jsonlogger.JsonFormatter.assert_called_once_with(
        fmt="%(asctime)s %(levelname)s %(name)s %(module)s %(funcName)s %(lineno)d %(message)s",
        rename_fields={"levelname": "level", "name": "logger_name", "asctime": "timestamp"},
    )
    log_handler_instance = mock_logging.StreamHandler.return_value
    log_handler_instance.setFormatter.assert_called_once_with(mock_jsonlogger.JsonFormatter.return_value)
    mock_root_logger.addHandler.assert_called_once_with(log_handler_instance)
    mock_root_logger.setLevel.assert_called_once_with("DEBUG")


@patch('member_trust_service.app.observability.metrics')
@patch('member_trust_service.app.observability.trace')
@patch('member_trust_service.app.observability.OTLPMetricExporter')
@patch('member_trust_service.app.observability.OTLPSpanExporter')
def test_setup_opentelemetry_console_only(mock_span_exporter, mock_metric_exporter, mock_trace, mock_metrics):
    settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT = None
    settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT = None

    observability.setup_opentelemetry(service_name="member-trust-test")

    mock_span_exporter.assert_not_called()
    mock_metric_exporter.assert_not_called()
    mock_trace.set_tracer_provider.assert_called_once()
    mock_metrics.set_meter_provider.assert_called_once()
    provider = mock_trace.set_tracer_provider.call_args[0][0]
    assert provider.resource.attributes["service.name"] == "member-trust-test"


@patch('member_trust_service.app.observability.metrics')
@patch('member_trust_service.app.observability.trace')
@patch('member_trust_service.app.observability.OTLPMetricExporter')
@patch('member_trust_service.app.observability.OTLPSpanExporter')
def test_setup_opentelemetry_with_otlp_endpoints(mock_span_exporter, mock_metric_exporter, mock_trace, mock_metrics):
    settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT = "http://otel-collector:4317"
    settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT = "http://otel-collector:4317"

    observability.setup_opentelemetry(service_name="member-trust-test")

    mock_span_exporter.assert_called_once_with(endpoint="http://otel-collector:4317", insecure=True)
    mock_metric_exporter.assert_called_once_with(endpoint="http://otel-collector:4317", insecure=True)


def test_custom_counters_are_defined():
    for counter in (
        observability.sweep_items_counter,
        observability.suppressed_notifications_counter,
        observability.audit_record_failures_counter,
        observability.audit_approval_required_counter,
    ):
        assert counter is not None
        counter.add(1, {"test": "true"})
