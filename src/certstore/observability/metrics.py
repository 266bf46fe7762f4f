"""
OpenTelemetry Metrics

Storage operation metrics. Instruments are created lazily from whatever
meter provider is installed, so recording is always safe; without
init_metrics() the global no-op provider simply discards values.
"""

import logging
from typing import Any, Dict, Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

logger = logging.getLogger(__name__)

METER_NAME = "certstore"

OPERATION_DURATION = "certstore_operation_duration_seconds"
STORED_BYTES = "certstore_stored_bytes"
LOCK_ACQUISITIONS = "certstore_lock_acquisitions_total"

_DESCRIPTIONS = {
    OPERATION_DURATION: "Duration of storage operations",
    STORED_BYTES: "Size of stored payloads after encoding",
    LOCK_ACQUISITIONS: "Lease lock acquisition attempts by outcome",
}

# Global meter
_meter: Optional[metrics.Meter] = None

# Metric instruments
_counters: Dict[str, metrics.Counter] = {}
_histograms: Dict[str, metrics.Histogram] = {}


def init_metrics(
    service_name: str = "certstore",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
    export_interval_ms: int = 60000
) -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Args:
        service_name: Name of the service
        otlp_endpoint: OTLP exporter endpoint
        console_export: Enable console export for debugging
        export_interval_ms: Export interval in milliseconds

    Returns:
        Configured meter
    """
    global _meter

    readers = []

    if otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True)
        readers.append(PeriodicExportingMetricReader(
            otlp_exporter,
            export_interval_millis=export_interval_ms
        ))
        logger.info(f"OTel metrics: OTLP exporter configured -> {otlp_endpoint}")

    if console_export:
        readers.append(PeriodicExportingMetricReader(
            ConsoleMetricExporter(),
            export_interval_millis=export_interval_ms
        ))
        logger.info("OTel metrics: Console exporter enabled")

    resource = Resource.create({SERVICE_NAME: service_name})

    provider = MeterProvider(resource=resource, metric_readers=readers)
    metrics.set_meter_provider(provider)

    _meter = metrics.get_meter(METER_NAME)
    _counters.clear()
    _histograms.clear()

    logger.info(f"OTel metrics initialized: {service_name}")

    return _meter


def get_meter() -> metrics.Meter:
    """Get the global meter."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(METER_NAME)
    return _meter


def _counter(name: str) -> metrics.Counter:
    if name not in _counters:
        _counters[name] = get_meter().create_counter(
            name,
            description=_DESCRIPTIONS.get(name, name),
            unit="1"
        )
    return _counters[name]


def _histogram(name: str) -> metrics.Histogram:
    if name not in _histograms:
        unit = "By" if name == STORED_BYTES else "s"
        _histograms[name] = get_meter().create_histogram(
            name,
            description=_DESCRIPTIONS.get(name, name),
            unit=unit
        )
    return _histograms[name]


def record_counter(
    name: str,
    value: int = 1,
    attributes: Dict[str, Any] = None
):
    """Record a counter metric."""
    _counter(name).add(value, attributes or {})


def record_histogram(
    name: str,
    value: float,
    attributes: Dict[str, Any] = None
):
    """Record a histogram metric."""
    _histogram(name).record(value, attributes or {})
