"""OpenTelemetry instrumentation for tests.

Spectra wraps a running test to create a span for it, capture its log
output as span events and record duration and count metrics when it
completes, so that test runs become observable in a tracing backend.

Example::

    session = spectra.init(
        service_name="my-service-tests",
        endpoint="grpc://localhost:4317",
    )
    try:
        st = session.new(handle)
        st.log("hello")
    finally:
        session.shutdown()

With pytest, pass ``--spectra`` and use the ``spectra_test`` fixture.
"""

import os
from typing import Any, Dict, Optional

from colorama import Fore
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.trace.export import SpanExporter
from opentelemetry.util.re import parse_env_headers

from spectra.config import (
    SpectraConfig,
    is_logs_enabled,
    is_metrics_enabled,
    is_tracing_enabled,
    should_suppress_warnings,
    validate_config,
)
from spectra.errors import (
    AlreadyShutdownError,
    BackendError,
    ConfigError,
    InvalidEndpointError,
    MissingEndpointError,
    MissingServiceNameError,
    NotInitializedError,
    SpectraError,
)
from spectra.metrics.metrics import (
    MetricsRegistry,
    init_metrics_exporter,
    init_metrics_provider,
    init_metrics_reader,
)
from spectra.session import Spectra
from spectra.tracing.traced_test import TracedTest
from spectra.tracing.tracing import (
    create_resource,
    init_spans_exporter,
    init_spans_processor,
    init_tracer_provider,
)

__version__ = "0.1.0"

__all__ = [
    "init",
    "Spectra",
    "TracedTest",
    "SpectraConfig",
    "SpectraError",
    "ConfigError",
    "MissingServiceNameError",
    "MissingEndpointError",
    "InvalidEndpointError",
    "NotInitializedError",
    "AlreadyShutdownError",
    "BackendError",
]


def init(
    service_name: Optional[str] = None,
    endpoint: Optional[str] = None,
    insecure: bool = False,
    shutdown_timeout: Optional[float] = None,
    disable_traces: bool = False,
    disable_metrics: bool = False,
    disable_logs: bool = False,
    headers: Optional[Dict[str, str]] = None,
    resource_attributes: Optional[Dict[str, Any]] = None,
    exporter: Optional[SpanExporter] = None,
    metric_reader: Optional[MetricReader] = None,
    disable_batch: bool = False,
) -> Spectra:
    """Set up trace and metric export for the test process.

    ``service_name`` and ``endpoint`` fall back to ``OTEL_SERVICE_NAME`` and
    ``OTEL_EXPORTER_OTLP_ENDPOINT``. The endpoint selects the exporter by its
    scheme: ``grpc://host:port``, ``http://host:port`` (no TLS) or
    ``https://host:port``. ``exporter`` and ``metric_reader`` replace the
    OTLP exporters, e.g. with in-memory ones.

    The tracer and meter providers become the process-wide defaults, and
    the test metric instruments are created once per process.
    """
    headers = headers if headers is not None else os.getenv("OTEL_EXPORTER_OTLP_HEADERS")
    if isinstance(headers, str):
        headers = parse_env_headers(headers)

    cfg = validate_config(
        SpectraConfig(
            service_name=service_name or os.getenv("OTEL_SERVICE_NAME") or "",
            endpoint=endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "",
            insecure=insecure,
            shutdown_timeout=shutdown_timeout,
            disable_traces=disable_traces or not is_tracing_enabled(),
            disable_metrics=disable_metrics or not is_metrics_enabled(),
            disable_logs=disable_logs or not is_logs_enabled(),
            headers=headers or {},
            resource_attributes=resource_attributes or {},
        )
    )

    resource = create_resource(cfg)
    tracer_provider = None
    meter_provider = None

    if not cfg.disable_traces:
        try:
            tracer_provider = init_tracer_provider(
                resource,
                init_spans_processor(
                    exporter or init_spans_exporter(cfg), disable_batch
                ),
            )
        except Exception as e:
            raise BackendError(f"setup tracing: {e}") from e

    if not cfg.disable_metrics:
        try:
            meter_provider = init_metrics_provider(
                metric_reader or init_metrics_reader(init_metrics_exporter(cfg)),
                resource,
            )
        except Exception as e:
            raise BackendError(f"setup metrics: {e}") from e

        MetricsRegistry.ensure_initialized(meter_provider)

    _print_banner(cfg, custom_exporter=exporter is not None)

    return Spectra(
        config=cfg,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        initialized=True,
    )


def _print_banner(cfg: SpectraConfig, custom_exporter: bool) -> None:
    if should_suppress_warnings():
        return

    if cfg.disable_traces:
        print(Fore.YELLOW + "Spectra tracing is disabled" + Fore.RESET)
    elif custom_exporter:
        print(Fore.GREEN + "Spectra exporting test spans to a custom exporter" + Fore.RESET)
    else:
        print(Fore.GREEN + f"Spectra exporting test spans to {cfg.endpoint}" + Fore.RESET)

    if cfg.disable_metrics:
        print(Fore.YELLOW + "Spectra metrics are disabled" + Fore.RESET)
