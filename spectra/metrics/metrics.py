import threading
from typing import Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter as GRPCExporter,
)
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter as HTTPExporter,
)
from opentelemetry.metrics import Counter, Histogram, MeterProvider as APIMeterProvider
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource

from spectra.config import SpectraConfig
from spectra.errors import BackendError
from spectra.semconv import METER_NAME, Meters, SpanAttributes
from spectra.tracing.tracing import Protocol, insecure_session, parse_protocol
from spectra.utils import dont_throw


class MetricsRegistry(object):
    """Process-wide test.duration and test.count instruments.

    The instruments are created once, no matter how many sessions are
    initialized; the outcome of that single attempt (including a failure)
    is what every later caller of ``ensure_initialized`` sees.
    """

    duration: Optional[Histogram] = None
    count: Optional[Counter] = None
    __lock = threading.Lock()
    __attempted: bool = False
    __init_error: Optional[BackendError] = None

    @classmethod
    def ensure_initialized(
        cls, meter_provider: Optional[APIMeterProvider] = None
    ) -> None:
        with cls.__lock:
            if not cls.__attempted:
                cls.__attempted = True
                try:
                    cls.__create_instruments(meter_provider)
                except Exception as e:
                    cls.__init_error = BackendError(f"init metrics: {e}")
                    cls.__init_error.__cause__ = e

            if cls.__init_error is not None:
                raise cls.__init_error

    @classmethod
    def __create_instruments(cls, meter_provider: Optional[APIMeterProvider]):
        if meter_provider is not None:
            meter = meter_provider.get_meter(METER_NAME)
        else:
            meter = metrics.get_meter(METER_NAME)

        try:
            duration = meter.create_histogram(
                name=Meters.TEST_DURATION,
                unit="s",
                description="Duration of test execution in seconds",
            )
        except Exception as e:
            raise BackendError(f"create duration histogram: {e}") from e

        try:
            count = meter.create_counter(
                name=Meters.TEST_COUNT,
                unit="{test}",
                description="Number of tests executed",
            )
        except Exception as e:
            raise BackendError(f"create count counter: {e}") from e

        cls.duration = duration
        cls.count = count

    @classmethod
    def is_initialized(cls) -> bool:
        return cls.duration is not None and cls.count is not None

    @classmethod
    @dont_throw
    def record(cls, test_name: str, duration: float, status: str) -> None:
        if not cls.is_initialized():
            return

        attributes = {
            SpanAttributes.TEST_NAME: test_name,
            SpanAttributes.TEST_STATUS: status,
        }
        cls.duration.record(duration, attributes=attributes)
        cls.count.add(1, attributes=attributes)

    @classmethod
    def reset(cls) -> None:
        """Forget the instruments; only meant for isolating tests."""
        with cls.__lock:
            cls.duration = None
            cls.count = None
            cls.__attempted = False
            cls.__init_error = None


def record_test_metrics(test_name: str, duration: float, status: str) -> None:
    MetricsRegistry.record(test_name, duration, str(status))


def init_metrics_exporter(cfg: SpectraConfig) -> MetricExporter:
    protocol, address = parse_protocol(cfg.endpoint)

    if protocol == Protocol.HTTP:
        return HTTPExporter(
            endpoint=f"http://{address}/v1/metrics", headers=cfg.headers
        )
    elif protocol == Protocol.HTTPS:
        if cfg.insecure:
            return HTTPExporter(
                endpoint=f"https://{address}/v1/metrics",
                headers=cfg.headers,
                session=insecure_session(),
            )
        return HTTPExporter(
            endpoint=f"https://{address}/v1/metrics", headers=cfg.headers
        )
    else:
        return GRPCExporter(
            endpoint=address, headers=cfg.headers, insecure=cfg.insecure
        )


def init_metrics_reader(exporter: MetricExporter) -> MetricReader:
    return PeriodicExportingMetricReader(exporter)


def init_metrics_provider(reader: MetricReader, resource: Resource) -> MeterProvider:
    provider = MeterProvider(metric_readers=[reader], resource=resource)

    metrics.set_meter_provider(provider)
    return provider
