import logging
import threading
from typing import Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import TracerProvider

from spectra.config import SpectraConfig
from spectra.errors import AlreadyShutdownError, NotInitializedError
from spectra.handles import RunnerHandle
from spectra.semconv import TRACER_NAME, SpanAttributes
from spectra.tracing.traced_test import TracedTest

logger = logging.getLogger(__name__)


class Spectra(object):
    """A telemetry session for one test process.

    Built by :func:`spectra.init`; a ``Spectra()`` created any other way is
    not initialized and refuses to create tests. After :meth:`shutdown`
    the instance stays around as an inert handle.
    """

    def __init__(
        self,
        config: Optional[SpectraConfig] = None,
        tracer_provider: Optional[TracerProvider] = None,
        meter_provider: Optional[MeterProvider] = None,
        initialized: bool = False,
    ):
        self._config = config or SpectraConfig()
        self._tracer_provider = tracer_provider
        self._meter_provider = meter_provider
        self._tracer = (
            tracer_provider.get_tracer(TRACER_NAME) if tracer_provider else None
        )
        self._initialized = initialized
        self._shutdown = False
        self._lock = threading.Lock()
        self._shutdown_lock = threading.Lock()
        self._shutdown_done = False

    @property
    def config(self) -> SpectraConfig:
        return self._config

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def is_shutdown(self) -> bool:
        with self._lock:
            return self._shutdown

    @property
    def logs_enabled(self) -> bool:
        return not self._config.disable_logs

    @property
    def tracer(self) -> trace.Tracer:
        # With traces disabled, spans go to whatever the global provider is
        if self._tracer is not None:
            return self._tracer
        return trace.get_tracer(TRACER_NAME)

    def new(self, tb: RunnerHandle) -> TracedTest:
        """Start the root span of a test and wrap its handle.

        The span is ended by a cleanup registered on ``tb``, once the test
        completes.
        """
        tb.helper()

        if not self._initialized:
            raise NotInitializedError()

        with self._lock:
            if self._shutdown:
                raise AlreadyShutdownError()

        tracer = self.tracer
        name = tb.name()
        span = tracer.start_span(
            name,
            context=Context(),
            attributes={SpanAttributes.TEST_NAME: name},
        )
        ctx = trace.set_span_in_context(span, Context())

        t = TracedTest(tb, ctx, span, tracer, session=self)
        tb.cleanup(t.finalize)
        return t

    def shutdown(self) -> None:
        with self._shutdown_lock:
            if self._shutdown_done:
                return
            self._shutdown_done = True

            with self._lock:
                self._shutdown = True

            timeout_millis = self._config.shutdown_timeout_millis

            if self._tracer_provider is not None:
                try:
                    if not self._tracer_provider.force_flush(timeout_millis):
                        logger.warning(
                            "spectra: timed out flushing spans after %dms",
                            timeout_millis,
                        )
                    self._tracer_provider.shutdown()
                except Exception:
                    logger.exception("spectra: failed to shutdown tracer provider")

            if self._meter_provider is not None:
                try:
                    self._meter_provider.shutdown(timeout_millis=timeout_millis)
                except Exception:
                    logger.exception("spectra: failed to shutdown meter provider")
