from typing import Callable, Tuple

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span
from opentelemetry.util.types import Attributes

from spectra.semconv import SpanAttributes, TestPhases


class SpanMixin(object):
    def start_span(
        self, name: str, attributes: Attributes = None, **kwargs
    ) -> Tuple[Context, Span]:
        """Start a child span of the test span.

        The caller owns the span and must end it::

            ctx, span = st.start_span("db-query")
            try:
                run_query(ctx)
            finally:
                span.end()
        """
        span = self._tracer.start_span(
            name, context=self._ctx, attributes=attributes, **kwargs
        )
        return trace.set_span_in_context(span, self._ctx), span

    def setup(self, fn: Callable[[Context], None]) -> None:
        """Run ``fn`` inside a ``<test>/setup`` span, ended when it returns."""
        self.helper()
        self._run_phase(TestPhases.SETUP, fn)

    def teardown(self, fn: Callable[[Context], None]) -> None:
        """Register ``fn`` to run inside a ``<test>/teardown`` span at cleanup.

        Cleanups run last-in first-out, so the teardown happens before the
        test span itself is finalized.
        """
        self.helper()
        self.cleanup(lambda: self._run_phase(TestPhases.TEARDOWN, fn))

    def _run_phase(self, phase: str, fn: Callable[[Context], None]) -> None:
        span = self._tracer.start_span(
            f"{self.name()}/{phase}",
            context=self._ctx,
            attributes={SpanAttributes.TEST_PHASE: phase},
        )
        with trace.use_span(span, end_on_exit=True):
            fn(trace.set_span_in_context(span, self._ctx))
