from typing import Callable

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode, format_trace_id

from spectra.handles import SupportsParallel, SupportsSubtests
from spectra.semconv import Events, SpanAttributes, TestStatus

STATUS_SUBTEST_FAILED = "subtest failed"


class SubtestMixin(object):
    def run(self, name: str, fn: Callable) -> bool:
        """Run ``fn`` as a subtest whose span is a child of this test's span.

        ``fn`` receives the traced subtest. Returns whether the subtest
        passed. Fails this test when its handle cannot run subtests.
        """
        self.helper()

        if not isinstance(self._tb, SupportsSubtests):
            self.fatal("spectra: run() requires a test handle that supports subtests")
            return False

        def body(inner):
            inner.helper()

            inner_name = inner.name()
            span = self._tracer.start_span(
                inner_name,
                context=self._ctx,
                attributes={
                    SpanAttributes.TEST_NAME: inner_name,
                    SpanAttributes.TEST_PARENT: self.name(),
                },
            )
            ctx = trace.set_span_in_context(span, self._ctx)

            st = type(self)(inner, ctx, span, self._tracer, session=self._session)
            inner.cleanup(st._finalize_subtest)

            fn(st)

        return self._tb.run(name, body)

    def parallel(self) -> None:
        """Mark the test as runnable alongside its siblings.

        The trace id is recorded on the span first, since the runner no
        longer keeps the test ordered under its parent. Ignored when the
        handle cannot run tests in parallel.
        """
        self.helper()

        if not isinstance(self._tb, SupportsParallel):
            return

        self._span.add_event(
            Events.PARALLEL,
            attributes={
                SpanAttributes.EVENT_PARENT_TRACE_ID: format_trace_id(
                    self._span.get_span_context().trace_id
                ),
            },
        )
        self._tb.parallel()

    def _finalize_subtest(self) -> None:
        with self._lock:
            if self._finalized:
                return
            self._finalized = True

        if self._tb.failed():
            status, outcome = (
                Status(StatusCode.ERROR, STATUS_SUBTEST_FAILED),
                TestStatus.FAIL,
            )
        elif self._tb.skipped():
            status, outcome = Status(StatusCode.OK), TestStatus.SKIP
        else:
            status, outcome = Status(StatusCode.OK), TestStatus.PASS

        self._span.set_attribute(SpanAttributes.TEST_STATUS, outcome.value)
        self._span.set_status(status)
        self._span.end()
