import threading
import time
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from opentelemetry.context import Context
from opentelemetry.trace import Span, Status, StatusCode, Tracer
from opentelemetry.util.types import Attributes

from spectra.handles import RunnerHandle
from spectra.metrics.metrics import record_test_metrics
from spectra.semconv import Events, LogLevels, SpanAttributes, TestStatus
from spectra.tracing.span import SpanMixin
from spectra.tracing.subtest import SubtestMixin
from spectra.utils import format_args, formatf

if TYPE_CHECKING:
    from spectra.session import Spectra

STATUS_TEST_FATAL = "test fatal"
STATUS_TEST_FAILED = "test failed"
STATUS_TEST_SKIPPED = "test skipped"


class TracedTest(SpanMixin, SubtestMixin):
    """A running test together with the span that represents it.

    Every logging call is forwarded to the wrapped handle and, unless the
    session disabled log capture, mirrored as a ``log`` span event. The span
    is finalized exactly once, by the cleanup registered when the test was
    created: its status is derived from the test outcome, the span is ended
    and only then are the test metrics recorded.

    Anything the wrapper does not define is looked up on the handle.
    """

    def __init__(
        self,
        tb: RunnerHandle,
        ctx: Context,
        span: Span,
        tracer: Tracer,
        session: Optional["Spectra"] = None,
    ):
        self._tb = tb
        self._ctx = ctx
        self._span = span
        self._tracer = tracer
        self._session = session
        self._lock = threading.Lock()
        self._failed = False
        self._finalized = False
        self._start_time = time.monotonic()

    def __getattr__(self, item):
        if item.startswith("_"):
            raise AttributeError(item)
        return getattr(self._tb, item)

    @property
    def tb(self) -> RunnerHandle:
        return self._tb

    @property
    def context(self) -> Context:
        return self._ctx

    @property
    def span(self) -> Span:
        return self._span

    def name(self) -> str:
        return self._tb.name()

    def helper(self) -> None:
        self._tb.helper()

    def cleanup(self, fn) -> None:
        self._tb.cleanup(fn)

    def set_attributes(self, attributes: Dict[str, object]) -> None:
        self._span.set_attributes(attributes)

    def add_event(self, name: str, attributes: Attributes = None) -> None:
        self._span.add_event(name, attributes=attributes)

    def log(self, *args) -> None:
        self.helper()
        self._tb.log(*args)
        self._record_log(format_args(*args), LogLevels.INFO)

    def logf(self, fmt: str, *args) -> None:
        self.helper()
        self._tb.logf(fmt, *args)
        self._record_log(formatf(fmt, *args), LogLevels.INFO)

    def error(self, *args) -> None:
        self.helper()
        self._set_failed()
        self._tb.error(*args)
        self._record_log(format_args(*args), LogLevels.ERROR)

    def errorf(self, fmt: str, *args) -> None:
        self.helper()
        self._set_failed()
        self._tb.errorf(fmt, *args)
        self._record_log(formatf(fmt, *args), LogLevels.ERROR)

    # fatal, skip and their variants write the event and the status before
    # forwarding: the handle call does not return.

    def fatal(self, *args) -> None:
        __tracebackhide__ = True
        self.helper()
        self._set_failed()
        self._record_log(format_args(*args), LogLevels.FATAL)
        self._span.set_status(Status(StatusCode.ERROR, STATUS_TEST_FATAL))
        self._tb.fatal(*args)

    def fatalf(self, fmt: str, *args) -> None:
        __tracebackhide__ = True
        self.helper()
        self._set_failed()
        self._record_log(formatf(fmt, *args), LogLevels.FATAL)
        self._span.set_status(Status(StatusCode.ERROR, STATUS_TEST_FATAL))
        self._tb.fatalf(fmt, *args)

    def fail_now(self) -> None:
        __tracebackhide__ = True
        self.helper()
        self._set_failed()
        self._record_log(STATUS_TEST_FAILED, LogLevels.FATAL)
        self._span.set_status(Status(StatusCode.ERROR, STATUS_TEST_FATAL))
        self._tb.fail_now()

    def skip(self, *args) -> None:
        __tracebackhide__ = True
        self.helper()
        self._record_log(format_args(*args), LogLevels.SKIP)
        self._set_skipped_status()
        self._tb.skip(*args)

    def skipf(self, fmt: str, *args) -> None:
        __tracebackhide__ = True
        self.helper()
        self._record_log(formatf(fmt, *args), LogLevels.SKIP)
        self._set_skipped_status()
        self._tb.skipf(fmt, *args)

    def skip_now(self) -> None:
        __tracebackhide__ = True
        self.helper()
        self._record_log(STATUS_TEST_SKIPPED, LogLevels.SKIP)
        self._set_skipped_status()
        self._tb.skip_now()

    def finalize(self) -> None:
        """Set the final status, end the span, then record the metrics."""
        with self._lock:
            if self._finalized:
                return
            self._finalized = True

        duration = time.monotonic() - self._start_time
        status, outcome = self._determine_status()

        self._span.set_attribute(SpanAttributes.TEST_STATUS, outcome.value)
        self._span.set_status(status)
        self._span.end()

        record_test_metrics(self.name(), duration, outcome.value)

    def _set_failed(self) -> None:
        with self._lock:
            self._failed = True

    def _has_failed(self) -> bool:
        with self._lock:
            return self._failed

    def _set_skipped_status(self) -> None:
        # OK is final, so a test that already failed keeps room for ERROR
        if not self._has_failed():
            self._span.set_status(Status(StatusCode.OK))

    def _record_log(self, message: str, level: str) -> None:
        if self._session is not None and not self._session.logs_enabled:
            return
        self._span.add_event(
            Events.LOG,
            attributes={
                SpanAttributes.EVENT_MESSAGE: message,
                SpanAttributes.EVENT_LEVEL: level,
            },
        )

    def _determine_status(self) -> Tuple[Status, TestStatus]:
        if self._has_failed() or self._tb.failed():
            return Status(StatusCode.ERROR, STATUS_TEST_FAILED), TestStatus.FAIL
        elif self._tb.skipped():
            return Status(StatusCode.OK), TestStatus.SKIP
        else:
            return Status(StatusCode.OK), TestStatus.PASS
