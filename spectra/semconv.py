from enum import Enum

TRACER_NAME = "spectra"
METER_NAME = "spectra"


class SpanAttributes:
    TEST_NAME = "test.name"
    TEST_PARENT = "test.parent"
    TEST_PHASE = "test.phase"
    TEST_STATUS = "test.status"

    # Span event attributes
    EVENT_MESSAGE = "message"
    EVENT_LEVEL = "level"
    EVENT_PARENT_TRACE_ID = "parent.trace_id"


class Events:
    LOG = "log"
    PARALLEL = "parallel"


class LogLevels:
    INFO = "info"
    ERROR = "error"
    FATAL = "fatal"
    SKIP = "skip"


class TestPhases:
    __test__ = False

    SETUP = "setup"
    TEARDOWN = "teardown"


class TestStatus(str, Enum):
    __test__ = False

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


class Meters:
    TEST_DURATION = "test.duration"
    TEST_COUNT = "test.count"
