"""Unit tests configuration module."""

import pytest
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

import spectra
from spectra.handles import BaseHandle
from spectra.utils import format_args, formatf

pytest_plugins = ["pytester"]


class FakeHandle(object):
    """Records what the wrapper forwards; fatal and skip return normally."""

    def __init__(self, name):
        self._name = name
        self.cleanups = []
        self.messages = []
        self.is_failed = False
        self.is_skipped = False

    def name(self):
        return self._name

    def helper(self):
        pass

    def log(self, *args):
        self.messages.append(("log", format_args(*args)))

    def logf(self, fmt, *args):
        self.messages.append(("log", formatf(fmt, *args)))

    def error(self, *args):
        self.is_failed = True
        self.messages.append(("error", format_args(*args)))

    def errorf(self, fmt, *args):
        self.is_failed = True
        self.messages.append(("error", formatf(fmt, *args)))

    def fatal(self, *args):
        self.is_failed = True
        self.messages.append(("fatal", format_args(*args)))

    def fatalf(self, fmt, *args):
        self.is_failed = True
        self.messages.append(("fatal", formatf(fmt, *args)))

    def skip(self, *args):
        self.is_skipped = True
        self.messages.append(("skip", format_args(*args)))

    def skipf(self, fmt, *args):
        self.is_skipped = True
        self.messages.append(("skip", formatf(fmt, *args)))

    def fail_now(self):
        self.is_failed = True

    def skip_now(self):
        self.is_skipped = True

    def failed(self):
        return self.is_failed

    def skipped(self):
        return self.is_skipped

    def cleanup(self, fn):
        self.cleanups.append(fn)

    def temp_dir(self):
        return "/tmp/fake"

    def run_cleanups(self):
        while self.cleanups:
            self.cleanups.pop()()


class FakeParallelHandle(FakeHandle):
    def __init__(self, name):
        super().__init__(name)
        self.parallel_calls = 0

    def parallel(self):
        self.parallel_calls += 1


class RootHandle(BaseHandle):
    """In-process top-level handle able to run subtests."""

    def __init__(self, name):
        super().__init__()
        self._name = name
        self.cleanups = []

    def name(self):
        return self._name

    def cleanup(self, fn):
        self.cleanups.append(fn)

    def finish(self):
        self.release_parallel_subtests()
        while self.cleanups:
            self.cleanups.pop()()


@pytest.fixture(scope="session")
def telemetry():
    exporter = InMemorySpanExporter()
    reader = InMemoryMetricReader()
    session = spectra.init(
        service_name="test",
        endpoint="grpc://localhost:4317",
        resource_attributes={"something": "yes"},
        exporter=exporter,
        metric_reader=reader,
        disable_batch=True,
    )
    yield session, exporter, reader
    session.shutdown()


@pytest.fixture(scope="session")
def sp(telemetry):
    return telemetry[0]


@pytest.fixture(scope="session")
def exporter(telemetry):
    return telemetry[1]


@pytest.fixture(scope="session")
def reader(telemetry):
    return telemetry[2]


@pytest.fixture(autouse=True)
def clear_exporter(exporter):
    exporter.clear()


@pytest.fixture
def fake_handle():
    return FakeHandle


@pytest.fixture
def fake_parallel_handle():
    return FakeParallelHandle


@pytest.fixture
def root_handle():
    return RootHandle


@pytest.fixture
def spans_named(exporter):
    def _spans_named(name):
        return [s for s in exporter.get_finished_spans() if s.name == name]

    return _spans_named


@pytest.fixture
def data_points(reader):
    def _data_points(metric_name, test_name):
        points = []
        metrics_data = reader.get_metrics_data()
        if metrics_data is None:
            return points
        for rm in metrics_data.resource_metrics:
            for sm in rm.scope_metrics:
                for metric in sm.metrics:
                    if metric.name != metric_name:
                        continue
                    for data_point in metric.data.data_points:
                        if data_point.attributes.get("test.name") == test_name:
                            points.append(data_point)
        return points

    return _data_points
