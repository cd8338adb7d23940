"""pytest integration.

Registered through the ``pytest11`` entry point. Tests request the
``spectra_test`` fixture to get a :class:`~spectra.TracedTest` for
themselves::

    def test_checkout(spectra_test):
        spectra_test.log("creating cart")
        spectra_test.run("empty cart", check_empty_cart)

Export is off unless ``--spectra`` is given; without it spans go to
whatever global tracer provider the process has installed.
"""

from typing import Dict, Optional

import pytest

import spectra
from spectra.config import SpectraConfig
from spectra.handles import BaseHandle
from spectra.session import Spectra
from spectra.tracing.traced_test import TracedTest

session_key = pytest.StashKey[Spectra]()
handle_key = pytest.StashKey["PytestHandle"]()
phase_report_key = pytest.StashKey[Dict[str, pytest.TestReport]]()


class PytestHandle(BaseHandle):
    """Handle over the pytest item that requested a fixture.

    ``failed()`` and ``skipped()`` take pytest's own reports into account,
    so an assertion error or a ``pytest.skip`` in the test body shows in
    the verdict. Errors recorded through ``error()`` and failed subtests
    fail the test once its body returned.
    """

    def __init__(self, request: pytest.FixtureRequest):
        super().__init__()
        self._request = request
        self._item = request.node
        self._item.stash[handle_key] = self
        request.addfinalizer(self.release_parallel_subtests)

    def name(self) -> str:
        return self._item.name

    def cleanup(self, fn) -> None:
        self._request.addfinalizer(fn)

    def failed(self) -> bool:
        if super().failed():
            return True
        return any(rep.failed for rep in self._reports().values())

    def skipped(self) -> bool:
        if super().skipped():
            return True
        return any(rep.skipped for rep in self._reports().values())

    def _reports(self) -> Dict[str, pytest.TestReport]:
        return self._item.stash.get(phase_report_key, {})


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("spectra", "OpenTelemetry test instrumentation")
    group.addoption(
        "--spectra",
        action="store_true",
        default=False,
        help="Export test spans and metrics over OTLP.",
    )
    group.addoption(
        "--spectra-service-name",
        default=None,
        help="Service name of the test telemetry (default: $OTEL_SERVICE_NAME).",
    )
    group.addoption(
        "--spectra-endpoint",
        default=None,
        help="OTLP endpoint: grpc://, http:// or https://host:port "
        "(default: $OTEL_EXPORTER_OTLP_ENDPOINT).",
    )
    group.addoption(
        "--spectra-insecure",
        action="store_true",
        default=False,
        help="Disable TLS verification of the OTLP exporter.",
    )
    group.addoption(
        "--spectra-shutdown-timeout",
        type=float,
        default=None,
        help="Seconds to wait for telemetry to drain at exit (default: 5).",
    )
    group.addoption(
        "--spectra-no-traces",
        action="store_true",
        default=False,
        help="Do not export traces.",
    )
    group.addoption(
        "--spectra-no-metrics",
        action="store_true",
        default=False,
        help="Do not export metrics.",
    )
    group.addoption(
        "--spectra-no-logs",
        action="store_true",
        default=False,
        help="Do not capture test log output as span events.",
    )


def pytest_configure(config: pytest.Config) -> None:
    if not config.getoption("spectra", default=False):
        return

    config.stash[session_key] = spectra.init(
        service_name=config.getoption("spectra_service_name"),
        endpoint=config.getoption("spectra_endpoint"),
        insecure=config.getoption("spectra_insecure"),
        shutdown_timeout=config.getoption("spectra_shutdown_timeout"),
        disable_traces=config.getoption("spectra_no_traces"),
        disable_metrics=config.getoption("spectra_no_metrics"),
        disable_logs=config.getoption("spectra_no_logs"),
    )


def pytest_unconfigure(config: pytest.Config) -> None:
    session = config.stash.get(session_key, None)
    if session is not None:
        session.shutdown()


def pytest_report_header(config: pytest.Config) -> Optional[str]:
    session = config.stash.get(session_key, None)
    if session is None:
        return "spectra: export disabled"
    return f"spectra: exporting to {session.config.endpoint}"


@pytest.hookimpl(wrapper=True, tryfirst=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    rep = yield
    item.stash.setdefault(phase_report_key, {})[rep.when] = rep
    return rep


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item):
    handle = item.stash.get(handle_key, None)
    result = None
    try:
        result = yield
    except pytest.skip.Exception:
        # Recorded errors outrank a later skip
        if handle is None or not handle.errors():
            raise
    finally:
        if handle is not None:
            handle.release_parallel_subtests()

    if handle is not None and handle.errors():
        pytest.fail("\n".join(handle.errors()), pytrace=False)
    return result


def _local_session(config: pytest.Config) -> Spectra:
    session = config.stash.get(session_key, None)
    if session is None:
        session = Spectra(
            config=SpectraConfig(
                service_name="pytest",
                disable_traces=True,
                disable_metrics=True,
                disable_logs=config.getoption("spectra_no_logs", default=False),
            ),
            initialized=True,
        )
        config.stash[session_key] = session
    return session


@pytest.fixture(scope="session")
def spectra_session(pytestconfig: pytest.Config) -> Spectra:
    """The telemetry session of this pytest run."""
    return _local_session(pytestconfig)


@pytest.fixture
def spectra_test(request: pytest.FixtureRequest, spectra_session: Spectra) -> TracedTest:
    """A traced wrapper around the requesting test."""
    return spectra_session.new(PytestHandle(request))
