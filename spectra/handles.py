"""Test runner handles.

A handle is what a :class:`~spectra.tracing.traced_test.TracedTest` wraps:
it names the running test, reports its verdict, takes log output and
registers cleanups. The capability sets are plain protocols so any runner
(or a test double) can provide them.

:class:`SubtestHandle` runs nested subtests in-process. Each subtest body
gets its own thread; a subtest that calls :meth:`SubtestHandle.parallel`
pauses until the body of its parent has returned and then runs alongside
its parallel siblings. The parent waits for all of them before its own
cleanups run.
"""

import logging
import threading
import traceback
from typing import Callable, List, NoReturn, Protocol, runtime_checkable

import pytest

from spectra.utils import format_args, formatf

logger = logging.getLogger(__name__)


@runtime_checkable
class RunnerHandle(Protocol):
    def name(self) -> str: ...

    def helper(self) -> None: ...

    def log(self, *args) -> None: ...

    def logf(self, fmt: str, *args) -> None: ...

    def error(self, *args) -> None: ...

    def errorf(self, fmt: str, *args) -> None: ...

    def fatal(self, *args) -> NoReturn: ...

    def fatalf(self, fmt: str, *args) -> NoReturn: ...

    def skip(self, *args) -> NoReturn: ...

    def skipf(self, fmt: str, *args) -> NoReturn: ...

    def fail_now(self) -> NoReturn: ...

    def skip_now(self) -> NoReturn: ...

    def failed(self) -> bool: ...

    def skipped(self) -> bool: ...

    def cleanup(self, fn: Callable[[], None]) -> None: ...


@runtime_checkable
class SupportsSubtests(Protocol):
    def run(self, name: str, fn: Callable[["SubtestHandle"], None]) -> bool: ...


@runtime_checkable
class SupportsParallel(Protocol):
    def parallel(self) -> None: ...


class BaseHandle(object):
    """Shared bookkeeping of the in-process handles.

    Messages go to the ``spectra.handles`` logger, prefixed with the test
    name. ``fatal`` and ``skip`` end the test by raising pytest's outcome
    exceptions.
    """

    def __init__(self):
        self._state_lock = threading.Lock()
        self._failed = False
        self._skipped = False
        self._errors: List[str] = []
        self._children_lock = threading.Lock()
        self._parallel_children: List["SubtestHandle"] = []
        self._body_done = threading.Event()

    def run(self, name: str, fn: Callable[["SubtestHandle"], None]) -> bool:
        """Run ``fn`` as a subtest named ``<this test>/<name>``.

        Returns whether the subtest passed, or True right away when the
        subtest went parallel.
        """
        sub = SubtestHandle(self, name)
        sub.start(fn)
        sub.wait_until_yielded()

        if sub.is_parallel:
            with self._children_lock:
                self._parallel_children.append(sub)
            return True

        sub.join()
        return not sub.failed()

    def release_parallel_subtests(self) -> None:
        """Unpause parallel subtests and wait until all of them completed."""
        self._body_done.set()
        while True:
            with self._children_lock:
                if not self._parallel_children:
                    return
                child = self._parallel_children.pop(0)
            child.join()

    def wait_for_body(self) -> None:
        self._body_done.wait()

    def name(self) -> str:
        raise NotImplementedError

    def cleanup(self, fn: Callable[[], None]) -> None:
        raise NotImplementedError

    def helper(self) -> None:
        # pytest hides frames through __tracebackhide__ instead
        pass

    def log(self, *args) -> None:
        self._emit(logging.INFO, format_args(*args))

    def logf(self, fmt: str, *args) -> None:
        self._emit(logging.INFO, formatf(fmt, *args))

    def error(self, *args) -> None:
        self._record_error(format_args(*args))

    def errorf(self, fmt: str, *args) -> None:
        self._record_error(formatf(fmt, *args))

    def fatal(self, *args) -> NoReturn:
        __tracebackhide__ = True
        self._fail(format_args(*args))

    def fatalf(self, fmt: str, *args) -> NoReturn:
        __tracebackhide__ = True
        self._fail(formatf(fmt, *args))

    def fail_now(self) -> NoReturn:
        __tracebackhide__ = True
        self._fail("test failed")

    def skip(self, *args) -> NoReturn:
        __tracebackhide__ = True
        self._skip(format_args(*args))

    def skipf(self, fmt: str, *args) -> NoReturn:
        __tracebackhide__ = True
        self._skip(formatf(fmt, *args))

    def skip_now(self) -> NoReturn:
        __tracebackhide__ = True
        self._skip("test skipped")

    def failed(self) -> bool:
        with self._state_lock:
            return self._failed

    def skipped(self) -> bool:
        with self._state_lock:
            return self._skipped

    def errors(self) -> List[str]:
        with self._state_lock:
            return list(self._errors)

    def _emit(self, level: int, message: str) -> None:
        logger.log(level, "%s: %s", self.name(), message)

    def _record_error(self, message: str) -> None:
        with self._state_lock:
            self._failed = True
            self._errors.append(message)
        self._emit(logging.ERROR, message)

    def _mark_failed(self) -> None:
        with self._state_lock:
            self._failed = True

    def _mark_skipped(self) -> None:
        with self._state_lock:
            self._skipped = True

    def _fail(self, message: str) -> NoReturn:
        __tracebackhide__ = True
        self._record_error(message)
        pytest.fail(message, pytrace=False)

    def _skip(self, message: str) -> NoReturn:
        __tracebackhide__ = True
        self._mark_skipped()
        self._emit(logging.INFO, f"skipped: {message}")
        pytest.skip(message)

    def _child_failed(self, child: "SubtestHandle") -> None:
        with self._state_lock:
            self._failed = True
            self._errors.append(f"subtest {child.name()} failed")


class SubtestHandle(BaseHandle):
    def __init__(self, parent: BaseHandle, name: str):
        super().__init__()
        self._parent = parent
        self._name = f"{parent.name()}/{name}"
        self._cleanups: List[Callable[[], None]] = []
        self._is_parallel = False
        self._yielded = threading.Event()
        self._thread = None

    def name(self) -> str:
        return self._name

    @property
    def is_parallel(self) -> bool:
        return self._is_parallel

    def cleanup(self, fn: Callable[[], None]) -> None:
        with self._state_lock:
            self._cleanups.append(fn)

    def parallel(self) -> None:
        """Pause until the parent body returned, then run concurrently."""
        if self._is_parallel:
            return
        self._is_parallel = True
        self._yielded.set()
        self._parent.wait_for_body()

    def start(self, fn: Callable[["SubtestHandle"], None]) -> None:
        self._thread = threading.Thread(
            target=self._execute, args=(fn,), name=self._name, daemon=True
        )
        self._thread.start()

    def wait_until_yielded(self) -> None:
        self._yielded.wait()

    def join(self) -> None:
        if self._thread is not None:
            self._thread.join()

    def _execute(self, fn: Callable[["SubtestHandle"], None]) -> None:
        try:
            fn(self)
        except pytest.skip.Exception:
            self._mark_skipped()
        except pytest.fail.Exception:
            self._mark_failed()
        except Exception:
            self._record_error(traceback.format_exc())
        finally:
            try:
                self.release_parallel_subtests()
                self._run_cleanups()
            finally:
                if self.failed():
                    self._parent._child_failed(self)
                self._yielded.set()

    def _run_cleanups(self) -> None:
        while True:
            with self._state_lock:
                if not self._cleanups:
                    return
                fn = self._cleanups.pop()
            try:
                fn()
            except pytest.skip.Exception:
                self._mark_skipped()
            except pytest.fail.Exception:
                self._mark_failed()
            except Exception:
                self._record_error(traceback.format_exc())
