import sys
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class ManualExecutor(Executor):
    """Executor that only runs submitted work when a test says so.

    Lets tests resolve concurrent fetches in any order they like.
    """

    def __init__(self):
        self.jobs = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    @property
    def pending(self):
        return sum(1 for future, *_ in self.jobs if not future.done())

    def run(self, index):
        future, fn, args, kwargs = self.jobs[index]
        if future.done():
            return
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # pragma: no cover - surfaced through the future
            future.set_exception(exc)

    def run_all(self):
        for index in range(len(self.jobs)):
            self.run(index)

    def shutdown(self, wait=True, *, cancel_futures=False):
        pass


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class RecordingFetch:
    """Fetch contract over an in-memory collection of *total* rows."""

    def __init__(self, total=25, fail_with=None):
        self.total = total
        self.fail_with = fail_with
        self.calls = []

    def __call__(self, args):
        from dashview.domain.models.result import FetchResult

        self.calls.append(args)
        if self.fail_with is not None:
            raise self.fail_with
        start = args.page_index * args.page_size
        stop = min(start + args.page_size, self.total)
        rows = [{"id": i, "name": f"item-{i}"} for i in range(start, stop)]
        return FetchResult(rows, self.total)


@pytest.fixture
def fetch():
    return RecordingFetch()
