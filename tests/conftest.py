"""Shared fixtures for the sorting studio tests."""

import pytest

from app import RUNS, app as flask_app


class FakeHandle:
    def __init__(self, delay, callback, args):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records ``call_later`` requests; tests fire them by hand."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled and h.callback is not None]

    def fire(self, handle):
        callback, handle.callback = handle.callback, None
        return callback(*handle.args)

    def fire_next(self):
        return self.fire(self.pending[0])


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    RUNS.clear()
    yield flask_app
    RUNS.clear()


@pytest.fixture
def client(app):
    return app.test_client()
