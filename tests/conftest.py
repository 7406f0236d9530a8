import sys
from concurrent.futures import Future
from pathlib import Path

import pytest

# Allow tests to import the package from src without installation
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from frmirror.fields import PostKind  # noqa: E402
from frmirror.store import FieldStore, InMemoryPostStore, User  # noqa: E402


class StubResponse:
    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text

    def json(self):
        if isinstance(self._json_data, Exception):
            raise self._json_data
        return self._json_data


class StubSession:
    def __init__(self):
        self.post_calls = []
        self.request_calls = []
        self.mounted = {}
        self.post_response = StubResponse()
        self.request_response = StubResponse()

    def mount(self, prefix, adapter):
        self.mounted[prefix] = adapter

    def post(self, url, json=None, verify=None, timeout=None):
        self.post_calls.append(
            {"url": url, "json": json, "verify": verify, "timeout": timeout}
        )
        return self.post_response

    def request(self, method, url, headers=None, params=None, verify=None, timeout=None, **kwargs):
        self.request_calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers or {},
                "params": params or {},
                "verify": verify,
                "timeout": timeout,
                "kwargs": kwargs,
            }
        )
        return self.request_response


class DummyClient:
    """
    Lightweight stand-in for the REST Client used by entity and mirror tests.
    """

    def __init__(self):
        self.calls = []
        self.responses = {}

    def queue_response(self, method, endpoint, response):
        self.responses[(method, endpoint)] = response

    def _take(self, method, endpoint):
        key = (method, endpoint)
        if key not in self.responses:
            raise AssertionError(f"No queued response for {method} {endpoint}")
        response = self.responses[key]
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, endpoint, **kwargs):
        self.calls.append(("get", endpoint, kwargs))
        return self._take("get", endpoint)

    def post(self, endpoint, json=None, **kwargs):
        self.calls.append(("post", endpoint, json, kwargs))
        return self._take("post", endpoint)

    def delete(self, endpoint, **kwargs):
        self.calls.append(("delete", endpoint, kwargs))
        # delete endpoints usually return empty responses; supply stub if not provided
        if ("delete", endpoint) in self.responses:
            return self._take("delete", endpoint)
        return StubResponse(status_code=200, json_data={})

    def GET(self, *parts, **params):
        return self.get("/".join(str(p) for p in parts), **params)

    def POST(self, *parts, **json):
        return self.post("/".join(str(p) for p in parts), json=json)


class ManualExecutor:
    """Executor that runs submitted calls only when the test says so."""

    def __init__(self):
        self.queue = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_next(self):
        future, fn, args, kwargs = self.queue.pop(0)
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def run_all(self):
        while self.queue:
            self.run_next()

    def shutdown(self, wait=True):
        self.queue.clear()


class ManualScheduler:
    """Records delayed callbacks instead of starting timers."""

    def __init__(self):
        self.scheduled = []

    def __call__(self, delay, callback):
        self.scheduled.append((delay, callback))

    def fire_all(self):
        scheduled, self.scheduled = self.scheduled, []
        for _delay, callback in scheduled:
            callback()


@pytest.fixture
def dummy_client():
    return DummyClient()


@pytest.fixture
def stub_session():
    return StubSession()


@pytest.fixture
def frozen_time(monkeypatch):
    """
    Fix time.time() used by frmirror.client at a deterministic value.
    """
    current = 1_000.0
    monkeypatch.setattr("frmirror.client.time.time", lambda: current)
    return current


@pytest.fixture
def post_store():
    return InMemoryPostStore()


@pytest.fixture
def field_store(post_store):
    return FieldStore(post_store)


@pytest.fixture
def editor():
    return User("editor", frozenset({"read", "edit_posts"}))


@pytest.fixture
def subscriber():
    return User("subscriber", frozenset({"read"}))


@pytest.fixture
def article(post_store):
    return post_store.create_post(PostKind.ARTICLE, "Council meeting")


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def scheduler():
    return ManualScheduler()
