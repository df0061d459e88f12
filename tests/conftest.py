import pandas as pd
import pytest

from app.sample_data import load_sample_data, sample_records
from casechat_analytics.results import build_result_rows

NOW = pd.Timestamp("2025-10-15T12:00:00Z")


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def sample_data():
    return load_sample_data(now=NOW)


@pytest.fixture()
def raw_records():
    return sample_records(now=NOW)


@pytest.fixture()
def result_rows(sample_data):
    return build_result_rows(sample_data)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Records every request and answers from a ``(method, path) -> response`` table."""

    def __init__(self, routes=None, base_url="http://api.test"):
        self.headers = {}
        self.routes = dict(routes or {})
        self.base_url = base_url
        self.calls = []

    def request(self, method, url, **kwargs):
        path = url[len(self.base_url):]
        self.calls.append({"method": method, "path": path, **kwargs})
        answer = self.routes.get((method, path))
        if answer is None:
            return FakeResponse({"data": None, "error": {"message": f"No route {method} {path}"}}, status_code=404)
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            answer = answer(**kwargs)
        if isinstance(answer, FakeResponse):
            return answer
        return FakeResponse({"data": answer, "error": None})


@pytest.fixture()
def fake_session():
    return FakeSession()
