# tests/test_fetcher.py

import logging
import pytest
import requests

from pricecatalog.config import Settings
from pricecatalog.fetcher import Fetcher
from pricecatalog.proxy import ProxyPool
from pricecatalog.retry import RetryPolicy
from pricecatalog.exceptions import FetchTimeoutError, HTTPStatusError, NetworkError, RateLimitedError

test_log = logging.getLogger("tests")


class FakeResponse:
  def __init__(self, status_code=200, payload=None, headers=None):
    self.status_code = status_code
    self.payload = payload
    self.headers = headers or {}

  def json(self):
    if self.payload is None:
      raise ValueError("Expecting value: line 1 column 1 (char 0)")
    return self.payload


class FakeSession:
  """Replays queued responses or exceptions, recording every request."""
  def __init__(self, *outcomes):
    self.outcomes = list(outcomes)
    self.calls = []

  def request(self, method, url, **kwargs):
    self.calls.append((method, url, kwargs))
    outcome = self.outcomes.pop(0)
    if isinstance(outcome, Exception):
      raise outcome
    return outcome


def make_fetcher(*outcomes, routes=("http://p1:8080", "http://p2:8080"), max_retries=3):
  sleeps = []
  session = FakeSession(*outcomes)
  fetcher = Fetcher(
    proxy_pool=ProxyPool(routes),
    retry_policy=RetryPolicy(max_retries=max_retries, jitter=0.0, sleep=sleeps.append),
    timeout=5.0,
    session=session,
  )
  return fetcher, session, sleeps


def test_fetch_json_success():
  fetcher, session, sleeps = make_fetcher(FakeResponse(payload=[{"id": "1"}]))

  assert fetcher.fetch_json("https://example.com/api", params={"q": "cani"}) == [{"id": "1"}]
  method, url, kwargs = session.calls[0]
  assert method == "GET"
  assert kwargs["params"] == {"q": "cani"}
  assert kwargs["timeout"] == 5.0
  assert kwargs["proxies"] == {"http": "http://p1:8080", "https": "http://p1:8080"}
  assert "User-Agent" in kwargs["headers"]
  assert sleeps == []
  test_log.info("test_fetch_json_success completed successfully.")


def test_rate_limited_retries_on_next_route():
  fetcher, session, sleeps = make_fetcher(FakeResponse(status_code=429), FakeResponse(payload={"ok": True}))

  assert fetcher.fetch_json("https://example.com/api") == {"ok": True}
  routes = [kwargs["proxies"]["http"] for _, _, kwargs in session.calls]
  assert routes == ["http://p1:8080", "http://p2:8080"]
  assert len(sleeps) == 1


def test_blocked_403_is_rate_limited_and_honors_retry_after():
  fetcher, session, sleeps = make_fetcher(
    FakeResponse(status_code=403, headers={"Retry-After": "7"}), FakeResponse(payload=[]))

  assert fetcher.fetch_json("https://example.com/api") == []
  assert sleeps == [7.0]


def test_rate_limited_exhausted():
  fetcher, session, _ = make_fetcher(*[FakeResponse(status_code=429) for _ in range(3)], max_retries=2)

  with pytest.raises(RateLimitedError) as exc_info:
    fetcher.fetch("https://example.com/api")
  assert exc_info.value.status_code == 429
  assert len(session.calls) == 3


def test_client_error_not_retried():
  fetcher, session, sleeps = make_fetcher(FakeResponse(status_code=404))

  with pytest.raises(HTTPStatusError):
    fetcher.fetch("https://example.com/missing")
  assert len(session.calls) == 1
  assert sleeps == []


def test_server_error_is_network_error():
  fetcher, session, _ = make_fetcher(*[FakeResponse(status_code=503) for _ in range(2)], max_retries=1)

  with pytest.raises(NetworkError):
    fetcher.fetch("https://example.com/api")
  assert len(session.calls) == 2


def test_timeout_and_connection_errors_mapped():
  fetcher, _, _ = make_fetcher(requests.exceptions.Timeout("read timed out"), max_retries=0)
  with pytest.raises(FetchTimeoutError):
    fetcher.fetch("https://example.com/api")

  fetcher, _, _ = make_fetcher(requests.exceptions.ConnectionError("reset by peer"), max_retries=0)
  with pytest.raises(NetworkError):
    fetcher.fetch("https://example.com/api")


def test_invalid_json_body_raises_network_error():
  fetcher, session, _ = make_fetcher(FakeResponse(payload=None))

  with pytest.raises(NetworkError):
    fetcher.fetch_json("https://example.com/api")
  assert len(session.calls) == 1


def test_direct_route_sends_no_proxies():
  fetcher, session, _ = make_fetcher(FakeResponse(payload={}), routes=())

  fetcher.fetch("https://example.com/api")
  assert session.calls[0][2]["proxies"] is None


def test_from_settings_builds_pool_policy_and_timeout():
  settings = Settings(proxy_pool="http://p1:8080", fetch_timeout_s=3, fetch_max_retries=1)
  fetcher = Fetcher.from_settings(settings, session=FakeSession())

  assert fetcher.timeout == 3.0
  assert fetcher.proxy_pool.routes == ["http://p1:8080"]
  assert fetcher.retry_policy.max_retries == 1
