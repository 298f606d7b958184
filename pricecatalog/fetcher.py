# pricecatalog/fetcher.py

import requests
from typing import Optional

from pricecatalog.logger import get_logger
from pricecatalog.proxy import ProxyPool
from pricecatalog.retry import RetryPolicy
import pricecatalog.exceptions as ex

# Get the logger for this module. Its name will be 'pricecatalog.fetcher'.
log = get_logger(__name__)

DEFAULT_HEADERS = {
  "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
  "Accept-Language": "it-IT,it;q=0.9,en-US;q=0.8,en;q=0.7",
  "Accept": "application/json, text/plain, */*",
}

# 403 is how the stores answer a blocked egress route
RATE_LIMIT_STATUSES = {403, 429}


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
  if not value:
    return None
  try:
    return max(0.0, float(value))
  except ValueError:
    # HTTP-date form is not worth honoring here, fall back to backoff
    return None


class Fetcher:
  """
  Outbound requests with proxy rotation and centralized retry/backoff.
  Knows nothing about products: returns raw responses or raises the fetch taxonomy.

  Args:
    proxy_pool (ProxyPool): Egress routes, one taken per attempt
    retry_policy (RetryPolicy): Shared retry/backoff policy
    timeout (float): Per-attempt request timeout in seconds
    session (requests.Session): Injected session (tests)
    headers (dict): Extra default headers
  """

  def __init__(self, proxy_pool: ProxyPool = None, retry_policy: RetryPolicy = None,
               timeout: float = 20.0, session: requests.Session = None, headers: dict = None):
    self.proxy_pool = proxy_pool or ProxyPool()
    self.retry_policy = retry_policy or RetryPolicy()
    self.timeout = timeout
    self.session = session or requests.Session()
    self.headers = dict(DEFAULT_HEADERS)
    if headers:
      self.headers.update(headers)

  @classmethod
  def from_settings(cls, settings, **kwargs) -> "Fetcher":
    return cls(
      proxy_pool=ProxyPool.from_settings(settings),
      retry_policy=RetryPolicy.from_settings(settings),
      timeout=settings.fetch_timeout_s,
      **kwargs
    )

  def fetch(self, url: str, method: str = "GET", **kwargs) -> requests.Response:
    """
    Perform one logical request, retried on NetworkError / RateLimitedError / FetchTimeoutError.

    Args:
      url (str): Target url
      method (str): HTTP method
      **kwargs: Passed to requests (params, json, data, headers)

    Returns:
      requests.Response: Successful (2xx/3xx) response

    Raises:
      NetworkError, RateLimitedError, FetchTimeoutError once retries are exhausted;
      HTTPStatusError immediately for non-retryable 4xx answers
    """
    log.info(f"[FETCH] {method} {url}")
    return self.retry_policy.call(self._attempt, url, method, **kwargs)

  def fetch_json(self, url: str, method: str = "GET", **kwargs):
    """Fetch and decode a JSON body."""
    response = self.fetch(url, method, **kwargs)
    try:
      return response.json()
    except ValueError as e:
      log.error(f"[FETCH] Undecodable JSON body from {url}: {e}")
      raise ex.NetworkError(f"Invalid JSON body from {url}: {e}")

  def _attempt(self, url: str, method: str, **kwargs) -> requests.Response:
    route = self.proxy_pool.next_route()
    headers = dict(self.headers)
    headers.update(kwargs.pop("headers", None) or {})
    log.debug(f"[FETCH] Attempt via route '{route}' for {url}")

    try:
      response = self.session.request(
        method, url,
        headers=headers,
        proxies=ProxyPool.as_requests_proxies(route),
        timeout=self.timeout,
        **kwargs
      )
    except requests.exceptions.Timeout as e:
      log.warning(f"[FETCH] Timeout for {url} via '{route}': {e}")
      raise ex.FetchTimeoutError(f"Request timed out for {url}: {e}")
    except requests.exceptions.ConnectionError as e:
      log.warning(f"[FETCH] Connection error for {url} via '{route}': {e}")
      raise ex.NetworkError(f"Connection error for {url}: {e}")
    except requests.exceptions.RequestException as e:
      log.warning(f"[FETCH] Request failed for {url} via '{route}': {e}")
      raise ex.NetworkError(f"Request failure for {url}: {e}")

    status = response.status_code
    if status in RATE_LIMIT_STATUSES:
      retry_after = _parse_retry_after(response.headers.get("Retry-After"))
      log.warning(f"[FETCH] HTTP {status} (rate limited/blocked) for {url} via '{route}'")
      raise ex.RateLimitedError(status_code=status, retry_after=retry_after)
    if status >= 500:
      log.warning(f"[FETCH] HTTP {status} for {url} via '{route}'")
      raise ex.NetworkError(f"Server error HTTP {status} for {url}")
    if status >= 400:
      log.error(f"[FETCH] HTTP {status} for {url}, not retrying")
      raise ex.HTTPStatusError(status_code=status)

    log.info(f"[FETCH] Successfully fetched {url} (Status: {status})")
    return response
