# pricecatalog/retry.py

import random
import time
from typing import Callable, Optional, Tuple, Type

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pricecatalog.exceptions import RETRYABLE_ERRORS, RateLimitedError
from pricecatalog.logger import get_logger

log = get_logger(__name__)


class RetryPolicy:
  """
  Retry with multiplicative backoff and jitter, shared by every network-calling component.

  Attempt n (1-based) waits min(base_delay * backoff_factor ** (n - 1), max_delay) seconds,
  shifted by a uniform jitter in [-jitter, +jitter] and clamped at zero. A Retry-After
  hint on RateLimitedError raises the wait, never above max_delay.

  Args:
    max_retries (int): Retries after the first attempt (total attempts = max_retries + 1)
    base_delay (float): First wait in seconds
    backoff_factor (float): Growth factor between waits
    max_delay (float): Upper bound for a single wait in seconds
    jitter (float): Random spread in seconds
    retry_on (tuple): Exception types that trigger a retry
    sleep (callable): Wait function, injectable for tests
    rng (random.Random): Jitter source, injectable for tests
  """

  def __init__(
      self,
      max_retries: int = 3,
      base_delay: float = 2.0,
      backoff_factor: float = 1.5,
      max_delay: float = 10.0,
      jitter: float = 0.25,
      retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
      sleep: Callable[[float], None] = time.sleep,
      rng: Optional[random.Random] = None):
    if max_retries < 0:
      raise ValueError("max_retries cannot be negative")
    self.max_retries = max_retries
    self.base_delay = base_delay
    self.backoff_factor = backoff_factor
    self.max_delay = max_delay
    self.jitter = jitter
    self.retry_on = retry_on
    self.sleep = sleep
    self.rng = rng or random.Random()
    self.backoff = wait_exponential(multiplier=base_delay, exp_base=backoff_factor, max=max_delay)

  @classmethod
  def from_settings(cls, settings, **kwargs) -> "RetryPolicy":
    return cls(
      max_retries=settings.fetch_max_retries,
      base_delay=settings.fetch_base_delay_ms / 1000,
      backoff_factor=settings.fetch_backoff_factor,
      max_delay=settings.fetch_max_delay_ms / 1000,
      jitter=settings.fetch_jitter_ms / 1000,
      **kwargs
    )

  def _wait(self, retry_state: RetryCallState) -> float:
    delay = self.backoff(retry_state)
    if self.jitter:
      delay += self.rng.uniform(-self.jitter, self.jitter)
    delay = max(0.0, delay)

    error = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(error, RateLimitedError) and error.retry_after:
      delay = max(delay, min(error.retry_after, self.max_delay))
    return delay

  def _log_retry(self, retry_state: RetryCallState):
    error = retry_state.outcome.exception()
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    log.warning(f"[RETRY] Attempt {retry_state.attempt_number}/{self.max_retries + 1} failed: {error}. "
                f"Retrying in {delay:.2f}s")

  def call(self, fn: Callable, *args, **kwargs):
    """
    Run fn(*args, **kwargs), retrying on the configured error types.

    Returns:
      Whatever fn returns

    Raises:
      The last error once retries are exhausted, or any non-retryable error immediately
    """
    retrying = Retrying(
      stop=stop_after_attempt(self.max_retries + 1),
      retry=retry_if_exception_type(self.retry_on),
      wait=self._wait,
      before_sleep=self._log_retry,
      sleep=self.sleep,
      reraise=True,
    )
    try:
      return retrying(fn, *args, **kwargs)
    except self.retry_on as e:
      log.error(f"[RETRY] Giving up after {self.max_retries + 1} attempt(s): {e}")
      raise
