# pricecatalog/exceptions.py

class PipelineException(Exception):
  """All catalog pipeline errors"""
  pass


class FetchError(PipelineException):
  """Outbound request failed"""
  pass


class NetworkError(FetchError):
  """Connection error, reset, 5xx or undecodable body raise"""
  pass


class FetchTimeoutError(FetchError):
  """Request timeout error raise"""
  pass


class RateLimitedError(FetchError):
  """HTTP 429 or 403 (blocked) raise"""
  def __init__(self, status_code: int, retry_after: float = None, message: str = None):
    self.status_code = status_code
    self.retry_after = retry_after
    self.message = message or f"Rate limited (HTTP {status_code})"
    super().__init__(self.message)


class HTTPStatusError(FetchError):
  """HTTP status code 400-499 other than 403/429, never retried"""
  def __init__(self, status_code: int, message: str = None):
    self.status_code = status_code
    self.message = message or f"HTTP error {status_code}"
    super().__init__(self.message)


# Retried automatically by RetryPolicy
RETRYABLE_ERRORS = (NetworkError, FetchTimeoutError, RateLimitedError)


class NormalizationError(PipelineException):
  """Raw record could not be mapped to a canonical product"""
  pass


class MissingRequiredFieldError(NormalizationError):
  """Identity or name absent from raw record"""
  def __init__(self, field: str, source: str = None):
    self.field = field
    self.source = source
    super().__init__(f"Missing required field '{field}'" + (f" for source '{source}'" if source else ""))


class UnknownSourceError(NormalizationError):
  """No normalization strategy registered for the source tag"""
  pass


class MergeError(PipelineException):
  """Single record could not be merged (e.g. invalid price)"""
  pass


class StoreUnavailableError(PipelineException):
  """
  Persistence layer unreachable, fatal for the current run.
  `stats` carries the counts committed before the failure (MergeStats), when known;
  `report` carries the partial CollectionReport of an aborted collection run.
  """
  stats = None
  report = None


class PayloadError(PipelineException):
  """Fetched or loaded payload does not contain a record array"""
  pass
