# pricecatalog/config.py

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from pricecatalog.logger import get_logger

log = get_logger(__name__)


### Classification and text-normalization tables
# Italian source domain. Order matters: first matching pet type wins.
PET_TYPE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
  "dog": ("cane", "cani"),
  "cat": ("gatto", "gatti"),
  "small-animal": ("roditore", "roditori", "piccoli animali"),
}

STOP_WORDS = frozenset({
  "e", "con", "di", "a", "da", "in", "su", "per", "tra", "fra",
  "il", "lo", "la", "i", "gli", "le", "un", "uno", "una",
})

UNIT_TOKENS = frozenset({"kg", "g", "gr", "cm", "ml", "lt", "l"})

DEFAULT_CURRENCY = "EUR"

# Store endpoints used to build product urls from relative paths
STORE_BASE_URLS = {
  "arcaplanet": "https://www.arcaplanet.it",
  "zooplus": "https://www.zooplus.it",
}


class Settings(BaseModel):
  """Recognized pipeline options. Populated from CATALOG_* environment variables."""
  database_url: str = Field(default="sqlite:///db/catalog.db", alias="CATALOG_DATABASE_URL")
  similarity_threshold: float = Field(default=0.7, alias="CATALOG_SIMILARITY_THRESHOLD")
  merge_batch_size: int = Field(default=50, alias="CATALOG_MERGE_BATCH_SIZE")
  fetch_max_retries: int = Field(default=3, alias="CATALOG_FETCH_MAX_RETRIES")
  fetch_base_delay_ms: int = Field(default=2000, alias="CATALOG_FETCH_BASE_DELAY_MS")
  fetch_max_delay_ms: int = Field(default=10000, alias="CATALOG_FETCH_MAX_DELAY_MS")
  fetch_backoff_factor: float = Field(default=1.5, alias="CATALOG_FETCH_BACKOFF_FACTOR")
  fetch_jitter_ms: int = Field(default=250, alias="CATALOG_FETCH_JITTER_MS")
  fetch_timeout_s: float = Field(default=20.0, alias="CATALOG_FETCH_TIMEOUT_S")
  proxy_pool: List[str] = Field(default_factory=list, alias="CATALOG_PROXY_POOL")
  proxy_file: Optional[str] = Field(default=None, alias="CATALOG_PROXY_FILE")
  source_pause_s: float = Field(default=5.0, alias="CATALOG_SOURCE_PAUSE_S")

  model_config = {"populate_by_name": True}

  @field_validator("similarity_threshold")
  @classmethod
  def _threshold_in_unit_interval(cls, value):
    if not 0.0 <= value <= 1.0:
      raise ValueError("similarity_threshold must be between 0 and 1")
    return value

  @field_validator("merge_batch_size")
  @classmethod
  def _positive_batch(cls, value):
    if value < 1:
      raise ValueError("merge_batch_size must be at least 1")
    return value

  @field_validator("fetch_max_retries", "fetch_base_delay_ms", "fetch_max_delay_ms", "fetch_jitter_ms")
  @classmethod
  def _non_negative(cls, value):
    if value < 0:
      raise ValueError("fetch options cannot be negative")
    return value

  @field_validator("proxy_pool", mode="before")
  @classmethod
  def _split_proxy_pool(cls, value):
    if value is None:
      return []
    if isinstance(value, str):
      return [p.strip() for p in value.split(",") if p.strip()]
    return value

  @classmethod
  def from_env(cls, environ=None) -> "Settings":
    """Build settings from the environment, ignoring unrelated variables."""
    environ = os.environ if environ is None else environ
    aliases = {f.alias for f in cls.model_fields.values()}
    values = {k: v for k, v in environ.items() if k in aliases and v != ""}
    try:
      return cls(**values)
    except ValidationError as exc:
      log.error(f"[CONFIG] Invalid configuration: {exc}")
      raise


def _load_dotenv():
  # Load from repo root if present, otherwise rely on environment variables.
  root_env = Path(__file__).resolve().parents[1] / ".env"
  if root_env.exists():
    load_dotenv(root_env)
  else:
    load_dotenv()


@lru_cache()
def get_settings() -> Settings:
  _load_dotenv()
  return Settings.from_env()
