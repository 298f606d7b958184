# tests/conftest.py

import os
import pytest

os.environ.setdefault("APP_ENV", "testing")

from pricecatalog.database import Database
from pricecatalog.logger import configure_logging
from pricecatalog.models import CanonicalProduct, PriceEntry

configure_logging()


@pytest.fixture(autouse=True)
def set_test_env(monkeypatch):
  monkeypatch.setenv("APP_ENV", "testing")


@pytest.fixture
def database():
  db = Database("sqlite://")
  db.init_schema()
  yield db
  db.dispose()


@pytest.fixture
def make_product():
  """Builds CanonicalProduct objects with sensible defaults."""
  def _make(source="arcaplanet", source_id="1", name="Crocchette per cani adulti", price=10.0,
            category=None, **kwargs):
    return CanonicalProduct(
      source=source,
      source_id=source_id,
      name=name,
      category=category,
      price=PriceEntry(store=source, price=price),
      **kwargs
    )
  return _make
