# tests/test_repository.py

import pytest
from sqlalchemy.exc import OperationalError

from pricecatalog.db_models import ProductRecord
from pricecatalog.merger import UpsertMerger
from pricecatalog.repository import CatalogRepository, live_price
from pricecatalog.exceptions import StoreUnavailableError


def test_live_price_prefers_own_store():
  product = ProductRecord(source="zooplus", source_id="1", name="x",
                          prices=[{"store": "arcaplanet", "price": 5.0}, {"store": "zooplus", "price": 7.0}])
  assert live_price(product) == 7.0


def test_live_price_falls_back_to_first_entry():
  product = ProductRecord(source="zooplus", source_id="1", name="x", prices=[{"store": "arcaplanet", "price": 5.0}])
  assert live_price(product) == 5.0


@pytest.mark.parametrize("prices", [[], [{"store": "zooplus", "price": 0}], [{"store": "zooplus", "price": "n/d"}]])
def test_live_price_unknown(prices):
  product = ProductRecord(source="zooplus", source_id="1", name="x", prices=prices)
  assert live_price(product) is None


def test_find_products_filters(database, make_product):
  UpsertMerger(database).merge([
    make_product(source_id="1", name="Crocchette cani", brand="Monge"),
    make_product(source_id="2", name="Bocconcini gatto", brand="Monge"),
    make_product(source_id="3", name="Antiparassitario cane", brand="Frontline"),
  ])
  repo = CatalogRepository(database)

  assert [p.source_id for p in repo.find_products(pet_type="dog")] == ["3", "1"]
  assert [p.source_id for p in repo.find_products(brand="Monge")] == ["2", "1"]
  assert [p.source_id for p in repo.find_products(pet_type="dog", brand="Monge")] == ["1"]
  assert repo.find_products(category="Pesci") == []


def test_snapshot_carries_live_price(database, make_product):
  UpsertMerger(database).merge([make_product(source_id="1", price=19.9), make_product(source_id="2", price=0.0)])
  snapshot = CatalogRepository(database).snapshot()

  assert [(e.source_id, e.price) for e in snapshot] == [("1", 19.9), ("2", None)]
  assert all(e.pet_type == "dog" for e in snapshot)


def test_get_product_missing(database):
  repo = CatalogRepository(database)
  assert repo.get_product("arcaplanet", "nope") is None
  assert repo.get_product_by_id(42) is None


def test_connectivity_error_becomes_store_unavailable(database):
  with pytest.raises(StoreUnavailableError):
    with database.session():
      raise OperationalError("SELECT 1", {}, Exception("connection lost"))


def test_other_errors_propagate_unchanged(database):
  with pytest.raises(KeyError):
    with database.session():
      raise KeyError("boom")
