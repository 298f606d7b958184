# tests/test_maintenance.py

from pricecatalog.db_models import ProductRecord
from pricecatalog.maintenance import data_quality_report, reclassify_pet_types, remove_product
from pricecatalog.merger import UpsertMerger
from pricecatalog.models import SimilarityEdge
from pricecatalog.relationships import RelationshipStore
from pricecatalog.repository import CatalogRepository


def insert_raw(database, *records):
  with database.session() as session:
    session.add_all(records)
    session.commit()


def test_reclassify_fixes_stale_pet_types(database):
  insert_raw(
    database,
    ProductRecord(source="arcaplanet", source_id="1", name="Crocchette per cane", pet_type="other", prices=[]),
    ProductRecord(source="arcaplanet", source_id="2", name="Tiragraffi", category="Gatti", pet_type="dog", prices=[]),
    ProductRecord(source="zooplus", source_id="3", name="Acquario", pet_type="other", prices=[]),
  )

  counts = reclassify_pet_types(database, batch_size=1)

  assert counts == {"dog": 1, "cat": 1, "small-animal": 0, "other": 1}
  repo = CatalogRepository(database)
  assert repo.get_product("arcaplanet", "1").pet_type == "dog"
  assert repo.get_product("arcaplanet", "2").pet_type == "cat"


def test_remove_product_drops_edges_keeps_history(database, make_product):
  UpsertMerger(database).merge([
    make_product(source="arcaplanet", source_id="A1"),
    make_product(source="zooplus", source_id="Z1"),
  ])
  repo = CatalogRepository(database)
  a1 = repo.get_product("arcaplanet", "A1")
  z1 = repo.get_product("zooplus", "Z1")
  store = RelationshipStore(database)
  store.replace_all([
    SimilarityEdge(product_id=a1.id, similar_product_id=z1.id, similarity=1.0, price_difference=0.0, price_ratio=1.0),
    SimilarityEdge(product_id=z1.id, similar_product_id=a1.id, similarity=1.0, price_difference=0.0, price_ratio=1.0),
  ])

  assert remove_product(database, a1.id) is True
  assert repo.get_product_by_id(a1.id) is None
  assert store.count() == 0
  assert repo.count_price_points(a1.id) == 1


def test_remove_missing_product(database):
  assert remove_product(database, 999) is False


def test_quality_report(database):
  insert_raw(
    database,
    ProductRecord(source="arcaplanet", source_id="1", name="Crocchette cani", brand="Monge", category="Cani",
                  image_url="https://cdn/1.jpg", pet_type="dog", prices=[{"store": "arcaplanet", "price": 9.9}]),
    ProductRecord(source="arcaplanet", source_id="2", name="Lettiera gatto", pet_type="cat",
                  prices=[{"store": "arcaplanet", "price": 0.0}]),
    ProductRecord(source="zooplus", source_id="3", name="Gabbia", pet_type="other", prices=[]),
  )

  report = data_quality_report(database)

  assert report.total == 3
  assert report.missing_brand == 2
  assert report.missing_category == 2
  assert report.missing_image == 2
  assert report.missing_prices == 1
  assert report.zero_price == 1
  assert report.by_source == {"arcaplanet": 2, "zooplus": 1}
  assert report.by_pet_type == {"dog": 1, "cat": 1, "other": 1}
