# pricecatalog/maintenance.py

from collections import Counter
from typing import Dict, Optional
from sqlmodel import select, col
from pricecatalog.classifier import classify_pet_type
from pricecatalog.database import Database
from pricecatalog.db_models import ProductRecord
from pricecatalog.models import QualityReport, PetType
from pricecatalog.relationships import RelationshipStore
from pricecatalog.repository import live_price
from pricecatalog.logger import get_logger

log = get_logger(__name__)


def reclassify_pet_types(database: Database, keywords: Optional[dict] = None,
                         batch_size: int = 100) -> Dict[str, int]:
  """
  Recompute pet_type for every product without re-normalizing anything.

  Returns:
    Dict[str, int]: Products per pet type after the pass
  """
  counts = Counter({p.value: 0 for p in PetType})
  last_id = 0
  batch_num = 0

  while True:
    with database.session() as session:
      statement = (
        select(ProductRecord)
        .where(col(ProductRecord.id) > last_id)
        .order_by(ProductRecord.id)
        .limit(batch_size)
      )
      products = session.exec(statement).all()
      if not products:
        break

      changed = 0
      for product in products:
        pet_type = classify_pet_type(product.name, product.category, keywords)
        counts[pet_type] += 1
        if product.pet_type != pet_type:
          product.pet_type = pet_type
          session.add(product)
          changed += 1
      session.commit()
      last_id = products[-1].id

    batch_num += 1
    log.info(f"[MAINTENANCE] Reclassified batch {batch_num}: {len(products)} products, {changed} changed")

  log.info(f"[MAINTENANCE] Pet type distribution: {dict(counts)}")
  return dict(counts)


def remove_product(database: Database, product_id: int) -> bool:
  """
  Delete one product and every similarity edge touching it.
  Its price history is kept.

  Returns:
    bool: False when the product does not exist
  """
  with database.session() as session:
    product = session.get(ProductRecord, product_id)
    if product is None:
      log.warning(f"[MAINTENANCE] Product {product_id} not found")
      return False
    label = f"{product.source}/{product.source_id}"
    removed_edges = RelationshipStore(database).delete_for_product(session, product_id)
    session.delete(product)
    session.commit()

  log.info(f"[MAINTENANCE] Removed product {product_id} ({label}) "
           f"and {removed_edges} edges")
  return True


def data_quality_report(database: Database) -> QualityReport:
  """Counts of catalog rows with missing or unusable fields."""
  report = QualityReport()
  by_source = Counter()
  by_pet_type = Counter()

  with database.session() as session:
    for product in session.exec(select(ProductRecord)).all():
      report.total += 1
      by_source[product.source] += 1
      by_pet_type[product.pet_type] += 1
      if not product.brand:
        report.missing_brand += 1
      if not product.category:
        report.missing_category += 1
      if not product.image_url:
        report.missing_image += 1
      if not product.prices:
        report.missing_prices += 1
      elif live_price(product) is None:
        report.zero_price += 1

  report.by_source = dict(by_source)
  report.by_pet_type = dict(by_pet_type)
  log.info(f"[MAINTENANCE] Quality report: {report.model_dump()}")
  return report
