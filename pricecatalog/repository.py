# pricecatalog/repository.py

from datetime import datetime
from typing import List, Optional
from sqlmodel import select, func
from pricecatalog.database import Database
from pricecatalog.db_models import ProductRecord, PricePointRecord
from pricecatalog.models import CatalogEntry
from pricecatalog.logger import get_logger

log = get_logger(__name__)


def live_price(product: ProductRecord) -> Optional[float]:
  """
  Known price of a product: the entry of its own store, else the first entry.
  Zero or negative amounts are not a known price.
  """
  prices = product.prices or []
  entry = next((p for p in prices if p.get("store") == product.source), prices[0] if prices else None)
  if not entry:
    return None
  try:
    amount = float(entry.get("price"))
  except (TypeError, ValueError):
    return None
  return amount if amount > 0 else None


class CatalogRepository:
  """Read access to the catalog and price history."""

  def __init__(self, database: Database):
    self.database = database

  def get_product(self, source: str, source_id: str) -> Optional[ProductRecord]:
    with self.database.session() as session:
      statement = select(ProductRecord).where(
        ProductRecord.source == source, ProductRecord.source_id == source_id)
      return session.exec(statement).first()

  def get_product_by_id(self, product_id: int) -> Optional[ProductRecord]:
    with self.database.session() as session:
      return session.get(ProductRecord, product_id)

  def find_products(self, pet_type: Optional[str] = None, category: Optional[str] = None,
                    brand: Optional[str] = None) -> List[ProductRecord]:
    """
    Filter products using SQL WHERE conditions.

    Args:
      pet_type (Optional[str]): Exact pet type
      category (Optional[str]): Exact category
      brand (Optional[str]): Exact brand

    Returns:
      List[ProductRecord]: Matching products ordered by name
    """
    log.debug(f"Finding products with pet_type={pet_type}, category={category}, brand={brand}")
    statement = select(ProductRecord)
    if pet_type is not None:
      statement = statement.where(ProductRecord.pet_type == pet_type)
    if category is not None:
      statement = statement.where(ProductRecord.category == category)
    if brand is not None:
      statement = statement.where(ProductRecord.brand == brand)
    statement = statement.order_by(ProductRecord.name)

    with self.database.session() as session:
      return list(session.exec(statement).all())

  def price_history(self, product_id: int, start: Optional[datetime] = None,
                    end: Optional[datetime] = None) -> List[PricePointRecord]:
    """Price points of one product, oldest first, optionally within [start, end]."""
    statement = select(PricePointRecord).where(PricePointRecord.product_id == product_id)
    if start is not None:
      statement = statement.where(PricePointRecord.recorded_at >= start)
    if end is not None:
      statement = statement.where(PricePointRecord.recorded_at <= end)
    statement = statement.order_by(PricePointRecord.recorded_at, PricePointRecord.id)

    with self.database.session() as session:
      return list(session.exec(statement).all())

  def snapshot(self) -> List[CatalogEntry]:
    """Whole catalog as read at call time, for the similarity resolver."""
    with self.database.session() as session:
      records = session.exec(select(ProductRecord).order_by(ProductRecord.id)).all()
      entries = [
        CatalogEntry(
          id=r.id,
          source=r.source,
          source_id=r.source_id,
          name=r.name,
          pet_type=r.pet_type,
          price=live_price(r),
        )
        for r in records
      ]
    log.info(f"Catalog snapshot read: {len(entries)} products")
    return entries

  def count_products(self) -> int:
    with self.database.session() as session:
      return session.exec(select(func.count()).select_from(ProductRecord)).one()

  def count_price_points(self, product_id: Optional[int] = None) -> int:
    statement = select(func.count()).select_from(PricePointRecord)
    if product_id is not None:
      statement = statement.where(PricePointRecord.product_id == product_id)
    with self.database.session() as session:
      return session.exec(statement).one()
