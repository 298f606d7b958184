# pricecatalog/relationships.py

from typing import Iterable, List, Optional
from sqlmodel import select, delete, func, col
from pricecatalog.database import Database
from pricecatalog.db_models import SimilarProductRecord
from pricecatalog.models import SimilarityEdge
from pricecatalog.logger import get_logger

log = get_logger(__name__)

WRITE_CHUNK_SIZE = 500

ORDER_COLUMNS = {
  "similarity": SimilarProductRecord.similarity,
  "price_difference": SimilarProductRecord.price_difference,
}


def _order_column(order_by: str):
  try:
    return ORDER_COLUMNS[order_by]
  except KeyError:
    raise ValueError(f"Invalid order_by value. Use one of {sorted(ORDER_COLUMNS)}.")


def _to_edge(record: SimilarProductRecord) -> SimilarityEdge:
  return SimilarityEdge(
    product_id=record.product_id,
    similar_product_id=record.similar_product_id,
    similarity=record.similarity,
    price_difference=record.price_difference,
    price_ratio=record.price_ratio,
    updated_at=record.updated_at,
  )


class RelationshipStore:
  """Persistence boundary for similarity edges."""

  def __init__(self, database: Database):
    self.database = database

  def replace_all(self, edges: Iterable[SimilarityEdge]) -> int:
    """
    Discard every stored edge and write the given set in one transaction.

    Returns:
      int: Number of edges written
    """
    written = 0
    with self.database.session() as session:
      session.exec(delete(SimilarProductRecord))
      pending = []
      for edge in edges:
        pending.append(SimilarProductRecord(**edge.model_dump()))
        if len(pending) >= WRITE_CHUNK_SIZE:
          session.add_all(pending)
          session.flush()
          written += len(pending)
          log.debug(f"[EDGES] Flushed {written} edges")
          pending = []
      if pending:
        session.add_all(pending)
        written += len(pending)
      session.commit()

    log.info(f"[EDGES] Relationship store replaced with {written} edges")
    return written

  def edges_for(self, product_id: int, order_by: str = "similarity",
                limit: Optional[int] = None) -> List[SimilarityEdge]:
    """Edges leaving product_id, descending by similarity or price_difference."""
    column = _order_column(order_by)
    statement = (
      select(SimilarProductRecord)
      .where(SimilarProductRecord.product_id == product_id)
      .order_by(col(column).desc(), SimilarProductRecord.similar_product_id)
    )
    if limit is not None:
      statement = statement.limit(limit)
    with self.database.session() as session:
      return [_to_edge(r) for r in session.exec(statement).all()]

  def top_edges(self, order_by: str = "similarity", limit: int = 10) -> List[SimilarityEdge]:
    """Catalog-wide best matches or best savings."""
    column = _order_column(order_by)
    statement = (
      select(SimilarProductRecord)
      .order_by(col(column).desc(), SimilarProductRecord.id)
      .limit(limit)
    )
    with self.database.session() as session:
      return [_to_edge(r) for r in session.exec(statement).all()]

  def count(self) -> int:
    with self.database.session() as session:
      return session.exec(select(func.count()).select_from(SimilarProductRecord)).one()

  def delete_for_product(self, session, product_id: int) -> int:
    """Remove edges touching product_id inside the caller's transaction."""
    result = session.exec(delete(SimilarProductRecord).where(
      (SimilarProductRecord.product_id == product_id) |
      (SimilarProductRecord.similar_product_id == product_id)))
    return result.rowcount or 0
