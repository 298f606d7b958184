# pricecatalog/merger.py

import math
from dataclasses import dataclass
from datetime import datetime
from itertools import islice
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col, or_, and_

from pricecatalog.classifier import classify_pet_type
from pricecatalog.database import Database
from pricecatalog.db_models import ProductRecord, PricePointRecord
from pricecatalog.config import DEFAULT_CURRENCY
from pricecatalog.exceptions import MergeError, NormalizationError, StoreUnavailableError
from pricecatalog.logger import get_logger
from pricecatalog.models import CanonicalProduct, MergeStats, utcnow
from pricecatalog.normalizer import normalize

log = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass
class _Prepared:
  """Validated record ready to be applied"""
  product: CanonicalProduct
  price_entry: dict
  amount: float

  @property
  def identity(self) -> Tuple[str, str]:
    return self.product.identity


def _chunked(items: Iterable, size: int) -> Iterator[list]:
  iterator = iter(items)
  while True:
    batch = list(islice(iterator, size))
    if not batch:
      return
    yield batch


def replace_store_price(prices: List[dict], entry: dict) -> List[dict]:
  """
  Return a new prices list where the entry of entry['store'] is replaced,
  or appended when the store is not listed yet. Store order is preserved.
  """
  result = []
  replaced = False
  for existing in prices or []:
    if existing.get("store") == entry["store"]:
      if not replaced:
        result.append(entry)
        replaced = True
      continue
    result.append(existing)
  if not replaced:
    result.append(entry)
  return result


class UpsertMerger:
  """
  Folds normalized records into the catalog and appends price history.

  Args:
    database (Database): Store handle
    batch_size (int): Records per round-trip (bounds memory/latency, not semantics)
    keywords (dict): Pet type keyword table for classification
    clock (callable): Returns the current UTC datetime (injectable)
  """

  def __init__(self, database: Database, batch_size: int = DEFAULT_BATCH_SIZE,
               keywords: Optional[dict] = None, clock: Callable[[], datetime] = utcnow):
    if batch_size < 1:
      raise ValueError("batch_size must be at least 1")
    self.database = database
    self.batch_size = batch_size
    self.keywords = keywords
    self.clock = clock

  def import_raw(self, raw_records: Iterable, source: str,
                 default_category: Optional[str] = None) -> MergeStats:
    """
    Batch-import entry point: normalize a source-tagged record stream, then merge it.
    Records that cannot be normalized are counted as skipped.

    Args:
      raw_records (Iterable): Raw records of one source
      source (str): Source tag selecting the normalizer
      default_category (str): Category of the collection unit

    Returns:
      MergeStats: created / updated / skipped / errors for the whole stream

    Raises:
      StoreUnavailableError: With e.stats set to the counts reached before the failure
    """
    stats = MergeStats()
    normalized = []
    for idx, raw in enumerate(raw_records):
      try:
        normalized.append(normalize(raw, source, default_category))
      except NormalizationError as e:
        stats.skipped += 1
        log.warning(f"[NORMALIZE] Skipped {source} record #{idx + 1}: {e}")

    try:
      stats.add(self.merge(normalized))
    except StoreUnavailableError as e:
      stats.add(e.stats)
      e.stats = stats
      log.error(f"[IMPORT] {source} aborted: created={stats.created} updated={stats.updated} "
                f"skipped={stats.skipped} errors={stats.errors}")
      raise

    log.info(f"[IMPORT] {source}: created={stats.created} updated={stats.updated} "
             f"skipped={stats.skipped} errors={stats.errors}")
    return stats

  def merge(self, records: Iterable[CanonicalProduct]) -> MergeStats:
    """
    Upsert canonical products keyed by (source, source_id).

    Returns:
      MergeStats: Counts for this run; a failing record never aborts its siblings

    Raises:
      StoreUnavailableError: The store became unreachable (fatal for the run);
        e.stats holds the counts of the batches committed before the failure
    """
    stats = MergeStats()
    try:
      for batch_num, batch in enumerate(_chunked(records, self.batch_size), start=1):
        log.debug(f"[MERGE] Processing batch {batch_num} ({len(batch)} records)")
        stats.add(self._merge_batch(batch))
    except StoreUnavailableError as e:
      if e.stats is not None:
        stats.add(e.stats)
      e.stats = stats
      log.error(f"[MERGE] Aborted, store unavailable: created={stats.created} updated={stats.updated} "
                f"errors={stats.errors} price_points={stats.price_points}")
      raise

    log.info(f"[MERGE] Completed: created={stats.created} updated={stats.updated} "
             f"errors={stats.errors} price_points={stats.price_points}")
    return stats

  def _merge_batch(self, batch: List[CanonicalProduct]) -> MergeStats:
    stats = MergeStats()
    prepared = []
    for record in batch:
      try:
        prepared.append(self._prepare(record))
      except MergeError as e:
        stats.errors += 1
        log.warning(f"[MERGE] Rejected record {getattr(record, 'identity', '?')}: {e}")

    if not prepared:
      return stats

    try:
      outcome = self._commit(prepared)
    except StoreUnavailableError as e:
      if e.stats is not None:
        stats.add(e.stats)
      e.stats = stats
      raise

    return stats.add(outcome)

  def _commit(self, prepared: List[_Prepared]) -> MergeStats:
    try:
      with self.database.session() as session:
        outcome = self._apply(session, prepared)
        session.commit()
      return outcome
    except SQLAlchemyError as e:
      # StoreUnavailableError is not a SQLAlchemyError and propagates as fatal
      log.warning(f"[MERGE] Batch commit failed ({e.__class__.__name__}: {e}); replaying record by record")
      return self._apply_one_by_one(prepared)

  def _apply_one_by_one(self, prepared: List[_Prepared]) -> MergeStats:
    stats = MergeStats()
    for item in prepared:
      try:
        with self.database.session() as session:
          outcome = self._apply(session, [item])
          session.commit()
        stats.add(outcome)
      except SQLAlchemyError as e:
        stats.errors += 1
        log.error(f"[MERGE] Could not merge {item.identity}: {e}")
      except StoreUnavailableError as e:
        e.stats = stats
        raise
    return stats

  def _prepare(self, record: CanonicalProduct) -> _Prepared:
    if not isinstance(record, CanonicalProduct):
      raise MergeError(f"Expected CanonicalProduct, got {type(record).__name__}")
    if not record.source or not record.source_id:
      raise MergeError("Record has no identity")

    try:
      amount = float(record.price.price)
    except (TypeError, ValueError) as e:
      raise MergeError(f"Invalid price {record.price.price!r}: {e}")
    if not math.isfinite(amount) or amount < 0:
      raise MergeError(f"Invalid price {amount!r}")

    entry = record.price.model_dump(mode="json")
    entry["price"] = amount
    entry["store"] = record.price.store or record.source
    entry["last_updated"] = self.clock().isoformat()
    return _Prepared(product=record, price_entry=entry, amount=amount)

  def _load_existing(self, session: Session, identities) -> Dict[Tuple[str, str], ProductRecord]:
    by_source: Dict[str, List[str]] = {}
    for source, source_id in identities:
      by_source.setdefault(source, []).append(source_id)

    conditions = [
      and_(ProductRecord.source == source, col(ProductRecord.source_id).in_(ids))
      for source, ids in by_source.items()
    ]
    records = session.exec(select(ProductRecord).where(or_(*conditions))).all()
    return {(r.source, r.source_id): r for r in records}

  def _apply(self, session: Session, prepared: List[_Prepared]) -> MergeStats:
    stats = MergeStats()
    now = self.clock()
    existing = self._load_existing(session, {item.identity for item in prepared})
    observed = []

    for item in prepared:
      record = item.product
      product = existing.get(item.identity)
      pet_type = classify_pet_type(record.name, record.category, self.keywords)

      if product is None:
        product = ProductRecord(
          source=record.source,
          source_id=record.source_id,
          name=record.name,
          brand=record.brand,
          category=record.category,
          pet_type=pet_type,
          image_url=record.image_url,
          description=record.description,
          sku=record.sku,
          weight=record.weight,
          prices=[item.price_entry],
          variants=[v.model_dump(mode="json") for v in record.variants],
          created_at=now,
          updated_at=now,
        )
        session.add(product)
        existing[item.identity] = product
        stats.created += 1
        log.debug(f"[MERGE] Created {item.identity} '{record.name}'")
      else:
        product.prices = replace_store_price(product.prices, item.price_entry)
        if record.variants:
          product.variants = [v.model_dump(mode="json") for v in record.variants]
        product.image_url = product.image_url or record.image_url
        product.brand = product.brand or record.brand
        product.description = product.description or record.description
        product.pet_type = pet_type
        product.updated_at = now
        session.add(product)
        stats.updated += 1
        log.debug(f"[MERGE] Updated {item.identity} '{record.name}'")

      observed.append((product, item))

    # Assigns ids to new products
    session.flush()

    for product, item in observed:
      session.add(PricePointRecord(
        product_id=product.id,
        store=item.price_entry["store"],
        amount=item.amount,
        currency=item.price_entry.get("currency") or DEFAULT_CURRENCY,
        recorded_at=now,
      ))
      stats.price_points += 1

    return stats
