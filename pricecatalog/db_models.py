# pricecatalog/db_models.py

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field
from typing import List, Optional
from datetime import datetime, timezone

from pricecatalog.config import DEFAULT_CURRENCY


def _utcnow():
  return datetime.now(timezone.utc)


class ProductRecord(SQLModel, table=True):
  """Canonical catalog product, unique per (source, source_id)"""
  __tablename__ = "product"
  __table_args__ = (UniqueConstraint("source", "source_id", name="uq_product_identity"), {"extend_existing": True})

  id: Optional[int] = Field(default=None, primary_key=True)
  source: str = Field(index=True)
  source_id: str
  name: str
  brand: Optional[str] = Field(default=None, index=True)
  category: Optional[str] = Field(default=None, index=True)
  pet_type: str = Field(default="other", index=True)
  image_url: Optional[str] = None
  description: Optional[str] = None
  sku: Optional[str] = None
  weight: Optional[str] = None
  # List of PriceEntry dicts, at most one per store
  prices: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
  variants: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
  created_at: datetime = Field(default_factory=_utcnow)
  updated_at: datetime = Field(default_factory=_utcnow)


class PricePointRecord(SQLModel, table=True):
  """Append-only observation of a price"""
  __tablename__ = "price_point"
  __table_args__ = {"extend_existing": True}

  id: Optional[int] = Field(default=None, primary_key=True)
  product_id: int = Field(index=True)
  store: str
  amount: float
  currency: str = DEFAULT_CURRENCY
  recorded_at: datetime = Field(default_factory=_utcnow, index=True) # Index for time range queries


class SimilarProductRecord(SQLModel, table=True):
  """Directed similarity edge; stored in both directions"""
  __tablename__ = "similar_product"
  __table_args__ = {"extend_existing": True}

  id: Optional[int] = Field(default=None, primary_key=True)
  product_id: int = Field(index=True)
  similar_product_id: int = Field(index=True)
  similarity: float = Field(index=True)
  price_difference: float = Field(index=True)
  price_ratio: float
  updated_at: datetime = Field(default_factory=_utcnow)
