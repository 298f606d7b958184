# pricecatalog/models.py

from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime, timezone

from pricecatalog.config import DEFAULT_CURRENCY


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


class PetType(str, Enum):
  DOG = "dog"
  CAT = "cat"
  SMALL_ANIMAL = "small-animal"
  OTHER = "other"


class PriceEntry(BaseModel):
  """Live price of a product in one store"""
  store: str
  price: float = 0.0
  currency: str = DEFAULT_CURRENCY
  url: Optional[str] = None
  last_updated: datetime = Field(default_factory=utcnow)
  in_stock: bool = True


class Variant(BaseModel):
  variant_id: str = "default"
  description: Optional[str] = None
  available: bool = True
  price: float = 0.0


class CanonicalProduct(BaseModel):
  """Source-agnostic listing produced by the normalizer"""
  source: str
  source_id: str
  name: str
  brand: Optional[str] = None
  category: Optional[str] = None
  image_url: Optional[str] = None
  description: Optional[str] = None
  sku: Optional[str] = None
  weight: Optional[str] = None
  price: PriceEntry
  variants: List[Variant] = Field(default_factory=list)

  @property
  def identity(self):
    return (self.source, self.source_id)


class MergeStats(BaseModel):
  created: int = 0
  updated: int = 0
  skipped: int = 0
  errors: int = 0
  price_points: int = 0

  @property
  def processed(self) -> int:
    return self.created + self.updated + self.skipped + self.errors

  def add(self, other: "MergeStats") -> "MergeStats":
    self.created += other.created
    self.updated += other.updated
    self.skipped += other.skipped
    self.errors += other.errors
    self.price_points += other.price_points
    return self


class CatalogEntry(BaseModel):
  """Snapshot row read by the similarity resolver"""
  id: int
  source: str
  source_id: str
  name: str
  pet_type: str = PetType.OTHER.value
  price: Optional[float] = None


class SimilarityEdge(BaseModel):
  product_id: int
  similar_product_id: int
  similarity: float = Field(ge=0.0, le=1.0)
  price_difference: float
  price_ratio: float
  updated_at: datetime = Field(default_factory=utcnow)


class ResolveStats(BaseModel):
  products: int = 0
  comparisons: int = 0
  pairs_found: int = 0
  edges_written: int = 0


class CollectionUnit(BaseModel):
  """One (source, category) JSON endpoint returning raw records"""
  source: str
  category: Optional[str] = None
  url: str
  params: Dict[str, str] = Field(default_factory=dict)
  records_key: Optional[str] = None


class CollectionReport(BaseModel):
  units_total: int = 0
  units_failed: int = 0
  failed_units: List[str] = Field(default_factory=list)
  stats: MergeStats = Field(default_factory=MergeStats)


class QualityReport(BaseModel):
  total: int = 0
  missing_brand: int = 0
  missing_category: int = 0
  missing_image: int = 0
  missing_prices: int = 0
  zero_price: int = 0
  by_source: Dict[str, int] = Field(default_factory=dict)
  by_pet_type: Dict[str, int] = Field(default_factory=dict)
