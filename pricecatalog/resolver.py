# pricecatalog/resolver.py

import re
from collections import defaultdict
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from pricecatalog.config import STOP_WORDS, UNIT_TOKENS
from pricecatalog.database import Database
from pricecatalog.logger import get_logger
from pricecatalog.models import CatalogEntry, ResolveStats, SimilarityEdge, utcnow
from pricecatalog.relationships import RelationshipStore
from pricecatalog.repository import CatalogRepository

log = get_logger(__name__)

DEFAULT_THRESHOLD = 0.7

punctuation_pattern = re.compile(r"[^\w\s]")
digits_pattern = re.compile(r"\d+")


def tokenize(text: Optional[str], stop_words: Iterable[str] = STOP_WORDS,
             units: Iterable[str] = UNIT_TOKENS) -> FrozenSet[str]:
  """
  Token set of a product name.

  Lower-cases, turns punctuation into spaces, strips digits, then drops tokens of
  length <= 2, stop words and unit-of-measure tokens.
  """
  if not text:
    return frozenset()
  normalized = punctuation_pattern.sub(" ", text.lower())
  normalized = digits_pattern.sub("", normalized)
  stop_words = set(stop_words)
  units = set(units)
  return frozenset(
    word for word in normalized.split()
    if len(word) > 2 and word not in stop_words and word not in units
  )


def jaccard(tokens_a: Iterable[str], tokens_b: Iterable[str]) -> float:
  """|A ∩ B| / |A ∪ B|; 0.0 when both sets are empty."""
  a, b = set(tokens_a), set(tokens_b)
  union = a | b
  if not union:
    return 0.0
  return len(a & b) / len(union)


class SimilarityResolver:
  """
  Cross-source entity resolution over a catalog snapshot.

  Candidate pairs are products of different sources sharing a pet type. Pairs at or
  above the threshold with a known price on both sides become two directed edges
  carrying the same similarity and price metrics.
  """

  def __init__(self, threshold: float = DEFAULT_THRESHOLD,
               stop_words: Iterable[str] = STOP_WORDS, units: Iterable[str] = UNIT_TOKENS):
    if not 0.0 <= threshold <= 1.0:
      raise ValueError("threshold must be between 0 and 1")
    self.threshold = threshold
    self.stop_words = frozenset(stop_words)
    self.units = frozenset(units)
    self.stats = ResolveStats()

  def candidate_pairs(self, snapshot: List[CatalogEntry]) -> Iterator[Tuple[CatalogEntry, CatalogEntry]]:
    """Every unordered cross-source pair inside one pet type partition."""
    partitions: Dict[str, Dict[str, List[CatalogEntry]]] = defaultdict(lambda: defaultdict(list))
    for entry in snapshot:
      partitions[entry.pet_type][entry.source].append(entry)

    for pet_type in sorted(partitions):
      by_source = partitions[pet_type]
      for source_a, source_b in combinations(sorted(by_source), 2):
        for a in by_source[source_a]:
          for b in by_source[source_b]:
            yield a, b

  def resolve(self, snapshot: List[CatalogEntry]) -> List[SimilarityEdge]:
    """
    Compute symmetric similarity edges for a catalog snapshot.

    Args:
      snapshot (List[CatalogEntry]): Catalog as read at the start of the run

    Returns:
      List[SimilarityEdge]: Two edges per retained pair, highest similarity first
    """
    self.stats = ResolveStats(products=len(snapshot))
    tokens = {entry.id: tokenize(entry.name, self.stop_words, self.units) for entry in snapshot}
    edges: List[SimilarityEdge] = []
    now = utcnow()

    for a, b in self.candidate_pairs(snapshot):
      self.stats.comparisons += 1
      similarity = jaccard(tokens[a.id], tokens[b.id])
      if similarity < self.threshold:
        continue
      self.stats.pairs_found += 1

      if not a.price or not b.price:
        log.debug(f"[RESOLVE] Pair {a.id}/{b.id} similar ({similarity:.2f}) but lacks a price")
        continue

      difference = abs(a.price - b.price)
      ratio = max(a.price, b.price) / min(a.price, b.price)
      edges.append(SimilarityEdge(product_id=a.id, similar_product_id=b.id, similarity=similarity,
                                  price_difference=difference, price_ratio=ratio, updated_at=now))
      edges.append(SimilarityEdge(product_id=b.id, similar_product_id=a.id, similarity=similarity,
                                  price_difference=difference, price_ratio=ratio, updated_at=now))

    edges.sort(key=lambda e: (-e.similarity, e.product_id, e.similar_product_id))
    log.info(f"[RESOLVE] {self.stats.products} products, {self.stats.comparisons} comparisons, "
             f"{self.stats.pairs_found} similar pairs, {len(edges)} edges")
    return edges


def run_resolver(database: Database, threshold: float = DEFAULT_THRESHOLD) -> ResolveStats:
  """
  Resolver entry point: snapshot the catalog, compute edges, replace the relationship store.

  Returns:
    ResolveStats: edges_written is the number of stored edges
  """
  snapshot = CatalogRepository(database).snapshot()
  resolver = SimilarityResolver(threshold=threshold)
  edges = resolver.resolve(snapshot)
  resolver.stats.edges_written = RelationshipStore(database).replace_all(edges)
  log.info(f"[RESOLVE] Run finished: {resolver.stats.edges_written} edges written")
  return resolver.stats
