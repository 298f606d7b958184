# tests/test_relationships.py

import pytest

import pricecatalog.relationships as relationships
from pricecatalog.models import SimilarityEdge
from pricecatalog.relationships import RelationshipStore


def edge_pair(a, b, similarity, difference, ratio=1.0):
  return [
    SimilarityEdge(product_id=a, similar_product_id=b, similarity=similarity, price_difference=difference, price_ratio=ratio),
    SimilarityEdge(product_id=b, similar_product_id=a, similarity=similarity, price_difference=difference, price_ratio=ratio),
  ]


def test_replace_all_discards_previous_edges(database):
  store = RelationshipStore(database)
  assert store.replace_all(edge_pair(1, 2, 0.9, 3.0) + edge_pair(1, 3, 0.8, 1.0)) == 4
  assert store.count() == 4

  assert store.replace_all(edge_pair(4, 5, 1.0, 0.5)) == 2
  assert store.count() == 2
  assert store.edges_for(1) == []


def test_replace_all_writes_in_chunks(database, monkeypatch):
  monkeypatch.setattr(relationships, "WRITE_CHUNK_SIZE", 2)
  store = RelationshipStore(database)
  edges = edge_pair(1, 2, 0.9, 1.0) + edge_pair(1, 3, 0.8, 2.0) + edge_pair(2, 3, 0.75, 3.0)

  assert store.replace_all(edges) == 6
  assert store.count() == 6


def test_replace_all_with_nothing_empties_store(database):
  store = RelationshipStore(database)
  store.replace_all(edge_pair(1, 2, 0.9, 1.0))
  assert store.replace_all([]) == 0
  assert store.count() == 0


def test_edges_for_ordering(database):
  store = RelationshipStore(database)
  store.replace_all(edge_pair(1, 2, 0.75, 9.0) + edge_pair(1, 3, 0.95, 1.0) + edge_pair(1, 4, 0.85, 4.0))

  by_similarity = store.edges_for(1)
  assert [e.similar_product_id for e in by_similarity] == [3, 4, 2]

  by_difference = store.edges_for(1, order_by="price_difference", limit=2)
  assert [e.similar_product_id for e in by_difference] == [2, 4]


def test_top_edges(database):
  store = RelationshipStore(database)
  store.replace_all(edge_pair(1, 2, 0.75, 9.0) + edge_pair(3, 4, 0.95, 1.0))

  top = store.top_edges(order_by="similarity", limit=2)
  assert all(e.similarity == 0.95 for e in top)


def test_invalid_order_by(database):
  with pytest.raises(ValueError):
    RelationshipStore(database).edges_for(1, order_by="name")


def test_delete_for_product_removes_both_directions(database):
  store = RelationshipStore(database)
  store.replace_all(edge_pair(1, 2, 0.9, 1.0) + edge_pair(3, 4, 0.9, 1.0))

  with database.session() as session:
    removed = store.delete_for_product(session, 1)
    session.commit()

  assert removed == 2
  assert store.count() == 2
