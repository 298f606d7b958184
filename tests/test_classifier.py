# tests/test_classifier.py

import pytest

from pricecatalog.classifier import classify_pet_type


@pytest.mark.parametrize("name, category, expected", [
  ("Crocchette per cani adulti", None, "dog"),
  ("CIBO UMIDO CANE", None, "dog"),
  ("Lettiera per gatti", None, "cat"),
  ("Fieno per roditori", None, "small-animal"),
  ("Gabbia", "Piccoli Animali", "small-animal"),
  ("Acquario 60 litri", "Pesci", "other"),
  (None, None, "other"),
  ("Snack al salmone", "Gatto/Snack", "cat"),
])
def test_classify(name, category, expected):
  assert classify_pet_type(name, category) == expected


def test_name_wins_over_category():
  assert classify_pet_type("Snack per gatto", "Cani") == "cat"


def test_first_pet_type_in_table_order_wins():
  assert classify_pet_type("Spazzola per gatto e cane", None) == "dog"


def test_custom_keyword_table():
  keywords = {"bird": ("uccelli",), "dog": ("cani",)}
  assert classify_pet_type("Mangime per uccelli", None, keywords) == "bird"
  assert classify_pet_type("Osso per cani", None, keywords) == "dog"
  assert classify_pet_type("Lettiera gatto", None, keywords) == "other"
