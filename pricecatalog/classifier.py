# pricecatalog/classifier.py

from typing import Dict, Iterable, Optional

from pricecatalog.config import PET_TYPE_KEYWORDS
from pricecatalog.models import PetType


def classify_pet_type(name: Optional[str], category: Optional[str],
                      keywords: Dict[str, Iterable[str]] = None) -> str:
  """
  Derive the pet type from product name, then category.

  Case-insensitive substring match against the keyword table; the name wins over
  the category, and within one text the first pet type in table order wins.

  Returns:
    str: PetType value, 'other' when nothing matches
  """
  keywords = PET_TYPE_KEYWORDS if keywords is None else keywords
  for text in (name, category):
    if not text:
      continue
    lowered = text.lower()
    for pet_type, terms in keywords.items():
      if any(term.lower() in lowered for term in terms):
        return pet_type
  return PetType.OTHER.value
