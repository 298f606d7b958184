# pricecatalog/normalizer.py

import math
import re
from collections.abc import Mapping
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin

from pricecatalog.config import DEFAULT_CURRENCY, STORE_BASE_URLS
from pricecatalog.exceptions import MissingRequiredFieldError, UnknownSourceError
from pricecatalog.models import CanonicalProduct, PriceEntry, Variant

currency_pattern = r"[$€£\s ]+|EUR"

# source tag -> strategy(raw, default_category) -> CanonicalProduct
_STRATEGIES: Dict[str, Callable[[Mapping, Optional[str]], CanonicalProduct]] = {}


def register_source(tag: str):
  """Register the field-mapping strategy for one source tag."""
  def decorator(fn):
    _STRATEGIES[tag] = fn
    return fn
  return decorator


def available_sources() -> List[str]:
  return sorted(_STRATEGIES)


def normalize(raw, source_tag: str, default_category: Optional[str] = None) -> CanonicalProduct:
  """
  Map one raw record of a source into the canonical product shape.
  Pure: no I/O, no shared state.

  Args:
    raw (Mapping): Record as produced by the source's collection step
    source_tag (str): Selects the strategy ('arcaplanet', 'zooplus')
    default_category (str): Category of the collection unit, used when the record has none

  Returns:
    CanonicalProduct: Normalized product (price 0.0 when absent or non-numeric)

  Raises:
    UnknownSourceError: No strategy for source_tag
    MissingRequiredFieldError: Identity or name absent
  """
  strategy = _STRATEGIES.get(source_tag)
  if strategy is None:
    raise UnknownSourceError(f"No normalizer registered for source '{source_tag}'")
  if not isinstance(raw, Mapping):
    raise MissingRequiredFieldError("sourceId", source_tag)
  return strategy(raw, default_category)


def parse_price(value) -> float:
  """Numeric coercion of a price field. Accepts Italian formats ('12,99 €', '1.299,00')."""
  if value is None or isinstance(value, bool):
    return 0.0
  if isinstance(value, (int, float)):
    return float(value)
  if not isinstance(value, str):
    return 0.0

  text = re.sub(currency_pattern, "", value)
  if "," in text and "." in text:
    if text.rfind(",") > text.rfind("."):
      text = text.replace(".", "").replace(",", ".")
    else:
      text = text.replace(",", "")
  elif "," in text:
    text = text.replace(",", ".")

  try:
    price = float(text)
  except ValueError:
    return 0.0
  return price if math.isfinite(price) else 0.0


def _first(*values):
  """First present, non-empty value (the 'id or sku' fallback chain)."""
  for value in values:
    if value is None:
      continue
    if isinstance(value, str) and not value.strip():
      continue
    return value
  return None


def _text(value) -> Optional[str]:
  if value is None:
    return None
  text = str(value).strip()
  return text or None


def _dig(raw, *path):
  current = raw
  for key in path:
    if isinstance(current, Mapping):
      current = current.get(key)
    elif isinstance(current, list) and isinstance(key, int):
      current = current[key] if -len(current) <= key < len(current) else None
    else:
      return None
  return current


def _brand(value) -> Optional[str]:
  if isinstance(value, Mapping):
    return _text(value.get("name"))
  return _text(value)


def _variants(items) -> List[Variant]:
  if not isinstance(items, list):
    return []
  variants = []
  for item in items:
    if not isinstance(item, Mapping):
      continue
    variants.append(Variant(
      variant_id=str(_first(item.get("id"), "default")),
      description=_text(_first(item.get("title"), item.get("name"))),
      available=item.get("available") is not False,
      price=parse_price(item.get("price")),
    ))
  return variants


def _identity_and_name(source: str, source_id, name):
  source_id = _text(source_id)
  if not source_id:
    raise MissingRequiredFieldError("sourceId", source)
  name = _text(name)
  if not name:
    raise MissingRequiredFieldError("name", source)
  return source_id, name


@register_source("arcaplanet")
def normalize_arcaplanet(raw: Mapping, default_category: Optional[str] = None) -> CanonicalProduct:
  """Arcaplanet export: flat records, or GraphQL listings wrapped in 'node'."""
  if isinstance(raw.get("node"), Mapping):
    return _normalize_arcaplanet_node(raw, default_category)

  source_id, name = _identity_and_name(
    "arcaplanet", _first(raw.get("id"), raw.get("sku")), _first(raw.get("title"), raw.get("name")))

  images = raw.get("images")
  image_url = images[0] if isinstance(images, list) and images else raw.get("imageUrl")

  price_field = raw.get("price")
  amount = parse_price(price_field.get("current")) if isinstance(price_field, Mapping) else parse_price(price_field)

  return CanonicalProduct(
    source="arcaplanet",
    source_id=source_id,
    name=name,
    brand=_brand(raw.get("brand")),
    category=_text(_first(raw.get("category"), default_category)),
    image_url=_text(image_url),
    description=_text(raw.get("description")),
    sku=_text(_first(raw.get("sku"), source_id)),
    weight=_text(raw.get("weight")),
    price=PriceEntry(
      store="arcaplanet",
      price=amount,
      currency=_text(raw.get("currency")) or DEFAULT_CURRENCY,
      url=_text(raw.get("url")),
      in_stock=raw.get("available") is not False,
    ),
    variants=_variants(raw.get("variants")),
  )


def _normalize_arcaplanet_node(raw: Mapping, default_category: Optional[str]) -> CanonicalProduct:
  node = raw["node"]
  source_id, name = _identity_and_name(
    "arcaplanet", _first(node.get("id"), node.get("sku")), _first(_dig(node, "isVariantOf", "name"), node.get("name")))

  in_stock = True
  for variant in _dig(node, "isVariantOf", "hasVariant") or []:
    if isinstance(variant, Mapping) and variant.get("sku") == node.get("sku"):
      availability = _dig(variant, "offers", "offers", 0, "availability")
      if availability:
        in_stock = availability == "https://schema.org/InStock"
      break

  weight = None
  for prop in node.get("additionalProperty") or []:
    if isinstance(prop, Mapping) and "Weight" in str(prop.get("name", "")):
      weight = _text(prop.get("value"))
      break

  slug = _first(node.get("slug"), source_id)
  return CanonicalProduct(
    source="arcaplanet",
    source_id=source_id,
    name=name,
    brand=_brand(node.get("brand")),
    category=_text(_first(raw.get("category"), default_category)),
    image_url=_text(_dig(node, "image", 0, "url")),
    sku=_text(_first(node.get("sku"), source_id)),
    weight=weight,
    price=PriceEntry(
      store="arcaplanet",
      price=parse_price(_dig(node, "offers", "lowPrice")),
      currency=DEFAULT_CURRENCY,
      url=f"{STORE_BASE_URLS['arcaplanet']}/p/{slug}",
      in_stock=in_stock,
    ),
  )


@register_source("zooplus")
def normalize_zooplus(raw: Mapping, default_category: Optional[str] = None) -> CanonicalProduct:
  source_id, name = _identity_and_name(
    "zooplus",
    _first(raw.get("sourceId"), raw.get("id"), raw.get("shopIdentifier"), raw.get("sku")),
    _first(raw.get("name"), raw.get("title")))

  listed = _dig(raw, "prices", 0)
  if isinstance(listed, Mapping):
    amount = parse_price(listed.get("price"))
    url = _first(listed.get("url"), raw.get("url"))
  else:
    amount = parse_price(raw.get("price"))
    url = raw.get("url")
  if not url and raw.get("path"):
    url = urljoin(STORE_BASE_URLS["zooplus"], raw["path"])

  return CanonicalProduct(
    source="zooplus",
    source_id=source_id,
    name=name,
    brand=_brand(raw.get("brand")),
    category=_text(_first(raw.get("category"), default_category)),
    image_url=_text(_first(raw.get("imageUrl"), raw.get("picture400"), raw.get("picture200"))),
    description=_text(_first(raw.get("description"), raw.get("summary"))),
    sku=_text(_first(raw.get("sku"), source_id)),
    weight=_text(raw.get("weight")),
    price=PriceEntry(
      store="zooplus",
      price=amount,
      currency=_text(raw.get("currency")) or DEFAULT_CURRENCY,
      url=_text(url),
      in_stock=raw.get("available") is not False,
    ),
    variants=_variants(raw.get("variants")),
  )
