"""Normalization of raw catalog records.

The catalog source is loosely typed: the identifier may arrive as ``id`` or
``product_id``, optional fields may be missing or null, and tag lists are
sometimes sent as a single string.  :func:`normalize_record` is the one place
where those shapes are mapped to a :class:`CatalogRecord`, with these
defaults:

=============  ========================  =====================================
field          source keys               default
=============  ========================  =====================================
product_id     ``id``, ``product_id``    none; raises InvalidRecordError
name           ``name``                  ``""``
brand          ``brand``                 ``""``
category       ``category``              ``""``
effects        ``effects``               ``[]``; a string becomes ``[string]``
ingredients    ``ingredients``           ``[]``; a string becomes ``[string]``
price          ``price``                 ``0.0``; negative/unparsable -> 0.0
image_url      ``image_url``             ``""``
=============  ========================  =====================================
"""

from __future__ import annotations

import math
from typing import Any

from app.errors import InvalidRecordError
from app.models.domain import CatalogRecord, IndexedProduct


def extract_product_id(raw: dict[str, Any]) -> str | None:
    """Return the record's identifier as a string, or None when it has none."""
    for key in ("id", "product_id"):
        value = raw.get(key)
        if value is None or isinstance(value, bool):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return []


def _as_price(value: Any) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(price) or math.isinf(price) or price < 0:
        return 0.0
    return price


def normalize_record(raw: dict[str, Any]) -> CatalogRecord:
    """Map a raw catalog record to a :class:`CatalogRecord`.

    Raises :class:`InvalidRecordError` when the record has no identifier.
    """
    product_id = extract_product_id(raw)
    if product_id is None:
        raise InvalidRecordError(
            None, f"Catalog record has no identifier: {_as_text(raw.get('name')) or raw!r}"
        )

    return CatalogRecord(
        product_id=product_id,
        name=_as_text(raw.get("name")),
        brand=_as_text(raw.get("brand")),
        category=_as_text(raw.get("category")),
        effects=_as_str_list(raw.get("effects")),
        ingredients=_as_str_list(raw.get("ingredients")),
        price=_as_price(raw.get("price")),
        image_url=_as_text(raw.get("image_url")),
    )


def to_indexed_product(record: CatalogRecord, effect_vector: list[float]) -> IndexedProduct:
    return IndexedProduct(**record.model_dump(), effect_vector=effect_vector)
