"""Coercion of loosely typed product entries from the setup wizard.

The wizard posts whatever the owner typed (prices as strings, missing stock,
unknown types). Entries without a name or price are dropped; the rest are
normalised into `Product` column values.
"""

from typing import Any, Dict, Iterable, List, Optional

from ..models import ProductTypeEnum


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _to_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v not in (None, "")]


def is_valid_entry(entry: Any) -> bool:
    return isinstance(entry, dict) and bool(entry.get("name")) and bool(entry.get("price"))


def coerce_product(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Column values for one wizard entry (assumes `is_valid_entry`)."""
    raw_type = entry.get("type") or ProductTypeEnum.physical.value
    try:
        product_type = ProductTypeEnum(raw_type)
    except ValueError:
        product_type = ProductTypeEnum.physical

    if product_type == ProductTypeEnum.service:
        stock = None
    else:
        stock = _to_int(entry.get("stock"))
        if stock is None or stock < 0:
            stock = 0

    discount = _to_int(entry.get("discount_percent"))

    return {
        "name": str(entry["name"]).strip(),
        "description": entry.get("description") or None,
        "price": _to_float(entry.get("price")),
        "stock": stock,
        "type": product_type,
        "colors": _to_str_list(entry.get("colors")),
        "sizes": _to_str_list(entry.get("sizes")),
        "images": _to_str_list(entry.get("images")),
        "discount_percent": discount if discount and 0 < discount <= 100 else None,
        "is_active": True,
    }


def coerce_products(entries: Iterable[Any]) -> List[Dict[str, Any]]:
    return [coerce_product(entry) for entry in entries if is_valid_entry(entry)]
