# storefront/services/orders_helpers.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from storefront.schemas.order import DEFAULT_STATUS

__all__ = [
    "coerce_item",
    "calc_total",
    "build_order_doc",
    "order_doc_to_out",
]

CENT = Decimal("0.01")


def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump(by_alias=True)
    return dict(obj)


def coerce_item(raw: Any) -> Dict[str, Any]:
    """
    Cart line → product snapshot stored on the order.
    Price and quantity are copied by value; later catalog edits never reach the order.
    """
    d = _as_dict(raw)
    qty = d.get("quantity")
    qty = 1 if qty is None else max(1, int(qty))
    price_dec = Decimal(str(d.get("price", 0)))
    line_total = (price_dec * qty).quantize(CENT)

    return {
        "product_id": str(d.get("product_id") or d.get("_id") or d.get("id") or ""),
        "name": d.get("name") or "Product",
        "price": float(price_dec),
        "quantity": qty,
        "line_total": float(line_total),
    }


def calc_total(items: Iterable[Any]) -> Decimal:
    """Sum of unit price × quantity (quantity defaults to 1), rounded to cents."""
    total = Decimal("0")
    for it in items:
        d = _as_dict(it)
        qty = d.get("quantity")
        qty = 1 if qty is None else int(qty)
        total += Decimal(str(d.get("price", 0))) * qty
    return total.quantize(CENT)


def build_order_doc(
    *,
    buyer: str,
    products: List[Dict[str, Any]],
    payment: Dict[str, Any],
    status: Optional[str] = None,
    buyer_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Compiles the Firestore order document."""
    total = sum((Decimal(str(p["line_total"])) for p in products), Decimal("0"))
    return {
        "buyer": buyer,
        "buyer_name": buyer_name,
        "products": products,
        "payment": dict(payment),
        "status": status or DEFAULT_STATUS,
        "total": float(total.quantize(CENT)),
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    }


def order_doc_to_out(doc) -> Dict[str, Any]:
    """
    Firestore doc → plain dict compatible with OrderOut. No Pydantic objects are returned.
    """
    data = doc.to_dict() if hasattr(doc, "to_dict") else doc
    if not data:
        raise ValueError("Empty order document.")

    return {
        "id": getattr(doc, "id", None) or data.get("id"),
        "buyer": data.get("buyer"),
        "buyer_name": data.get("buyer_name"),
        "status": data.get("status") or DEFAULT_STATUS,
        "products": list(data.get("products") or []),
        "payment": data.get("payment") or {},
        "total": data.get("total") or 0.0,
        "created_at": data.get("created_at"),
        "updated_at": data.get("updated_at"),
    }
