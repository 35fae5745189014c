# storefront/repositories/reconciliation.py
"""
Settled payments whose order write failed, keyed by gateway transaction id.

`payment_reconciliation/{transaction_id}` is written once per failure and resolved by
the reconciliation job when the order exists.
"""
from typing import Any, Dict, List, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from storefront.config import prefixed

COL = "payment_reconciliation"


def _col(db):
    return db.collection(prefixed(COL))


def record(db, transaction_id: str, *, buyer: str, buyer_name: Optional[str],
           products: List[Dict[str, Any]], payment: Dict[str, Any], error: str) -> None:
    _col(db).document(transaction_id).set({
        "transaction_id": transaction_id,
        "buyer": buyer,
        "buyer_name": buyer_name,
        "products": products,
        "payment": payment,
        "error": error,
        "resolved": False,
        "attempts": 0,
        "recorded_at": SERVER_TIMESTAMP,
    })


def pending(db) -> List[Dict[str, Any]]:
    docs = _col(db).where(filter=FieldFilter("resolved", "==", False)).stream()
    return [doc.to_dict() or {} for doc in docs]


def mark_resolved(db, transaction_id: str, order_id: str) -> None:
    _col(db).document(transaction_id).update({
        "resolved": True,
        "order_id": order_id,
        "resolved_at": SERVER_TIMESTAMP,
    })


def mark_attempt(db, transaction_id: str, error: str) -> None:
    ref = _col(db).document(transaction_id)
    attempts = int((ref.get().to_dict() or {}).get("attempts") or 0)
    ref.update({"attempts": attempts + 1, "error": error})
