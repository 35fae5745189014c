# storefront/repositories/orders.py
"""
Firestore-backed order store and the order status state machine.

Documents live in `orders/{order_id}`. Reads never mutate; the only mutation after
create is a status change (plus the administrative delete).
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import Depends
from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from storefront.config import get_db, prefixed, settings
from storefront.schemas.order import ALLOWED_TRANSITIONS, DEFAULT_STATUS
from storefront.services.orders_helpers import build_order_doc, order_doc_to_out

logger = logging.getLogger("storefront.orders")


class IllegalTransition(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Order status cannot change from {current!r} to {target!r}.")
        self.current = current
        self.target = target


class OrderRepository:
    def __init__(self, db, strict_transitions: bool = False):
        self.db = db
        self.strict_transitions = strict_transitions
        self.collection = prefixed("orders")

    def _col(self):
        return self.db.collection(self.collection)

    def create(
        self,
        *,
        buyer: str,
        products: List[Dict[str, Any]],
        payment: Dict[str, Any],
        buyer_name: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Writes a new order; starts in `Not Process` unless `status` overrides it."""
        if status is not None and status not in ALLOWED_TRANSITIONS:
            raise ValueError(f"Unknown order status: {status!r}")
        order_id = str(uuid.uuid4())
        ref = self._col().document(order_id)
        ref.set(build_order_doc(
            buyer=buyer,
            products=products,
            payment=payment,
            status=status or DEFAULT_STATUS,
            buyer_name=buyer_name,
        ))
        logger.info("Order %s created for buyer %s", order_id, buyer)
        return order_doc_to_out(ref.get())

    def find_by_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        snap = self._col().document(order_id).get()
        return order_doc_to_out(snap) if snap.exists else None

    def find_by_transaction_id(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        docs = list(
            self._col()
                .where(filter=FieldFilter("payment.transaction_id", "==", transaction_id))
                .limit(1)
                .stream()
        )
        return order_doc_to_out(docs[0]) if docs else None

    def find_by_buyer(self, buyer: str) -> List[Dict[str, Any]]:
        """Buyer's orders, newest first."""
        query = self._col().where(filter=FieldFilter("buyer", "==", buyer))
        try:
            docs = list(query.order_by("created_at", direction=firestore.Query.DESCENDING).stream())
        except FailedPrecondition:
            # No composite index: plain query and sort in Python
            docs = sorted(
                query.stream(),
                key=lambda d: (d.to_dict() or {}).get("created_at") or 0,
                reverse=True,
            )
        return [order_doc_to_out(d) for d in docs]

    def find_all(self) -> List[Dict[str, Any]]:
        docs = self._col().order_by("created_at", direction=firestore.Query.DESCENDING).stream()
        return [order_doc_to_out(d) for d in docs]

    def update_status(self, order_id: str, status: str) -> Optional[Dict[str, Any]]:
        """
        Sets the order status. Returns None when the order does not exist.
        Any state may follow any state unless strict transitions are enabled.
        """
        if status not in ALLOWED_TRANSITIONS:
            raise ValueError(f"Unknown order status: {status!r}")
        ref = self._col().document(order_id)
        snap = ref.get()
        if not snap.exists:
            return None

        current = (snap.to_dict() or {}).get("status") or DEFAULT_STATUS
        if self.strict_transitions and status != current and status not in ALLOWED_TRANSITIONS.get(current, ()):
            raise IllegalTransition(current, status)

        ref.update({"status": status, "updated_at": SERVER_TIMESTAMP})
        logger.info("Order %s status %s -> %s", order_id, current, status)
        return order_doc_to_out(ref.get())

    def delete(self, order_id: str) -> bool:
        ref = self._col().document(order_id)
        if not ref.get().exists:
            return False
        ref.delete()
        logger.warning("Order %s deleted", order_id)
        return True


def get_order_repository(db=Depends(get_db)) -> OrderRepository:
    return OrderRepository(db, strict_transitions=settings.order_strict_transitions)
