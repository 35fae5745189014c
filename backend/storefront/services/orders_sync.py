# storefront/services/orders_sync.py
from __future__ import annotations

import logging
from typing import Optional

from storefront.config import get_db, settings
from storefront.repositories import reconciliation
from storefront.repositories.orders import OrderRepository

logger = logging.getLogger("storefront.reconciliation")


def reconcile_settled_payments_once(repository: Optional[OrderRepository] = None) -> int:
    """
    Creates the missing order for every settled-but-unpersisted payment.
    Idempotent per transaction id: an existing order for the transaction only resolves the record.
    Returns the number of resolved records.
    """
    if repository is None:
        repository = OrderRepository(get_db(), strict_transitions=settings.order_strict_transitions)
    db = repository.db

    resolved = 0
    for entry in reconciliation.pending(db):
        transaction_id = entry.get("transaction_id")
        if not transaction_id:
            continue
        try:
            order = repository.find_by_transaction_id(transaction_id)
            if order is None:
                order = repository.create(
                    buyer=entry.get("buyer") or "",
                    buyer_name=entry.get("buyer_name"),
                    products=entry.get("products") or [],
                    payment=entry.get("payment") or {"transaction_id": transaction_id},
                )
                logger.warning("Reconciled transaction %s into order %s", transaction_id, order["id"])
            reconciliation.mark_resolved(db, transaction_id, order["id"])
            resolved += 1
        except Exception as exc:
            logger.error("Reconciliation of transaction %s failed: %s", transaction_id, exc)
            reconciliation.mark_attempt(db, transaction_id, str(exc))
    return resolved
