# storefront/services/checkout.py
"""
Server half of checkout: settle the nonce with the gateway, then write the order.

The gateway is the source of truth for payment success. Settlement and the order write
are not one transaction; when the write fails after a successful charge the payment is
logged at CRITICAL and recorded for reconciliation under its transaction id.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from storefront.core.errors import PaymentDeclined, PersistenceError, ValidationError
from storefront.integrations.payment import BraintreePayments
from storefront.repositories import reconciliation
from storefront.repositories.orders import OrderRepository
from storefront.schemas.cart import CartItem
from storefront.services.orders_helpers import calc_total, coerce_item

logger = logging.getLogger("storefront.checkout")

INVALID_PAYMENT_DATA = "Invalid payment data: missing nonce or cart items"
ORDER_WRITE_FAILED = "Payment processed but order creation failed"


def process_payment(
    *,
    buyer: Dict[str, Any],
    nonce: Optional[str],
    cart: Optional[List[CartItem]],
    gateway: BraintreePayments,
    repository: OrderRepository,
) -> Dict[str, Any]:
    """
    Charges the cart total against `nonce` and creates the order.

    Raises ValidationError before any gateway call, PaymentDeclined / GatewayError when
    the charge does not go through, PersistenceError when the charge went through but the
    order could not be written.
    """
    if not (nonce or "").strip() or not cart:
        raise ValidationError(INVALID_PAYMENT_DATA)

    uid = str(buyer.get("id") or "")
    products = [coerce_item(it) for it in cart]
    amount = calc_total(products)
    logger.info("Processing payment for user %s, total: %s", uid, amount)

    ok, payment = gateway.sale(amount, nonce)
    if not ok:
        message = payment.get("message") or "Payment declined. Please check your card details."
        logger.info("Payment declined for user %s: %s", uid, message)
        raise PaymentDeclined(message)

    transaction_id = payment.get("transaction_id")
    try:
        order = repository.create(
            buyer=uid,
            buyer_name=buyer.get("name"),
            products=products,
            payment=payment,
        )
    except Exception as exc:
        logger.critical(
            "Payment %s settled for user %s but the order write failed: %s",
            transaction_id, uid, exc, exc_info=True,
        )
        _record_for_reconciliation(repository, transaction_id, uid, buyer.get("name"), products, payment, exc)
        raise PersistenceError(f"{ORDER_WRITE_FAILED}: {exc}", transaction_id=transaction_id) from exc

    logger.info("Order %s created for user %s (transaction %s)", order["id"], uid, transaction_id)
    return order


def _record_for_reconciliation(repository, transaction_id, uid, buyer_name, products, payment, exc) -> None:
    if not transaction_id:
        return
    try:
        reconciliation.record(
            repository.db,
            transaction_id,
            buyer=uid,
            buyer_name=buyer_name,
            products=products,
            payment=payment,
            error=str(exc),
        )
    except Exception:
        # The CRITICAL log line above is the record of last resort
        logger.exception("Could not record transaction %s for reconciliation", transaction_id)
