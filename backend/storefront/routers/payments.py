"""
storefront/routers/payments.py
Braintree endpoints used by the checkout page.

- GET  /api/v1/product/braintree/token   → {"clientToken": ...} for the hosted payment form.
- POST /api/v1/product/braintree/payment → settles {nonce, cart} and creates the order.

Payment responses keep the storefront's JSON contract:
  200 {"ok": true, "orderId": ...}
  400 {"ok": false, "error": ...}                      invalid body (no gateway call)
  400 {"ok": false, "error": ..., "declined": true}    processor declined
  500 {"ok": false, "error": ...}                      gateway unreachable / SDK failure
  500 {"ok": false, "error": ..., "charged": true, "paymentId": ...}
                                                       charged but the order was not written
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from storefront.core.errors import GatewayError, PaymentDeclined, PersistenceError, ValidationError
from storefront.core.security import get_current_user
from storefront.integrations.payment import BraintreePayments, get_payment_gateway
from storefront.repositories.orders import OrderRepository, get_order_repository
from storefront.schemas.cart import PaymentBody
from storefront.services.checkout import ORDER_WRITE_FAILED, process_payment

logger = logging.getLogger("storefront.payment")

router = APIRouter(prefix="/api/v1/product/braintree", tags=["Payments"])


@router.get("/token")
def braintree_token(gateway: BraintreePayments = Depends(get_payment_gateway)):
    """Client token for the hosted payment form. No special privilege required."""
    try:
        return {"clientToken": gateway.generate_client_token()}
    except GatewayError as e:
        logger.error("Client token request failed: %s", e)
        return JSONResponse(status_code=500, content={"ok": False, "error": "Could not create client token"})


@router.post("/payment")
def braintree_payment(
    payload: PaymentBody,
    current_user: dict = Depends(get_current_user),
    gateway: BraintreePayments = Depends(get_payment_gateway),
    repository: OrderRepository = Depends(get_order_repository),
):
    """Charge the submitted cart and create the order."""
    try:
        order = process_payment(
            buyer=current_user,
            nonce=payload.nonce,
            cart=payload.cart,
            gateway=gateway,
            repository=repository,
        )
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})
    except PaymentDeclined as e:
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e), "declined": True})
    except PersistenceError as e:
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": ORDER_WRITE_FAILED, "charged": True, "paymentId": e.transaction_id},
        )
    except GatewayError as e:
        logger.error("Payment processing failed for user %s: %s", current_user.get("id"), e)
        return JSONResponse(status_code=500, content={"ok": False, "error": "Payment processing failed"})

    return {"ok": True, "orderId": order["id"]}
