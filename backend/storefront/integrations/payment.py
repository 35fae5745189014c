"""
storefront/integrations/payment.py - Payment gateway (Braintree) integration.

Wraps the braintree SDK: client token generation for the hosted payment form and
`transaction.sale` settlement of a payment method nonce.
"""
import logging
import uuid
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Tuple

import braintree

from storefront.config import settings
from storefront.core.errors import GatewayError

logger = logging.getLogger("storefront.payment")

_ENVIRONMENTS = {
    "sandbox": braintree.Environment.Sandbox,
    "production": braintree.Environment.Production,
}

# Braintree's own test nonce for a processor decline; honoured in simulation mode too
DECLINED_TEST_NONCE = "fake-processor-declined-visa-nonce"


class BraintreePayments:
    """
    Thin gateway facade used by the checkout service.

    If the merchant keys are not configured the gateway runs in simulation mode:
    tokens and transactions are fabricated locally and nothing is charged.
    """

    def __init__(self, config=settings):
        self.simulated = not config.braintree_configured
        self._gateway = None
        if self.simulated:
            logger.warning("Braintree keys not set - payments run in simulation mode, nothing is charged.")
        else:
            environment = _ENVIRONMENTS.get(config.braintree_environment.lower(), braintree.Environment.Sandbox)
            self._gateway = braintree.BraintreeGateway(
                braintree.Configuration(
                    environment=environment,
                    merchant_id=config.braintree_merchant_id,
                    public_key=config.braintree_public_key,
                    private_key=config.braintree_private_key,
                )
            )

    def generate_client_token(self) -> str:
        """Client authorization for the hosted payment form. Raises GatewayError."""
        if self.simulated:
            return f"simulated-client-token-{uuid.uuid4().hex[:12]}"
        try:
            return self._gateway.client_token.generate()
        except Exception as e:
            raise GatewayError(f"Client token generation failed: {e}") from e

    def sale(self, amount: Decimal, nonce: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Charge `amount` against the payment method behind `nonce` and submit for settlement.

        Returns (True, payment) on success, where payment holds transaction_id/status/amount,
        or (False, {"message": ...}) when the processor declines.
        Transport/SDK failures raise GatewayError.
        """
        amount_str = f"{amount:.2f}"
        if self.simulated:
            if nonce == DECLINED_TEST_NONCE:
                return False, {"message": "Credit card declined", "status": "processor_declined"}
            return True, {
                "transaction_id": f"SIM-{uuid.uuid4().hex[:10]}",
                "status": "submitted_for_settlement",
                "amount": float(amount_str),
                "success": True,
                "simulated": True,
            }

        try:
            result = self._gateway.transaction.sale({
                "amount": amount_str,
                "payment_method_nonce": nonce,
                "options": {"submit_for_settlement": True},
            })
        except Exception as e:
            raise GatewayError(f"Braintree sale failed: {e}") from e

        if result.is_success:
            txn = result.transaction
            return True, {
                "transaction_id": txn.id,
                "status": txn.status,
                "amount": float(amount_str),
                "success": True,
            }

        txn = getattr(result, "transaction", None)
        return False, {
            "message": result.message or "Payment declined. Please check your card details.",
            "status": getattr(txn, "status", None),
            "transaction_id": getattr(txn, "id", None),
        }


@lru_cache(maxsize=1)
def get_payment_gateway() -> BraintreePayments:
    return BraintreePayments()
