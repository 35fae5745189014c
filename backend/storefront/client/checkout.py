"""
storefront/client/checkout.py - Checkout orchestration on the client.

`place_order` never raises past this boundary: every outcome is a CheckoutResult and the
user-facing message goes through the notifier. The cart is cleared only after the server
has confirmed the order write (Settled); on any other outcome it is left exactly as it was.
Nothing is retried automatically.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from storefront.client.cart import CartStore
from storefront.client.gateway import Declined, NonceCollector, PaymentGatewayClient, PaymentNonce
from storefront.client.guard import ORDERS_PATH, AuthorizationGuard, GuardDecision, GuardResult, Redirect
from storefront.core.errors import (
    GENERIC_FAILURE,
    AuthorizationError,
    CheckoutError,
    GatewayError,
    PersistenceError,
    ValidationError,
)
from storefront.schemas.principal import Buyer

logger = logging.getLogger("storefront.checkout")

PAYMENT_COMPLETED = "Payment Completed Successfully "


class CheckoutStatus(str, Enum):
    PLACED = "placed"
    DECLINED = "declined"
    FAILED = "failed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class CheckoutResult:
    status: CheckoutStatus
    order_id: Optional[str] = None
    redirect: Optional[Redirect] = None
    message: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is CheckoutStatus.PLACED


class Notifier:
    """Toast-style user notices. The default only logs."""

    def success(self, message: str) -> None:
        logger.info("notice: %s", message)

    def error(self, message: str) -> None:
        logger.info("error notice: %s", message)


class CheckoutOrchestrator:
    def __init__(
        self,
        gateway: PaymentGatewayClient,
        guard: Optional[AuthorizationGuard] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.gateway = gateway
        self.guard = guard or AuthorizationGuard()
        self.notifier = notifier or Notifier()

    async def load(self, buyer: Optional[Buyer]) -> GuardResult:
        """
        Checkout page load: evaluate the guard and, once the buyer is authenticated,
        fetch the gateway token. A token failure is logged and leaves the form unavailable.
        """
        result = self.guard.check(buyer)
        if result.decision is not GuardDecision.REQUIRES_LOGIN:
            try:
                await self.gateway.request_token()
            except GatewayError as e:
                logger.error("Payment form unavailable: %s", e)
        return result

    async def pay(self, buyer: Optional[Buyer], cart: CartStore, collector: NonceCollector) -> CheckoutResult:
        """Submit handler: one nonce from the hosted form, then place the order."""
        try:
            nonce = await self.gateway.collect_nonce(collector)
        except CheckoutError as e:
            return self._failed(e) if isinstance(e, GatewayError) else self._blocked(e)
        return await self.place_order(buyer, cart, nonce)

    async def place_order(
        self,
        buyer: Optional[Buyer],
        cart: CartStore,
        nonce: Union[PaymentNonce, str, None],
    ) -> CheckoutResult:
        try:
            items, amount = self._preconditions(buyer, cart, nonce)
            settlement = await self.gateway.settle(nonce, items, token=buyer.token, amount=amount)
        except (ValidationError, AuthorizationError) as e:
            return self._blocked(e)
        except PersistenceError as e:
            logger.critical(
                "Buyer %s was charged (transaction %s) but no order was written: %s",
                buyer.id, e.transaction_id, e,
            )
            return self._failed(e)
        except GatewayError as e:
            return self._failed(e)

        if isinstance(settlement, Declined):
            logger.warning("Payment declined for buyer %s: %s", buyer.id, settlement.message)
            self.notifier.error(settlement.message)
            return CheckoutResult(CheckoutStatus.DECLINED, message=settlement.message)

        cart.clear()
        logger.info("Order %s placed for buyer %s, amount %s", settlement.order_id, buyer.id, amount)
        self.notifier.success(PAYMENT_COMPLETED)
        return CheckoutResult(
            CheckoutStatus.PLACED,
            order_id=settlement.order_id,
            redirect=Redirect(ORDERS_PATH),
            message=PAYMENT_COMPLETED,
        )

    def _preconditions(self, buyer, cart: CartStore, nonce):
        decision = self.guard.check(buyer)
        if decision.decision is GuardDecision.REQUIRES_LOGIN:
            raise AuthorizationError("Checkout without a session", user_message="Please Login to checkout")
        if decision.decision is GuardDecision.REQUIRES_ADDRESS:
            raise AuthorizationError("Checkout without a shipping address", user_message="Please update your address")
        if cart.is_empty:
            raise ValidationError("Your cart is empty")
        if not nonce:
            raise ValidationError("Missing payment method")

        errors = []
        amount: Optional[Decimal] = cart.total(on_error=errors.append)
        if amount is None:
            raise ValidationError(f"Cart total could not be computed: {errors[0]!r}",
                                  user_message="Your cart contains an invalid price")
        return cart.items, amount

    def _blocked(self, error: CheckoutError) -> CheckoutResult:
        logger.info("Checkout blocked: %s", error)
        self.notifier.error(error.user_message)
        return CheckoutResult(CheckoutStatus.BLOCKED, message=error.user_message, error=error)

    def _failed(self, error: CheckoutError) -> CheckoutResult:
        if not isinstance(error, PersistenceError):
            logger.error("Checkout failed: %s", error)
        self.notifier.error(GENERIC_FAILURE)
        return CheckoutResult(CheckoutStatus.FAILED, message=GENERIC_FAILURE, error=error)
