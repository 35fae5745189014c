"""
storefront/client/gateway.py - Async payment gateway client for the checkout page.

State machine:

    UNINITIALIZED → TOKEN_REQUESTED → TOKEN_READY → NONCE_COLLECTED
                  → SETTLEMENT_REQUESTED → SETTLED | DECLINED

- A failed or timed-out token request falls back to UNINITIALIZED; the payment form is
  then unavailable and no settlement can be attempted.
- Submit is disabled while a nonce is being collected and during SETTLEMENT_REQUESTED.
- Each nonce is consumed once.
- DECLINED allows a user-initiated retry with a fresh nonce; SETTLED does not.
"""
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

import httpx

from storefront.config import settings
from storefront.core.errors import AuthorizationError, GatewayError, PersistenceError, ValidationError

logger = logging.getLogger("storefront.gateway")

TOKEN_PATH = "/api/v1/product/braintree/token"
PAYMENT_PATH = "/api/v1/product/braintree/payment"


class GatewayState(str, Enum):
    UNINITIALIZED = "Uninitialized"
    TOKEN_REQUESTED = "TokenRequested"
    TOKEN_READY = "TokenReady"
    NONCE_COLLECTED = "NonceCollected"
    SETTLEMENT_REQUESTED = "SettlementRequested"
    SETTLED = "Settled"
    DECLINED = "Declined"


_FORM_STATES = {GatewayState.TOKEN_READY, GatewayState.NONCE_COLLECTED, GatewayState.DECLINED}


@dataclass(frozen=True)
class PaymentAuthorization:
    client_token: str


@dataclass(frozen=True)
class PaymentNonce:
    value: str


@dataclass(frozen=True)
class Settled:
    order_id: Optional[str]
    amount: Optional[Decimal] = None


@dataclass(frozen=True)
class Declined:
    message: str


Settlement = Union[Settled, Declined]


class NonceCollector:
    """Hosted payment form. Yields one payment method nonce per user submit."""

    async def request_payment_method(self, authorization: PaymentAuthorization) -> str:
        raise NotImplementedError


class PaymentGatewayClient:
    def __init__(self, http: httpx.AsyncClient, *, timeout: Optional[float] = None):
        self.http = http
        self.timeout = timeout if timeout is not None else settings.gateway_timeout_seconds
        self.state = GatewayState.UNINITIALIZED
        self.authorization: Optional[PaymentAuthorization] = None
        self._collecting = False
        self._consumed: Set[str] = set()

    @classmethod
    def for_base_url(cls, base_url: Optional[str] = None, **kwargs) -> "PaymentGatewayClient":
        timeout = kwargs.pop("timeout", None) or settings.gateway_timeout_seconds
        http = httpx.AsyncClient(base_url=base_url or settings.storefront_base_url, timeout=timeout)
        return cls(http, timeout=timeout, **kwargs)

    async def aclose(self) -> None:
        await self.http.aclose()

    @property
    def form_available(self) -> bool:
        return self.authorization is not None and self.state in _FORM_STATES

    @property
    def submit_enabled(self) -> bool:
        return (
            self.authorization is not None
            and self.state in (GatewayState.TOKEN_READY, GatewayState.DECLINED)
            and not self._collecting
        )

    async def request_token(self) -> PaymentAuthorization:
        """GET the client token once per page load. Raises GatewayError on failure or timeout."""
        if self.authorization is not None and self.state in _FORM_STATES:
            return self.authorization
        if self.state is GatewayState.TOKEN_REQUESTED:
            raise GatewayError("Client token request already in flight")

        self.state = GatewayState.TOKEN_REQUESTED
        try:
            resp = await asyncio.wait_for(self.http.get(TOKEN_PATH), timeout=self.timeout)
            resp.raise_for_status()
            token = resp.json()["clientToken"]
            if not token:
                raise ValueError("empty clientToken")
        except asyncio.TimeoutError as e:
            self.state = GatewayState.UNINITIALIZED
            raise GatewayError(f"Client token request timed out after {self.timeout}s") from e
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            self.state = GatewayState.UNINITIALIZED
            raise GatewayError(f"Client token request failed: {e}") from e

        self.authorization = PaymentAuthorization(token)
        self.state = GatewayState.TOKEN_READY
        return self.authorization

    async def collect_nonce(self, collector: NonceCollector) -> PaymentNonce:
        """Asks the hosted form for exactly one nonce."""
        if not self.submit_enabled:
            raise ValidationError("Payment form is not ready")

        self._collecting = True
        try:
            value = await collector.request_payment_method(self.authorization)
        except Exception as e:
            raise GatewayError(f"Payment method collection failed: {e}") from e
        finally:
            self._collecting = False

        if not value:
            raise ValidationError("No payment method provided")
        self.state = GatewayState.NONCE_COLLECTED
        return PaymentNonce(value)

    async def settle(
        self,
        nonce: Union[PaymentNonce, str],
        items: List[Dict[str, Any]],
        *,
        token: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> Settlement:
        """
        POSTs {nonce, cart}. The server charges the total of exactly these lines.

        Returns Settled or Declined; raises ValidationError (rejected before the network or by
        the server), GatewayError (transport/processor failure), PersistenceError (charged,
        order not written).
        """
        value = nonce.value if isinstance(nonce, PaymentNonce) else nonce
        if self.state is GatewayState.SETTLEMENT_REQUESTED:
            raise ValidationError("A payment is already being processed")
        if not self.form_available:
            raise ValidationError("Payment form is not available")
        if not value:
            raise ValidationError("Missing payment nonce")
        if value in self._consumed:
            raise ValidationError("Payment nonce already used")

        self._consumed.add(value)
        self.state = GatewayState.SETTLEMENT_REQUESTED
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            resp = await asyncio.wait_for(
                self.http.post(PAYMENT_PATH, json={"nonce": value, "cart": items}, headers=headers),
                timeout=self.timeout,
            )
            return self._settlement_from(resp, amount)
        except asyncio.TimeoutError as e:
            raise GatewayError(f"Payment request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Payment request failed: {e}") from e
        finally:
            if self.state is GatewayState.SETTLEMENT_REQUESTED:
                self.state = GatewayState.DECLINED

    def _settlement_from(self, resp: httpx.Response, amount: Optional[Decimal]) -> Settlement:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.is_success and data.get("ok"):
            self.state = GatewayState.SETTLED
            return Settled(order_id=data.get("orderId"), amount=amount)

        error = data.get("error") or resp.reason_phrase or "Payment failed"
        if resp.status_code == 400 and data.get("declined"):
            self.state = GatewayState.DECLINED
            return Declined(message=error)
        if data.get("charged") or data.get("paymentId"):
            # Charged: keep submit disabled so a retry cannot charge twice
            self.state = GatewayState.SETTLED
            raise PersistenceError(error, transaction_id=data.get("paymentId"))

        self.state = GatewayState.DECLINED
        if resp.status_code in (401, 403):
            raise AuthorizationError(f"Payment endpoint refused the session: {error}",
                                     user_message="Please Login to checkout")
        if resp.status_code in (400, 422):
            raise ValidationError(error)
        raise GatewayError(f"Payment endpoint answered {resp.status_code}: {error}")
