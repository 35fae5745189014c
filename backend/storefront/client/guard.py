"""
storefront/client/guard.py - Checkout authorization gate.

ALLOWED           buyer has a session token and a shipping address
REQUIRES_LOGIN    no buyer / blank token → go to /login carrying the destination in `state`
REQUIRES_ADDRESS  signed in, no address → checkout stays visible, commit is disabled
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from storefront.schemas.principal import Buyer

CART_PATH = "/cart"
LOGIN_PATH = "/login"
PROFILE_PATH = "/dashboard/user/profile"
ORDERS_PATH = "/dashboard/user/orders"


class GuardDecision(str, Enum):
    ALLOWED = "Allowed"
    REQUIRES_LOGIN = "RequiresLogin"
    REQUIRES_ADDRESS = "RequiresAddress"


@dataclass(frozen=True)
class Redirect:
    path: str
    state: Optional[str] = None


@dataclass(frozen=True)
class GuardResult:
    decision: GuardDecision
    redirect: Optional[Redirect] = None

    @property
    def allowed(self) -> bool:
        return self.decision is GuardDecision.ALLOWED

    @property
    def checkout_visible(self) -> bool:
        return self.decision is not GuardDecision.REQUIRES_LOGIN

    @property
    def can_commit(self) -> bool:
        return self.allowed


class AuthorizationGuard:
    def check(self, buyer: Optional[Buyer], destination: str = CART_PATH) -> GuardResult:
        if buyer is None or not buyer.authenticated:
            return GuardResult(GuardDecision.REQUIRES_LOGIN, Redirect(LOGIN_PATH, state=destination))
        if not buyer.has_address:
            return GuardResult(GuardDecision.REQUIRES_ADDRESS, Redirect(PROFILE_PATH))
        return GuardResult(GuardDecision.ALLOWED)
