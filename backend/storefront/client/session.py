"""
storefront/client/session.py - Signed-in buyer and session token, persisted under `auth`.
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from storefront.client.cart import CartStore
from storefront.client.guard import Redirect
from storefront.client.storage import ClientStorage
from storefront.core.errors import StorageError
from storefront.schemas.principal import Buyer

logger = logging.getLogger("storefront.session")

AUTH_KEY = "auth"
HOME_PATH = "/"


class Session:
    def __init__(self, storage: ClientStorage, cart: Optional[CartStore] = None):
        self.storage = storage
        self.cart = cart
        self.buyer: Optional[Buyer] = None
        self._subscribers: List[Callable[[Optional[Buyer]], None]] = []
        self._rehydrate()

    def _rehydrate(self) -> None:
        try:
            raw = self.storage.get_item(AUTH_KEY)
            if not raw:
                return
            data = json.loads(raw)
            self.buyer = self._buyer_from(data["user"], data.get("token"))
        except StorageError as e:
            logger.error("Auth storage unreadable: %s", e)
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Failed to parse auth data from storage: %s", e)
            self._forget()

    @staticmethod
    def _buyer_from(user: Union[Buyer, Dict[str, Any]], token: Optional[str]) -> Buyer:
        if isinstance(user, Buyer):
            return user.model_copy(update={"token": token})
        return Buyer.model_validate({**user, "token": token})

    @property
    def token(self) -> Optional[str]:
        return self.buyer.token if self.buyer else None

    def subscribe(self, callback: Callable[[Optional[Buyer]], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def login(self, user: Union[Buyer, Dict[str, Any]], token: str, redirect: Optional[Redirect] = None) -> str:
        """
        Stores the buyer and token. Returns where to go next: the destination carried by the
        login redirect (e.g. back to /cart), or home.
        """
        self.buyer = self._buyer_from(user, token)
        self._save()
        return (redirect.state if redirect and redirect.state else None) or HOME_PATH

    def update_address(self, address: str) -> None:
        if self.buyer is None:
            raise ValueError("No buyer signed in")
        self.buyer = self.buyer.model_copy(update={"address": address})
        self._save()

    def logout(self) -> None:
        self.buyer = None
        self._forget()
        if self.cart is not None:
            self.cart.clear()
        self._notify()

    def _save(self) -> None:
        payload = {"user": self.buyer.model_dump(by_alias=True), "token": self.buyer.token}
        try:
            self.storage.set_item(AUTH_KEY, json.dumps(payload))
        except StorageError as e:
            logger.error("Failed to persist auth: %s", e)
        self._notify()

    def _forget(self) -> None:
        try:
            self.storage.remove_item(AUTH_KEY)
        except StorageError as e:
            logger.error("Failed to remove persisted auth: %s", e)

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(self.buyer)
            except Exception:
                logger.exception("Session subscriber %r failed", callback)
