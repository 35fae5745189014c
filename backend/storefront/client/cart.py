"""
storefront/client/cart.py - Client-held cart.

The cart is an ordered list of product snapshots (duplicates allowed, no quantity merge),
stored under the `cart` key as one JSON array. Every mutation rewrites that key; `clear()`
removes it. Storage failures are logged and never roll back the in-memory change.
"""
import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union

from storefront.client.storage import ClientStorage
from storefront.core.errors import StorageError
from storefront.schemas.cart import CartItem

logger = logging.getLogger("storefront.cart")

CART_KEY = "cart"

Subscriber = Callable[[List[Dict[str, Any]]], None]
ErrorReporter = Callable[[Exception], None]


class CartStore:
    def __init__(self, storage: ClientStorage):
        self.storage = storage
        self._items: List[Dict[str, Any]] = []
        self._subscribers: List[Subscriber] = []
        self._rehydrate()

    def _rehydrate(self) -> None:
        try:
            raw = self.storage.get_item(CART_KEY)
        except StorageError as e:
            logger.error("Cart storage unreadable, starting empty: %s", e)
            return
        if not raw:
            return
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError(f"expected a JSON array, got {type(items).__name__}")
        except ValueError as e:
            logger.error("Invalid cart in storage, discarding it: %s", e)
            self._remove_persisted()
            return
        self._items = [it for it in items if isinstance(it, dict)]

    @property
    def items(self) -> List[Dict[str, Any]]:
        return [dict(it) for it in self._items]

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers `callback(items)` for every mutation; returns the unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def add(self, item: Union[CartItem, Dict[str, Any]]) -> None:
        if not isinstance(item, CartItem):
            item = CartItem.model_validate(item)
        self._items.append(item.to_storage())
        self._changed()

    def remove(self, index: int) -> bool:
        """Removes the line at `index`. Out of range is logged and leaves storage untouched."""
        if not isinstance(index, int) or index < 0 or index >= len(self._items):
            logger.warning("Cart remove ignored: index %r out of range (size %d)", index, len(self._items))
            return False
        del self._items[index]
        self._changed()
        return True

    def total(self, on_error: Optional[ErrorReporter] = None) -> Optional[Decimal]:
        """
        Σ price × quantity over the current lines, computed on every call.
        A malformed line is handed to `on_error` (or logged) and the total is None.
        """
        try:
            total = Decimal("0")
            for it in self._items:
                qty = it.get("quantity")
                qty = Decimal(1) if qty is None else Decimal(str(qty))
                if qty != qty.to_integral_value():
                    raise ValueError(f"quantity {qty} is not a whole number")
                total += Decimal(str(it["price"])) * qty
            return total
        except (ArithmeticError, KeyError, TypeError, ValueError) as e:
            if on_error is not None:
                on_error(e)
            else:
                logger.error("Cart total could not be computed: %r", e)
            return None

    def clear(self) -> None:
        self._items = []
        self._remove_persisted()
        self._notify()

    def serialized(self) -> str:
        try:
            return json.dumps(self._items)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cart is not JSON serializable: {e}") from e

    def _changed(self) -> None:
        try:
            self.storage.set_item(CART_KEY, self.serialized())
        except StorageError as e:
            logger.error("Failed to persist cart: %s", e)
        self._notify()

    def _remove_persisted(self) -> None:
        try:
            self.storage.remove_item(CART_KEY)
        except StorageError as e:
            logger.error("Failed to remove persisted cart: %s", e)

    def _notify(self) -> None:
        items = self.items
        for callback in list(self._subscribers):
            try:
                callback(items)
            except Exception:
                logger.exception("Cart subscriber %r failed", callback)
