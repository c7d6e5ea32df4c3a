"""
Cart ledger.

Ordered line items keyed by (product id, variant id), persisted to the
local store after every change. Observers registered with `subscribe`
are called with the ledger after each mutation.
"""
import logging
import threading
from typing import Callable, List, Tuple

from errors import ValidationFailure
from kvstore import CART_KEY
from schemas import CartItem, OrderItem, Product, ProductVariant

logger = logging.getLogger(__name__)

Listener = Callable[["CartLedger"], None]


class CartLedger:
    def __init__(self, store, key: str = CART_KEY):
        self.store = store
        self.key = key
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        self.items: List[CartItem] = [CartItem.model_validate(i) for i in store.get(key, [])]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _changed(self):
        self.store.set(self.key, [i.model_dump(mode="json") for i in self.items])
        logger.debug("Cart now holds %d line items", len(self.items))
        for listener in list(self._listeners):
            listener(self)

    def _find(self, product_id: str, variant_id: str) -> int:
        for idx, item in enumerate(self.items):
            if item.product.id == product_id and item.variant.id == variant_id:
                return idx
        return -1

    def add(self, product: Product, variant: ProductVariant, quantity: int = 1) -> CartItem:
        if quantity < 1:
            raise ValidationFailure("Quantity must be at least 1")
        with self._lock:
            idx = self._find(product.id, variant.id)
            if idx >= 0:
                self.items[idx].quantity += quantity
                item = self.items[idx]
            else:
                # store the bare product, not the joined view
                item = CartItem(
                    product=Product.model_validate(product.model_dump(include=set(Product.model_fields))),
                    variant=variant,
                    quantity=quantity,
                )
                self.items.append(item)
            self._changed()
            return item

    def update_quantity(self, product_id: str, variant_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id, variant_id)
            return
        with self._lock:
            idx = self._find(product_id, variant_id)
            if idx < 0:
                return
            self.items[idx].quantity = quantity
            self._changed()

    def remove(self, product_id: str, variant_id: str) -> None:
        with self._lock:
            self.items = [
                i for i in self.items if not (i.product.id == product_id and i.variant.id == variant_id)
            ]
            self._changed()

    def clear(self) -> None:
        with self._lock:
            self.items = []
            self._changed()

    def count(self) -> int:
        return sum(i.quantity for i in self.items)

    def total(self) -> float:
        return sum(i.variant.price * i.quantity for i in self.items)

    def checkout_summary(self) -> Tuple[List[OrderItem], float]:
        with self._lock:
            lines = [
                OrderItem(
                    product_id=i.product.id,
                    variant_id=i.variant.id,
                    quantity=i.quantity,
                    unit_price=i.variant.price,
                    subtotal=i.variant.price * i.quantity,
                )
                for i in self.items
            ]
            return lines, self.total()

    def take_checkout(self) -> Tuple[List[OrderItem], float]:
        """Summarise the cart and empty it in one step."""
        with self._lock:
            summary = self.checkout_summary()
            self.clear()
            return summary
