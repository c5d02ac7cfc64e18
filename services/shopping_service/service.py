"""
Buyer cart and wishlist, persisted locally.

Every mutation writes the whole collection back and publishes it on the event
bus so independent views (navbar badge, cart page) stay in sync. Mutations
report failure through MutationResult and never raise to the caller.
"""
import logging
from typing import Any, List, Optional

from shared.events import EventBus, Events
from shared.observability import farm_cart_items, farm_cart_mutation_total

from .repository import ShoppingRepository
from .schemas import (
    IDENTITY_KEYS,
    CartItem,
    MutationResult,
    WishlistItem,
    product_fields,
    product_identity,
)

logger = logging.getLogger(__name__)


class ShoppingStore:

    def __init__(self, repository: ShoppingRepository, bus: EventBus):
        self.repository = repository
        self.bus = bus
        self.cart: List[CartItem] = []
        self.wishlist: List[WishlistItem] = []
        self.search_term = ""
        self.selected_category = "all"

    def load(self) -> None:
        self.cart = self.repository.load_cart()
        self.wishlist = self.repository.load_wishlist()
        farm_cart_items.set(self.cart_items_count())

    # --- helpers -------------------------------------------------------------

    def notify(self, message: str, kind: str = "info") -> None:
        self.bus.publish(Events.SHOW_NOTIFICATION, {"message": message, "type": kind})

    def _find(self, product_id: str) -> Optional[CartItem]:
        return next((item for item in self.cart if item.product_id == product_id), None)

    def _commit_cart(self, cart: List[CartItem], operation: str) -> None:
        self.repository.save_cart(cart)
        self.cart = cart
        farm_cart_items.set(self.cart_items_count())
        farm_cart_mutation_total.labels(operation=operation, status="success").inc()
        self.bus.publish(Events.CART_UPDATED, [item.model_dump() for item in self.cart])

    def _commit_wishlist(self, wishlist: List[WishlistItem], operation: str) -> None:
        self.repository.save_wishlist(wishlist)
        self.wishlist = wishlist
        farm_cart_mutation_total.labels(operation=operation, status="success").inc()
        self.bus.publish(Events.WISHLIST_UPDATED, [item.model_dump() for item in self.wishlist])

    def _fail(self, operation: str, message: str, error: Optional[Exception] = None) -> MutationResult:
        if error is not None:
            logger.error(f"Cart operation '{operation}' failed: {error}")
        farm_cart_mutation_total.labels(operation=operation, status="failed").inc()
        self.notify(message, "error")
        return MutationResult(success=False, message=message)

    # --- cart ----------------------------------------------------------------

    def add_to_cart(self, item: Any, quantity: int = 1) -> MutationResult:
        try:
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                return self._fail("add", "Quantity must be at least 1")
            fields = product_fields(item)
            product_id = product_identity(fields)
            if product_id is None:
                return self._fail("add", "Product has no id")

            existing = self._find(product_id)
            if existing:
                updated = existing.model_copy(update={"quantity": existing.quantity + quantity})
                cart = [updated if i.product_id == product_id else i for i in self.cart]
                name = existing.name
            else:
                data = {k: v for k, v in fields.items() if k not in IDENTITY_KEYS}
                new_item = CartItem.model_validate({**data, "product_id": product_id, "quantity": quantity})
                cart = self.cart + [new_item]
                name = new_item.name

            self._commit_cart(cart, "add")
            self.notify(f"{name or 'Product'} added to cart!", "success")
            return MutationResult(success=True, message="Product added to cart")
        except Exception as e:
            return self._fail("add", "Failed to add product to cart", e)

    def remove_from_cart(self, product_id: Any) -> MutationResult:
        try:
            product_id = str(product_id)
            self._commit_cart([i for i in self.cart if i.product_id != product_id], "remove")
            self.notify("Product removed from cart", "success")
            return MutationResult(success=True, message="Product removed from cart")
        except Exception as e:
            return self._fail("remove", "Failed to remove product from cart", e)

    def update_quantity(self, product_id: Any, quantity: int) -> MutationResult:
        try:
            if isinstance(quantity, bool) or not isinstance(quantity, int):
                return self._fail("update", "Quantity must be a whole number")
            if quantity <= 0:
                return self.remove_from_cart(product_id)
            product_id = str(product_id)
            if self._find(product_id) is None:
                return self._fail("update", "Product is not in the cart")
            cart = [
                i.model_copy(update={"quantity": quantity}) if i.product_id == product_id else i
                for i in self.cart
            ]
            self._commit_cart(cart, "update")
            return MutationResult(success=True, message="Quantity updated")
        except Exception as e:
            return self._fail("update", "Failed to update quantity", e)

    def clear_cart(self) -> MutationResult:
        try:
            self.repository.clear_cart()
            self.cart = []
            farm_cart_items.set(0)
            farm_cart_mutation_total.labels(operation="clear", status="success").inc()
            self.bus.publish(Events.CART_UPDATED, [])
            self.notify("Cart cleared", "success")
            return MutationResult(success=True, message="Cart cleared")
        except Exception as e:
            return self._fail("clear", "Failed to clear cart", e)

    def is_in_cart(self, product_id: Any) -> bool:
        return self._find(str(product_id)) is not None

    def cart_item_quantity(self, product_id: Any) -> int:
        item = self._find(str(product_id))
        return item.quantity if item else 0

    def cart_total(self) -> float:
        return sum(item.line_total for item in self.cart)

    def cart_items_count(self) -> int:
        return sum(item.quantity for item in self.cart)

    # --- wishlist ------------------------------------------------------------

    def is_in_wishlist(self, product_id: Any) -> bool:
        product_id = str(product_id)
        return any(item.product_id == product_id for item in self.wishlist)

    def toggle_wishlist(self, item: Any) -> MutationResult:
        try:
            fields = product_fields(item)
            product_id = product_identity(fields)
            if product_id is None:
                return self._fail("wishlist", "Product has no id")

            if self.is_in_wishlist(product_id):
                wishlist = [i for i in self.wishlist if i.product_id != product_id]
                in_wishlist = False
                message = f"{fields.get('name') or 'Product'} removed from wishlist"
            else:
                data = {k: v for k, v in fields.items() if k not in IDENTITY_KEYS}
                wishlist = self.wishlist + [WishlistItem.model_validate({**data, "product_id": product_id})]
                in_wishlist = True
                message = f"{fields.get('name') or 'Product'} added to wishlist"

            self._commit_wishlist(wishlist, "wishlist")
            self.notify(message, "success")
            return MutationResult(success=True, message=message, in_wishlist=in_wishlist)
        except Exception as e:
            return self._fail("wishlist", "Failed to update wishlist", e)

    def remove_from_wishlist(self, product_id: Any) -> MutationResult:
        try:
            product_id = str(product_id)
            self._commit_wishlist([i for i in self.wishlist if i.product_id != product_id], "wishlist")
            self.notify("Product removed from wishlist", "success")
            return MutationResult(success=True, message="Product removed from wishlist", in_wishlist=False)
        except Exception as e:
            return self._fail("wishlist", "Failed to remove product from wishlist", e)

    def move_to_cart_from_wishlist(self, item: Any) -> MutationResult:
        result = self.add_to_cart(item)
        if result.success:
            product_id = product_identity(product_fields(item))
            self.remove_from_wishlist(product_id)
            self.notify("Product moved to cart", "success")
        return result

    # --- search --------------------------------------------------------------

    def perform_global_search(self, term: str, category: str = "all") -> None:
        self.search_term = term
        self.selected_category = category
        self.bus.publish(Events.GLOBAL_SEARCH, {"search_term": term, "category": category})

    def clear_search(self) -> None:
        self.perform_global_search("", "all")
