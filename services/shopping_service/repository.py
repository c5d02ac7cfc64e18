import logging
from typing import List, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from shared.errors import StorageError
from shared.storage import LocalStorage, read_json, write_json

from .schemas import CartItem, WishlistItem

logger = logging.getLogger(__name__)

CART_KEY = "cart"
WISHLIST_KEY = "wishlist"

T = TypeVar("T", bound=BaseModel)


class ShoppingRepository:
    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def _load(self, key: str, model: Type[T]) -> List[T]:
        """Corrupt data is logged and read as an empty collection."""
        try:
            raw = read_json(self.storage, key)
        except StorageError as e:
            logger.error(f"Error loading {key}: {e}")
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error(f"Error loading {key}: expected a list, got {type(raw).__name__}")
            return []

        items: List[T] = []
        for entry in raw:
            try:
                items.append(model.model_validate(entry))
            except SchemaError as e:
                logger.warning(f"Skipping unreadable {key} entry {entry!r}: {e}")
        return items

    def load_cart(self) -> List[CartItem]:
        return self._load(CART_KEY, CartItem)

    def save_cart(self, items: List[CartItem]) -> None:
        write_json(self.storage, CART_KEY, [item.model_dump() for item in items])

    def clear_cart(self) -> None:
        self.storage.remove_item(CART_KEY)

    def load_wishlist(self) -> List[WishlistItem]:
        return self._load(WISHLIST_KEY, WishlistItem)

    def save_wishlist(self, items: List[WishlistItem]) -> None:
        write_json(self.storage, WISHLIST_KEY, [item.model_dump() for item in items])
