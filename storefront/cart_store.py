# storefront/cart_store.py
"""The cart of one browser session.

The store keeps an ordered list of CartItem in memory and mirrors the whole
list to a key/value storage on every mutation (write-through). In the web app
the storage is the signed ``cart`` cookie, so the cart never touches the
database. Only one request/thread mutates a given store; two browser tabs
sharing the cookie simply overwrite each other (last write wins).
"""
import json
import logging
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Protocol

from pydantic import TypeAdapter

from .config import CART_STORAGE_KEY
from .schemas import CartItem, CartProduct

logger = logging.getLogger(__name__)

_items_adapter = TypeAdapter(List[CartItem])


class CartStorage(Protocol):
    def read(self, key: str) -> Optional[str]:
        ...

    def write(self, key: str, value: str) -> None:
        ...


class CorruptStorageError(ValueError):
    """Stored cart content exists but cannot be trusted or decoded."""


class CartStoreClosed(RuntimeError):
    pass


class CartConfigurationError(RuntimeError):
    """Raised at composition time when a component is wired without its cart."""


class MemoryStorage:
    """Plain dict storage, used by tests and scripts."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})
        self.writes = 0

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.writes += 1
        self.data[key] = value


class CartStore:
    def __init__(
        self,
        storage: CartStorage,
        key: str = CART_STORAGE_KEY,
        on_mutation: Optional[Callable[["CartStore"], None]] = None,
    ):
        if storage is None:
            raise CartConfigurationError("CartStore needs a storage backend")
        self._storage = storage
        self._key = key
        self._on_mutation = on_mutation
        self._items: List[CartItem] = []
        self._closed = False

    # --- lifecycle -------------------------------------------------------

    def load(self) -> "CartStore":
        """Hydrate from storage. Corrupt content is logged and leaves the cart empty."""
        self._ensure_open()
        self._items = []
        try:
            raw = self._storage.read(self._key)
            if raw is None:
                return self
            self._items = _items_adapter.validate_python(json.loads(raw))
        except ValueError as exc:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            logger.warning("Failed to parse cart from storage key %r: %s", self._key, exc)
            self._items = []
        return self

    def dispose(self) -> None:
        self._closed = True
        self._storage = None
        self._on_mutation = None

    @property
    def closed(self) -> bool:
        return self._closed

    # --- mutations -------------------------------------------------------

    def add_item(self, product, quantity: int = 1) -> None:
        self._ensure_open()
        snapshot = CartProduct.model_validate(product, from_attributes=True)
        existing = self._find(snapshot.id)
        if existing is not None:
            existing.quantity += quantity
        else:
            self._items.append(CartItem(product_id=snapshot.id, quantity=quantity, product=snapshot))
        self._mutated()

    def remove_item(self, product_id: int) -> None:
        self._ensure_open()
        self._items = [item for item in self._items if item.product_id != product_id]
        self._mutated()

    def update_quantity(self, product_id: int, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id)
            return
        self._ensure_open()
        item = self._find(product_id)
        if item is not None:
            item.quantity = quantity
        self._mutated()

    def clear_cart(self) -> None:
        self._ensure_open()
        self._items = []
        self._mutated()

    # --- reads -----------------------------------------------------------

    @property
    def items(self) -> List[CartItem]:
        return [item.model_copy(deep=True) for item in self._items]

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def total(self) -> Decimal:
        return sum((item.product.price * item.quantity for item in self._items), Decimal("0"))

    def is_product_in_cart(self, product_id: int) -> bool:
        return self._find(product_id) is not None

    def is_empty(self) -> bool:
        return not self._items

    def snapshot(self) -> List[dict]:
        """JSON-ready list in wire format (productId, imageUrl, ...)."""
        return [item.model_dump(mode="json", by_alias=True) for item in self._items]

    # --- internals -------------------------------------------------------

    def _find(self, product_id: int) -> Optional[CartItem]:
        for item in self._items:
            if item.product_id == product_id:
                return item
        return None

    def _mutated(self) -> None:
        """Write-through hook run by every mutation."""
        self._storage.write(self._key, json.dumps(self.snapshot()))
        if self._on_mutation is not None:
            self._on_mutation(self)

    def _ensure_open(self) -> None:
        if self._closed:
            raise CartStoreClosed("cart store has been disposed")
