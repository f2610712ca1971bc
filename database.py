"""
Storage contract and the JSON-file backend.

``FileStorage`` keeps every table in memory and rewrites one JSON file
after each mutation; without a path it is a plain in-memory store.
The SQL backend lives in sql_storage.py and honours the same contract.
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from config import DATABASE_URL, STORAGE_FILE
from errors import ConflictError, InsufficientStockError, InvalidOrderError, NotFoundError
from models import (
    CartLine, Order, OrderCreate, OrderItem, OrderStatus, Product, ProductCreate,
    ProductUpdate, Slide, SlideCreate, SlideUpdate, User,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def price_order_lines(lines: Iterable[CartLine], products_by_id) -> Tuple[List[OrderItem], float]:
    """Snapshot each line at the current product price and return (items, subtotal).

    ``products_by_id`` maps ids to anything with a ``price`` attribute, so
    both pydantic products and ORM rows work.
    """
    items = []
    subtotal = 0.0
    for line in lines:
        product = products_by_id.get(line.product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {line.product_id}")
        if line.quantity <= 0:
            raise InvalidOrderError("Invalid quantity")
        price = float(product.price)
        subtotal += price * line.quantity
        items.append(OrderItem(product_id=line.product_id, quantity=line.quantity, price=price))
    return items, subtotal


def matches_search(product: Product, search: str) -> bool:
    needle = search.lower()
    return needle in product.name.lower() or needle in product.description.lower()


class Storage(ABC):
    """Everything the services need from persistence."""

    # Users
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_admin_user(self) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, username: str, password: str, role: str = "user") -> User:
        """Raise ConflictError on a taken username or a second admin."""

    @abstractmethod
    def update_user(self, user_id: int, password: Optional[str] = None,
                    role: Optional[str] = None) -> User: ...

    # Products
    @abstractmethod
    def list_products(self, category: Optional[str] = None,
                      search: Optional[str] = None) -> List[Product]: ...

    @abstractmethod
    def get_product(self, product_id: int) -> Optional[Product]: ...

    @abstractmethod
    def create_product(self, data: ProductCreate) -> Product: ...

    @abstractmethod
    def update_product(self, product_id: int, updates: ProductUpdate) -> Product: ...

    @abstractmethod
    def delete_product(self, product_id: int) -> None: ...

    # Slides
    @abstractmethod
    def list_slides(self) -> List[Slide]: ...

    @abstractmethod
    def create_slide(self, data: SlideCreate) -> Slide: ...

    @abstractmethod
    def update_slide(self, slide_id: int, updates: SlideUpdate) -> Slide: ...

    @abstractmethod
    def delete_slide(self, slide_id: int) -> None: ...

    # Orders
    @abstractmethod
    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """Decrement only when stock >= quantity; False when nothing matched."""

    @abstractmethod
    def create_order_from_cart(self, data: OrderCreate, delivery_fee: float) -> Order:
        """Reserve stock for every line and persist a Pending order."""

    @abstractmethod
    def list_orders(self) -> List[Order]: ...

    @abstractmethod
    def get_order(self, order_id: int) -> Optional[Order]: ...

    @abstractmethod
    def update_order_status(self, order_id: int, status: OrderStatus) -> Order: ...


class FileStorage(Storage):
    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = threading.RLock()
        self.users: List[User] = []
        self.products: List[Product] = []
        self.orders: List[Order] = []
        self.slides: List[Slide] = []
        self.next_ids = {"users": 1, "products": 1, "orders": 1, "slides": 1}
        self._load()

    # --- persistence ---

    def _load(self):
        if not self.path or not os.path.exists(self.path):
            return
        with open(self.path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        self.users = [User.model_validate(u) for u in raw.get("users", [])]
        self.products = [Product.model_validate(p) for p in raw.get("products", [])]
        self.orders = [Order.model_validate(o) for o in raw.get("orders", [])]
        self.slides = [Slide.model_validate(s) for s in raw.get("slides", [])]
        self.next_ids.update(raw.get("next_ids", {}))
        logging.info(f"SYSTEM: Chargement fichier de stockage {self.path}")

    def _save(self):
        if not self.path:
            return
        payload = {
            "next_ids": self.next_ids,
            "users": [u.model_dump(mode="json") for u in self.users],
            "products": [p.model_dump(mode="json") for p in self.products],
            "orders": [o.model_dump(mode="json") for o in self.orders],
            "slides": [s.model_dump(mode="json") for s in self.slides],
        }
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logging.error(f"SYSTEM: Erreur sauvegarde fichier de stockage {self.path} - {e}")
            raise

    @contextmanager
    def _write(self):
        """Hold the lock, apply the changes, then save them.

        When the body or the save raises, the tables are put back as they
        were, so memory never holds what the file could not.
        """
        with self._lock:
            snapshot = (list(self.users), list(self.products), list(self.orders),
                        list(self.slides), dict(self.next_ids))
            try:
                yield
                self._save()
            except Exception:
                self.users, self.products, self.orders, self.slides, self.next_ids = snapshot
                raise

    def _next_id(self, table: str) -> int:
        value = self.next_ids[table]
        self.next_ids[table] = value + 1
        return value

    # --- users ---

    def get_user(self, user_id):
        with self._lock:
            return next((u for u in self.users if u.id == user_id), None)

    def get_admin_user(self):
        with self._lock:
            return next((u for u in self.users if u.role == "admin"), None)

    def get_user_by_username(self, username):
        with self._lock:
            return next((u for u in self.users if u.username == username), None)

    def _check_single_admin(self, user_id: Optional[int]):
        admin = self.get_admin_user()
        if admin is not None and admin.id != user_id:
            raise ConflictError("An admin account already exists")

    def create_user(self, username, password, role="user"):
        with self._write():
            if self.get_user_by_username(username) is not None:
                raise ConflictError("Username already exists")
            if role == "admin":
                self._check_single_admin(None)
            user = User(id=self._next_id("users"), username=username, password=password,
                        role=role, created_at=utcnow())
            self.users.append(user)
            return user

    def update_user(self, user_id, password=None, role=None):
        with self._write():
            user = self.get_user(user_id)
            if user is None:
                raise NotFoundError("User not found")
            changes = {}
            if password is not None:
                changes["password"] = password
            if role is not None:
                if role == "admin":
                    self._check_single_admin(user_id)
                changes["role"] = role
            updated = user.model_copy(update=changes)
            self.users = [updated if u.id == user_id else u for u in self.users]
            return updated

    # --- products ---

    def list_products(self, category=None, search=None):
        with self._lock:
            result = list(self.products)
        if category:
            result = [p for p in result if p.category.value == category]
        if search:
            result = [p for p in result if matches_search(p, search)]
        return sorted(result, key=lambda p: (p.created_at, p.id), reverse=True)

    def get_product(self, product_id):
        with self._lock:
            return next((p for p in self.products if p.id == product_id), None)

    def create_product(self, data):
        with self._write():
            product = Product(id=self._next_id("products"), created_at=utcnow(), **data.model_dump())
            self.products.append(product)
        logging.info(f"CATALOGUE: Ajout produit #{product.id} {product.name} (Qté: {product.stock})")
        return product

    def update_product(self, product_id, updates):
        with self._write():
            product = self.get_product(product_id)
            if product is None:
                raise NotFoundError("Product not found")
            merged = product.model_dump()
            merged.update(updates.model_dump(exclude_unset=True))
            updated = Product.model_validate(merged)
            self.products = [updated if p.id == product_id else p for p in self.products]
        logging.info(f"CATALOGUE: Mise a jour produit #{product_id}")
        return updated

    def delete_product(self, product_id):
        with self._write():
            remaining = [p for p in self.products if p.id != product_id]
            if len(remaining) == len(self.products):
                raise NotFoundError("Product not found")
            self.products = remaining
        logging.info(f"CATALOGUE: Suppression produit #{product_id}")

    # --- slides ---

    def list_slides(self):
        with self._lock:
            result = list(self.slides)
        # sort_order ascending, newest first within the same position
        result.sort(key=lambda s: (s.created_at, s.id), reverse=True)
        result.sort(key=lambda s: s.sort_order)
        return result

    def _get_slide(self, slide_id) -> Optional[Slide]:
        return next((s for s in self.slides if s.id == slide_id), None)

    def create_slide(self, data):
        with self._write():
            slide = Slide(id=self._next_id("slides"), created_at=utcnow(), **data.model_dump())
            self.slides.append(slide)
            return slide

    def update_slide(self, slide_id, updates):
        with self._write():
            slide = self._get_slide(slide_id)
            if slide is None:
                raise NotFoundError("Slide not found")
            merged = slide.model_dump()
            merged.update(updates.model_dump(exclude_unset=True))
            updated = Slide.model_validate(merged)
            self.slides = [updated if s.id == slide_id else s for s in self.slides]
            return updated

    def delete_slide(self, slide_id):
        with self._write():
            remaining = [s for s in self.slides if s.id != slide_id]
            if len(remaining) == len(self.slides):
                raise NotFoundError("Slide not found")
            self.slides = remaining

    # --- orders ---

    def _decrement(self, product_id: int, quantity: int) -> bool:
        product = self.get_product(product_id)
        if product is None or product.stock < quantity:
            return False
        updated = product.model_copy(update={"stock": product.stock - quantity})
        self.products = [updated if p.id == product_id else p for p in self.products]
        return True

    def decrement_stock(self, product_id, quantity):
        with self._write():
            return self._decrement(product_id, quantity)

    def create_order_from_cart(self, data, delivery_fee):
        # The lock is held from validation to the save, so two checkouts in
        # this process cannot both pass the stock check.
        with self._write():
            products_by_id = {p.id: p for p in self.products}
            items, subtotal = price_order_lines(data.items, products_by_id)

            wanted: Dict[int, int] = {}
            for item in items:
                wanted[item.product_id] = wanted.get(item.product_id, 0) + item.quantity
            for product_id, quantity in wanted.items():
                if products_by_id[product_id].stock < quantity:
                    raise InsufficientStockError(product_id)

            for product_id, quantity in wanted.items():
                if not self._decrement(product_id, quantity):
                    raise InsufficientStockError(product_id)

            order = Order(
                id=self._next_id("orders"),
                customer_name=data.customer_name,
                phone=data.phone,
                wilaya=data.wilaya,
                commune=(data.commune or "").strip() or None,
                address=data.address,
                total_price=subtotal + delivery_fee,
                status=OrderStatus.PENDING,
                items=items,
                created_at=utcnow(),
            )
            self.orders.append(order)
            return order

    def list_orders(self):
        with self._lock:
            result = list(self.orders)
        return sorted(result, key=lambda o: (o.created_at, o.id), reverse=True)

    def get_order(self, order_id):
        with self._lock:
            return next((o for o in self.orders if o.id == order_id), None)

    def update_order_status(self, order_id, status):
        with self._write():
            order = self.get_order(order_id)
            if order is None:
                raise NotFoundError("Order not found")
            updated = order.model_copy(update={"status": OrderStatus(status)})
            self.orders = [updated if o.id == order_id else o for o in self.orders]
            return updated


_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """Return the process-wide store (SQL when DATABASE_URL is set)."""
    global _storage
    if _storage is None:
        if DATABASE_URL:
            from sql_storage import SqlStorage
            _storage = SqlStorage(DATABASE_URL)
        else:
            _storage = FileStorage(STORAGE_FILE)
    return _storage
