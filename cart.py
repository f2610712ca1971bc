"""
Shopping cart kept on the client and saved locally between sessions.

Nothing here talks to the server until checkout, where ``to_order``
builds the ``POST /api/orders`` body.
"""

import json
import os
from typing import List, Optional

from pydantic import Field

from models import ApiModel, CartLine, OrderCreate, Product

CART_FILE = "electro-mart-cart.json"


class CartEntry(ApiModel):
    product_id: int
    name: str
    price: float
    image: Optional[str] = None
    quantity: int = Field(1, ge=1)


class Cart(ApiModel):
    items: List[CartEntry] = Field(default_factory=list)

    def _find(self, product_id: int) -> Optional[CartEntry]:
        return next((i for i in self.items if i.product_id == product_id), None)

    def add_item(self, product: Product, quantity: int = 1):
        existing = self._find(product.id)
        if existing is not None:
            existing.quantity += quantity
            return
        self.items.append(CartEntry(
            product_id=product.id,
            name=product.name,
            price=product.price,
            image=product.images[0] if product.images else None,
            quantity=quantity,
        ))

    def remove_item(self, product_id: int):
        self.items = [i for i in self.items if i.product_id != product_id]

    def update_quantity(self, product_id: int, quantity: int):
        if quantity <= 0:
            self.remove_item(product_id)
            return
        existing = self._find(product_id)
        if existing is not None:
            existing.quantity = quantity

    def clear(self):
        self.items = []

    def total(self) -> float:
        return sum(i.price * i.quantity for i in self.items)

    def count(self) -> int:
        return sum(i.quantity for i in self.items)

    def to_order(self, customer_name: str, phone: str, wilaya: str, address: str,
                 commune: Optional[str] = None) -> OrderCreate:
        return OrderCreate(
            customer_name=customer_name,
            phone=phone,
            wilaya=wilaya,
            commune=commune,
            address=address,
            items=[CartLine(product_id=i.product_id, quantity=i.quantity) for i in self.items],
        )

    def save(self, path: str = CART_FILE):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode="json", by_alias=True), f, ensure_ascii=False)

    @classmethod
    def load(cls, path: str = CART_FILE) -> "Cart":
        if not os.path.exists(path):
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate(json.load(f))
