"""
Checkout: turn a cart into a Pending order.
"""

import logging
from typing import Dict, List, Optional

from config import DELIVERY_FEE
from database import Storage
from errors import InvalidOrderError
from models import CartLine, Order, OrderCreate, OrderStatus
from notify import TelegramNotifier


class OrderService:
    def __init__(self, storage: Storage, notifier: Optional[TelegramNotifier] = None,
                 delivery_fee: float = DELIVERY_FEE):
        self.storage = storage
        self.notifier = notifier or TelegramNotifier()
        self.delivery_fee = delivery_fee

    def create_order_from_cart(self, customer_name: str, phone: str, wilaya: str, address: str,
                               items: List[CartLine], commune: Optional[str] = None) -> Order:
        """Reserve stock for every line and record the order.

        Either every line's stock is decremented and the order exists, or
        InsufficientStockError / NotFoundError is raised and nothing changed.
        ``totalPrice`` is the subtotal at current prices plus the flat
        delivery fee.
        """
        if not items:
            raise InvalidOrderError("Cart is empty")
        for line in items:
            if not isinstance(line.quantity, int) or line.quantity <= 0:
                raise InvalidOrderError("Invalid quantity")

        data = OrderCreate(
            customer_name=customer_name, phone=phone, wilaya=wilaya,
            commune=commune, address=address, items=items,
        )
        order = self.storage.create_order_from_cart(data, self.delivery_fee)
        logging.info(
            f"ORDERS: Nouvelle commande #{order.id} ({order.total_price:g} DA) - Client: {order.customer_name}"
        )
        return order

    def product_names(self, order: Order) -> Dict[int, str]:
        names = {}
        for product_id in {item.product_id for item in order.items}:
            product = self.storage.get_product(product_id)
            if product is not None:
                names[product_id] = product.name
        return names

    def notify(self, order: Order):
        """Meant to run after the response has gone out (background task)."""
        if not self.notifier.enabled:
            return
        try:
            self.notifier.notify_new_order(order, self.product_names(order))
        except Exception:
            logging.exception(f"ORDERS: Notification impossible pour #{order.id}")

    def list_orders(self) -> List[Order]:
        return self.storage.list_orders()

    def set_status(self, order_id: int, status: OrderStatus) -> Order:
        order = self.storage.update_order_status(order_id, status)
        logging.info(f"ORDERS: Commande #{order_id} -> {order.status.value}")
        return order
