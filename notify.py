"""
New-order notifications through a Telegram bot.
"""

import logging
from typing import Mapping, Optional

import requests

from config import TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID
from models import Order

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    def __init__(self, bot_token: Optional[str] = None, chat_id: Optional[str] = None,
                 session=None, timeout: float = 10):
        self.bot_token = TELEGRAM_BOT_TOKEN if bot_token is None else bot_token
        self.chat_id = TELEGRAM_CHAT_ID if chat_id is None else chat_id
        self.session = session or requests
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def send_text(self, text: str):
        response = self.session.post(
            f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage",
            json={"chat_id": self.chat_id, "text": text},
            timeout=self.timeout,
        )
        response.raise_for_status()

    def notify_new_order(self, order: Order, product_names: Mapping[int, str]):
        """Best effort: a failed send is logged and never reaches the customer."""
        if not self.enabled:
            return
        try:
            self.send_text(format_order_message(order, product_names))
        except requests.RequestException as e:
            logging.error(f"ORDERS: Notification Telegram echouee pour #{order.id} - {e}")


def format_order_message(order: Order, product_names: Mapping[int, str]) -> str:
    lines = [
        "🛒 طلب جديد!",
        f"#{order.id}",
        f"👤 الاسم: {order.customer_name}",
        f"📞 الهاتف: {order.phone}",
        f"📍 الولاية: {order.wilaya}",
        f"🏠 العنوان: {order.address}",
        "📦 المنتجات:",
    ]
    for item in order.items:
        name = product_names.get(item.product_id) or f"#{item.product_id}"
        lines.append(f"- {name} ×{item.quantity}")
    lines.append(f"💰 المبلغ: {order.total_price:g} دج")
    return "\n".join(lines)
