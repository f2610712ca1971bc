"""
Shipping configuration and the dispatch of Pending orders to the carrier.

Dispatch never stops on a bad order: every targeted order ends up either
Shipped (carrier confirmed the parcel) or still Pending with the reason in
the result list, so it can be retried later.
"""

import logging
import re
from typing import Iterable, Mapping, Optional

import requests

from carriers import Carrier, OrderRejected, ShippingCredentials, carrier_for
from config import SHIPPING_ENV, SHIPPING_HTTP_TIMEOUT
from config_store import SHIPPING_CONFIG_KEY, ConfigStore
from database import Storage
from errors import ShippingNotConfiguredError, StoreError
from models import (
    DispatchResult, DispatchSummary, Order, OrderStatus, ShippingConfigOut,
    ShippingConfigUpdate,
)

MISSING_COMMUNE_MESSAGE = "Commune مفقودة. أضفها في الطلب ثم أعد الإرسال."

_ADDRESS_SEPARATORS = re.compile(r"[,\-]")
_FIELDS = ("api_url", "api_id", "api_token", "from_wilaya_name", "default_commune")


class ShippingConfigService:
    """Stored carrier settings, overridden field by field by the environment."""

    def __init__(self, store: ConfigStore, env_overrides: Optional[Mapping[str, str]] = None):
        self.store = store
        self.env_overrides = dict(SHIPPING_ENV if env_overrides is None else env_overrides)

    def _merged(self) -> dict:
        merged = dict(self.store.get(SHIPPING_CONFIG_KEY) or {})
        for field in _FIELDS:
            value = (self.env_overrides.get(field) or "").strip()
            if value:
                merged[field] = value
        return merged

    def effective(self) -> Optional[ShippingCredentials]:
        merged = self._merged()
        if not (merged.get("api_url") or merged.get("api_id") or merged.get("api_token")):
            return None
        return ShippingCredentials(
            api_url=merged.get("api_url") or "",
            api_id=merged.get("api_id") or "",
            api_token=merged.get("api_token") or "",
            from_wilaya_name=merged.get("from_wilaya_name") or None,
            default_commune=merged.get("default_commune") or None,
        )

    def is_configured(self) -> bool:
        credentials = self.effective()
        return credentials is not None and credentials.is_complete

    def public_view(self) -> ShippingConfigOut:
        credentials = self.effective()
        if credentials is None:
            return ShippingConfigOut(token_present=False)
        return ShippingConfigOut(
            api_url=credentials.api_url or None,
            api_id=credentials.api_id or None,
            token_present=bool(credentials.api_token),
            from_wilaya_name=credentials.from_wilaya_name,
            default_commune=credentials.default_commune,
        )

    def update(self, data: ShippingConfigUpdate) -> None:
        # An empty token, origin wilaya or commune keeps the stored value.
        existing = self.store.get(SHIPPING_CONFIG_KEY) or {}
        document = {
            "api_url": data.api_url.strip(),
            "api_id": data.api_id.strip(),
            "api_token": (data.api_token or "").strip() or existing.get("api_token", ""),
            "from_wilaya_name": (data.from_wilaya_name or "").strip() or existing.get("from_wilaya_name"),
            "default_commune": (data.default_commune or "").strip() or existing.get("default_commune"),
        }
        self.store.put(SHIPPING_CONFIG_KEY, document)
        logging.info(f"SHIPPING: Configuration transporteur mise a jour ({document['api_url']})")


def derive_commune(address: str) -> str:
    """First address segment, e.g. "Kouba, Rue 5, Alger" -> "Kouba"."""
    candidate = _ADDRESS_SEPARATORS.split(address or "", maxsplit=1)[0].strip()
    if 2 <= len(candidate) <= 50:
        return candidate
    return ""


def resolve_commune(order: Order, default_commune: Optional[str]) -> str:
    return (
        (order.commune or "").strip()
        or derive_commune(order.address)
        or (default_commune or "").strip()
    )


class ShippingDispatcher:
    def __init__(self, storage: Storage, shipping_config: ShippingConfigService,
                 session=None, timeout: float = SHIPPING_HTTP_TIMEOUT):
        self.storage = storage
        self.shipping_config = shipping_config
        self.session = session or requests.Session()
        self.timeout = timeout

    def dispatch(self, order_ids: Optional[Iterable[int]] = None) -> DispatchSummary:
        credentials = self.shipping_config.effective()
        if credentials is None or not credentials.is_complete:
            raise ShippingNotConfiguredError()

        wanted = set(order_ids) if order_ids is not None else None
        targets = [
            order for order in self.storage.list_orders()
            if order.status == OrderStatus.PENDING and (wanted is None or order.id in wanted)
        ]
        carrier = carrier_for(credentials)
        product_names = {p.id: p.name for p in self.storage.list_products()}

        results = [self._send(carrier, credentials, order, product_names) for order in targets]
        sent = sum(1 for r in results if r.ok)
        summary = DispatchSummary(
            attempted=len(targets), sent=sent, failed=len(results) - sent, results=results,
        )
        logging.info(
            f"SHIPPING: Envoi {carrier.name} - {summary.attempted} commande(s), "
            f"{summary.sent} envoyee(s), {summary.failed} echec(s)"
        )
        return summary

    def _send(self, carrier: Carrier, credentials: ShippingCredentials, order: Order,
              product_names: Mapping[int, str]) -> DispatchResult:
        try:
            commune = resolve_commune(order, credentials.default_commune)
            if carrier.requires_commune and not commune:
                return self._failed(order, MISSING_COMMUNE_MESSAGE)

            payload = carrier.build_payload(order, commune, product_names)
            response = self.session.post(
                carrier.dispatch_url(), json=payload, headers=carrier.headers(), timeout=self.timeout,
            )
            raw_text = response.text
            if not 200 <= response.status_code < 300:
                return self._failed(order, carrier.error_message(response.status_code, raw_text))

            outcome = carrier.read_reply(order, raw_text)
            if not outcome.ok:
                return self._failed(order, outcome.message)

            self.storage.update_order_status(order.id, OrderStatus.SHIPPED)
        except OrderRejected as e:
            return self._failed(order, str(e))
        except requests.RequestException as e:
            return self._failed(order, f"Erreur réseau: {e}")
        except StoreError as e:
            return self._failed(order, e.message)
        except Exception as e:
            logging.exception(f"SHIPPING: Erreur inattendue commande #{order.id}")
            return self._failed(order, str(e) or type(e).__name__)

        logging.info(f"SHIPPING: Commande #{order.id} envoyee")
        return DispatchResult(order_id=order.id, ok=True)

    @staticmethod
    def _failed(order: Order, message: Optional[str]) -> DispatchResult:
        logging.warning(f"SHIPPING: Echec commande #{order.id} - {message}")
        return DispatchResult(order_id=order.id, ok=False, message=message or "Unknown error")
