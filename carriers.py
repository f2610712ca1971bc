"""
Carrier adapters: how one order becomes one parcel request, and how the
carrier's answer is read back.

Two shapes are supported. Yalidine is recognised by its API URL and gets
its own payload, endpoint and per-parcel reply decoding; every other
carrier receives the raw order as JSON and any 2xx answer counts as
accepted.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from models import Order
from wilayas import normalize_wilaya_name, resolve_carrier_wilaya_name

ERROR_DETAIL_LIMIT = 400
DEFAULT_PRODUCT_LIST = "ElectroMart Order"
DEFAULT_FROM_WILAYA = "Alger"


class OrderRejected(Exception):
    """The order cannot be turned into a parcel; nothing was sent."""


@dataclass(frozen=True)
class ShippingCredentials:
    api_url: str
    api_id: str
    api_token: str
    from_wilaya_name: Optional[str] = None
    default_commune: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.api_url and self.api_id and self.api_token)


@dataclass(frozen=True)
class ParcelOutcome:
    ok: bool
    message: Optional[str] = None


# --- Yalidine replies ---

@dataclass(frozen=True)
class ParcelList:
    """``[{"order_id": "12", "success": true, ...}, ...]``"""
    entries: List[Dict[str, Any]]


@dataclass(frozen=True)
class ParcelMap:
    """``{"12": {"success": true, ...}, ...}``"""
    entries: Dict[str, Any]


@dataclass(frozen=True)
class UnparseableReply:
    raw: str


YalidineReply = Union[ParcelList, ParcelMap, UnparseableReply]


def decode_yalidine_reply(raw_text: str) -> YalidineReply:
    try:
        parsed = json.loads(raw_text)
    except ValueError:
        return UnparseableReply(raw_text)
    if isinstance(parsed, list):
        return ParcelList([entry for entry in parsed if isinstance(entry, dict)])
    if isinstance(parsed, dict):
        return ParcelMap(parsed)
    return UnparseableReply(raw_text)


def find_parcel(reply: YalidineReply, order_id: int) -> Optional[Dict[str, Any]]:
    key = str(order_id)
    if isinstance(reply, ParcelList):
        return next((e for e in reply.entries if str(e.get("order_id")) == key), None)
    if isinstance(reply, ParcelMap):
        entry = reply.entries.get(key)
        return entry if isinstance(entry, dict) else None
    return None


# --- helpers ---

def _first_text(*candidates) -> Optional[str]:
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return None


def limit_detail(text: str) -> str:
    trimmed = (text or "").strip()
    if len(trimmed) > ERROR_DETAIL_LIMIT:
        return f"{trimmed[:ERROR_DETAIL_LIMIT]}…"
    return trimmed


def extract_error_message(raw_text: str) -> str:
    """Best-effort message from the usual JSON error bodies, else the raw text."""
    try:
        parsed = json.loads(raw_text)
    except ValueError:
        return raw_text
    if not isinstance(parsed, dict):
        return raw_text
    error = parsed.get("error")
    nested = error if isinstance(error, dict) else {}
    candidate = _first_text(
        parsed.get("message"),
        parsed.get("detail"),
        error,
        nested.get("message"),
        nested.get("description"),
    )
    return candidate or raw_text


def js_round(value: float) -> int:
    return int(math.floor(value + 0.5))


def split_customer_name(full_name: str):
    full = (full_name or "").strip()
    parts = full.split()
    firstname = parts[0] if parts else (full or "Client")
    familyname = " ".join(parts[1:]) or firstname
    return firstname, familyname


def describe_products(order: Order, product_names: Mapping[int, str]) -> str:
    labels = []
    for item in order.items:
        name = product_names.get(item.product_id) or f"Product {item.product_id}"
        labels.append(f"{name} x{item.quantity}" if item.quantity > 1 else name)
    return ", ".join(labels)


def yalidine_parcels_url(base_url: str) -> str:
    """Point a configured Yalidine base URL at its ``/v1/parcels`` endpoint."""
    try:
        parts = urlsplit(base_url)
    except ValueError:
        return base_url
    if not parts.scheme or not parts.netloc:
        return base_url
    path = parts.path or "/"
    normalized = path[:-1] if path.endswith("/") else path
    if normalized.endswith("/parcels") or "/parcels/" in normalized:
        return base_url
    if normalized in ("", "/v1"):
        new_path = "/v1/parcels"
    elif "/v1" in normalized:
        new_path = f"{normalized}/parcels"
    else:
        new_path = "/v1/parcels"
    return urlunsplit(parts._replace(path=new_path))


# --- adapters ---

class Carrier:
    name = "generic"
    requires_commune = False

    def __init__(self, credentials: ShippingCredentials):
        self.credentials = credentials

    def headers(self) -> Dict[str, str]:
        token = self.credentials.api_token
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
            "X-API-ID": self.credentials.api_id,
            "X-API-TOKEN": token,
        }

    def dispatch_url(self) -> str:
        return self.credentials.api_url

    def build_payload(self, order: Order, commune: str, product_names: Mapping[int, str]):
        payload = {
            "orderId": order.id,
            "customerName": order.customer_name,
            "phone": order.phone,
            "wilaya": order.wilaya,
            "address": order.address,
            "totalPrice": order.total_price,
            "items": [item.model_dump(mode="json", by_alias=True) for item in order.items],
        }
        if commune:
            payload["commune"] = commune
        return payload

    def error_message(self, status_code: int, raw_text: str) -> str:
        detail = limit_detail(extract_error_message(raw_text))
        return f"{status_code}: {detail}" if detail else f"Failed ({status_code})"

    def read_reply(self, order: Order, raw_text: str) -> ParcelOutcome:
        return ParcelOutcome(ok=True)


class YalidineCarrier(Carrier):
    name = "yalidine"
    requires_commune = True

    def dispatch_url(self):
        return yalidine_parcels_url(self.credentials.api_url)

    def build_payload(self, order, commune, product_names):
        to_wilaya = resolve_carrier_wilaya_name(order.wilaya)
        if to_wilaya is None:
            normalized = normalize_wilaya_name(order.wilaya)
            suffix = f" (بعد التطبيع: {normalized})" if normalized else ""
            raise OrderRejected(
                f"ولاية غير مدعومة في Yalidine: {order.wilaya}{suffix}. مثال صحيح: Alger"
            )
        from_wilaya = (
            resolve_carrier_wilaya_name(self.credentials.from_wilaya_name or DEFAULT_FROM_WILAYA)
            or DEFAULT_FROM_WILAYA
        )
        firstname, familyname = split_customer_name(order.customer_name)
        return [
            {
                "order_id": str(order.id),
                "from_wilaya_name": from_wilaya,
                "firstname": firstname,
                "familyname": familyname,
                "contact_phone": order.phone,
                "address": order.address,
                "to_commune_name": commune,
                "to_wilaya_name": to_wilaya,
                "product_list": describe_products(order, product_names) or DEFAULT_PRODUCT_LIST,
                "price": js_round(order.total_price),
                "freeshipping": False,
                "is_stopdesk": False,
                "has_exchange": False,
            }
        ]

    def error_message(self, status_code, raw_text):
        detail = extract_error_message(raw_text)
        if "to_commune_name" in detail:
            detail = (
                f"{detail} - تأكد من ضبط Default Commune في إعدادات الشحن "
                "وكتابتها بنفس تهجئة Yalidine"
            )
        detail = limit_detail(detail)
        return f"{status_code}: {detail}" if detail else f"Failed ({status_code})"

    def read_reply(self, order, raw_text):
        reply = decode_yalidine_reply(raw_text)
        if isinstance(reply, UnparseableReply):
            detail = limit_detail(reply.raw)
            prefix = "استجابة غير متوقعة من Yalidine"
            return ParcelOutcome(ok=False, message=f"{prefix}: {detail}" if detail else prefix)

        parcel = find_parcel(reply, order.id)
        if parcel is not None and parcel.get("success") is True:
            return ParcelOutcome(ok=True)
        message = None
        if parcel is not None:
            message = _first_text(parcel.get("message"), parcel.get("error"), parcel.get("description"))
        return ParcelOutcome(ok=False, message=message or "لم يتم إنشاء الشحنة في Yalidine")


def carrier_for(credentials: ShippingCredentials) -> Carrier:
    if "yalidine" in credentials.api_url.lower():
        return YalidineCarrier(credentials)
    return Carrier(credentials)
