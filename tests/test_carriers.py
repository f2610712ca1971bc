import json
from datetime import datetime, timezone

import pytest

from carriers import (
    Carrier, OrderRejected, ParcelList, ParcelMap, ShippingCredentials, UnparseableReply,
    YalidineCarrier, carrier_for, decode_yalidine_reply, extract_error_message, js_round,
    limit_detail, split_customer_name, yalidine_parcels_url,
)
from models import Order, OrderItem

CREDENTIALS = ShippingCredentials(
    api_url="https://api.yalidine.app/v1/", api_id="id-1", api_token="tok-1",
)


def make_order(**overrides):
    fields = dict(
        id=12,
        customer_name="Amine Ben Ali",
        phone="0555000000",
        wilaya="16 - Alger",
        address="Kouba, Rue 5, Alger",
        total_price=2499.5,
        items=[OrderItem(product_id=1, quantity=2, price=999.75)],
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Order(**fields)


@pytest.mark.parametrize("base, expected", [
    ("https://api.yalidine.app", "https://api.yalidine.app/v1/parcels"),
    ("https://api.yalidine.app/", "https://api.yalidine.app/v1/parcels"),
    ("https://api.yalidine.app/v1", "https://api.yalidine.app/v1/parcels"),
    ("https://api.yalidine.app/v1/", "https://api.yalidine.app/v1/parcels"),
    ("https://api.yalidine.app/v1/parcels", "https://api.yalidine.app/v1/parcels"),
    ("https://api.yalidine.app/v1/parcels/", "https://api.yalidine.app/v1/parcels/"),
    ("https://api.yalidine.app/api/v1", "https://api.yalidine.app/api/v1/parcels"),
    ("https://api.yalidine.app/other", "https://api.yalidine.app/v1/parcels"),
    ("not a url", "not a url"),
    ("https://[yalidine.app/v1", "https://[yalidine.app/v1"),
])
def test_parcels_url(base, expected):
    assert yalidine_parcels_url(base) == expected


def test_carrier_selected_by_url():
    assert isinstance(carrier_for(CREDENTIALS), YalidineCarrier)
    generic = ShippingCredentials(api_url="https://ship.example.com/orders", api_id="a", api_token="b")
    carrier = carrier_for(generic)
    assert type(carrier) is Carrier
    assert carrier.dispatch_url() == "https://ship.example.com/orders"


def test_headers_carry_both_auth_schemes():
    headers = YalidineCarrier(CREDENTIALS).headers()
    assert headers["Authorization"] == "Bearer tok-1"
    assert headers["X-API-ID"] == "id-1"
    assert headers["X-API-TOKEN"] == "tok-1"
    assert headers["Content-Type"] == "application/json"


def test_yalidine_payload():
    payload = YalidineCarrier(CREDENTIALS).build_payload(make_order(), "Kouba", {1: "Galaxy S24"})
    assert payload == [{
        "order_id": "12",
        "from_wilaya_name": "Alger",
        "firstname": "Amine",
        "familyname": "Ben Ali",
        "contact_phone": "0555000000",
        "address": "Kouba, Rue 5, Alger",
        "to_commune_name": "Kouba",
        "to_wilaya_name": "Alger",
        "product_list": "Galaxy S24 x2",
        "price": 2500,
        "freeshipping": False,
        "is_stopdesk": False,
        "has_exchange": False,
    }]


def test_yalidine_payload_uses_configured_origin():
    credentials = ShippingCredentials(
        api_url=CREDENTIALS.api_url, api_id="a", api_token="b", from_wilaya_name="31 - oran",
    )
    payload = YalidineCarrier(credentials).build_payload(make_order(), "Kouba", {})
    assert payload[0]["from_wilaya_name"] == "Oran"
    assert payload[0]["product_list"] == "Product 1 x2"


def test_unknown_wilaya_is_rejected():
    with pytest.raises(OrderRejected) as exc:
        YalidineCarrier(CREDENTIALS).build_payload(make_order(wilaya="Unknownland"), "Kouba", {})
    assert "Unknownland" in str(exc.value)
    assert "Alger" in str(exc.value)


def test_generic_payload_is_the_raw_order():
    carrier = Carrier(CREDENTIALS)
    payload = carrier.build_payload(make_order(), "", {})
    assert payload["orderId"] == 12
    assert payload["customerName"] == "Amine Ben Ali"
    assert payload["totalPrice"] == 2499.5
    assert payload["items"] == [{"productId": 1, "quantity": 2, "price": 999.75}]
    assert "commune" not in payload


def test_split_customer_name():
    assert split_customer_name("Sara") == ("Sara", "Sara")
    assert split_customer_name("  ") == ("Client", "Client")


def test_js_round_rounds_half_up():
    assert js_round(2.5) == 3
    assert js_round(-2.5) == -2
    assert js_round(1999.49) == 1999


def test_decode_reply_shapes():
    assert isinstance(decode_yalidine_reply("[]"), ParcelList)
    assert isinstance(decode_yalidine_reply('{"12": {"success": true}}'), ParcelMap)
    assert isinstance(decode_yalidine_reply("<html>"), UnparseableReply)
    assert isinstance(decode_yalidine_reply("42"), UnparseableReply)


def test_read_reply_list_success_and_failure():
    carrier = YalidineCarrier(CREDENTIALS)
    ok = carrier.read_reply(make_order(), json.dumps([{"order_id": "12", "success": True}]))
    assert ok.ok

    failed = carrier.read_reply(
        make_order(), json.dumps([{"order_id": "12", "success": False, "message": "bad address"}])
    )
    assert not failed.ok
    assert failed.message == "bad address"


def test_read_reply_map_and_missing_entry():
    carrier = YalidineCarrier(CREDENTIALS)
    assert carrier.read_reply(make_order(), json.dumps({"12": {"success": True}})).ok

    missing = carrier.read_reply(make_order(), json.dumps({"13": {"success": True}}))
    assert not missing.ok
    assert missing.message == "لم يتم إنشاء الشحنة في Yalidine"


def test_read_reply_requires_literal_true():
    reply = json.dumps([{"order_id": "12", "success": "true"}])
    assert not YalidineCarrier(CREDENTIALS).read_reply(make_order(), reply).ok


def test_read_reply_unparseable():
    outcome = YalidineCarrier(CREDENTIALS).read_reply(make_order(), "Service Unavailable")
    assert not outcome.ok
    assert outcome.message.endswith("Service Unavailable")


@pytest.mark.parametrize("raw, expected", [
    ('{"message": "bad token"}', "bad token"),
    ('{"detail": "nope"}', "nope"),
    ('{"error": "denied"}', "denied"),
    ('{"error": {"message": "quota"}}', "quota"),
    ('{"error": {"description": "down"}}', "down"),
    ("plain failure", "plain failure"),
])
def test_extract_error_message(raw, expected):
    assert extract_error_message(raw) == expected


def test_error_message_formats():
    carrier = Carrier(CREDENTIALS)
    assert carrier.error_message(500, "") == "Failed (500)"
    assert carrier.error_message(422, '{"message": "invalid"}') == "422: invalid"
    long_text = "x" * 500
    assert carrier.error_message(400, long_text) == f"400: {'x' * 400}…"
    assert limit_detail("  short  ") == "short"


def test_yalidine_commune_hint():
    message = YalidineCarrier(CREDENTIALS).error_message(
        422, '{"message": "to_commune_name is invalid"}'
    )
    assert message.startswith("422: to_commune_name is invalid")
    assert "Default Commune" in message
