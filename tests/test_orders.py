import pytest

from conftest import make_product
from database import FileStorage
from errors import ConflictError, InsufficientStockError, InvalidOrderError, NotFoundError
from models import CartLine, OrderStatus, ProductUpdate
from notify import TelegramNotifier, format_order_message
from orders import OrderService
from sql_storage import SqlStorage


@pytest.fixture(params=["file", "sql"])
def backend(request, tmp_path):
    if request.param == "file":
        return FileStorage(str(tmp_path / "store.json"))
    return SqlStorage(f"sqlite:///{tmp_path / 'store.db'}")


@pytest.fixture
def service(backend):
    return OrderService(backend, notifier=TelegramNotifier(bot_token="", chat_id=""))


def checkout(service, *lines, **fields):
    data = dict(customer_name="Amine", phone="0555000000", wilaya="16 - Alger", address="Kouba, Rue 5")
    data.update(fields)
    return service.create_order_from_cart(
        items=[CartLine(product_id=pid, quantity=qty) for pid, qty in lines], **data
    )


def test_checkout_decrements_stock_and_adds_fee(backend, service):
    phone = make_product(backend, "Phone", price=1000, stock=5)
    laptop = make_product(backend, "Laptop", price=2500.5, stock=2, category="Laptops")

    order = checkout(service, (phone.id, 2), (laptop.id, 1))

    assert order.total_price == 2 * 1000 + 2500.5 + 500
    assert order.status == OrderStatus.PENDING
    assert backend.get_product(phone.id).stock == 3
    assert backend.get_product(laptop.id).stock == 1
    assert [(i.product_id, i.quantity, i.price) for i in order.items] == [
        (phone.id, 2, 1000.0), (laptop.id, 1, 2500.5),
    ]


def test_insufficient_stock_changes_nothing(backend, service):
    phone = make_product(backend, "Phone", stock=5)
    laptop = make_product(backend, "Laptop", stock=1, category="Laptops")

    with pytest.raises(InsufficientStockError) as exc:
        checkout(service, (phone.id, 2), (laptop.id, 3))

    assert exc.value.product_id == laptop.id
    assert backend.get_product(phone.id).stock == 5
    assert backend.get_product(laptop.id).stock == 1
    assert backend.list_orders() == []


def test_repeated_lines_share_the_stock_check(backend, service):
    phone = make_product(backend, "Phone", stock=3)
    with pytest.raises(InsufficientStockError):
        checkout(service, (phone.id, 2), (phone.id, 2))
    assert backend.get_product(phone.id).stock == 3


def test_unknown_product(backend, service):
    with pytest.raises(NotFoundError):
        checkout(service, (42, 1))
    assert backend.list_orders() == []


def test_empty_cart_is_rejected(service):
    with pytest.raises(InvalidOrderError):
        service.create_order_from_cart("Amine", "0555000000", "Alger", "Kouba, Rue 5", [])


def test_commune_is_trimmed_and_optional(backend, service):
    phone = make_product(backend, stock=5)
    assert checkout(service, (phone.id, 1), commune="  Kouba ").commune == "Kouba"
    assert checkout(service, (phone.id, 1), commune="   ").commune is None


def test_status_update_and_listing(backend, service):
    phone = make_product(backend, stock=5)
    first = checkout(service, (phone.id, 1))
    second = checkout(service, (phone.id, 1))

    assert [o.id for o in service.list_orders()] == [second.id, first.id]
    updated = service.set_status(first.id, OrderStatus.CONFIRMED)
    assert updated.status == OrderStatus.CONFIRMED
    assert backend.get_order(first.id).status == OrderStatus.CONFIRMED
    with pytest.raises(NotFoundError):
        service.set_status(999, OrderStatus.SHIPPED)


def test_decrement_stock(backend):
    phone = make_product(backend, stock=2)
    assert backend.decrement_stock(phone.id, 2) is True
    assert backend.decrement_stock(phone.id, 1) is False
    assert backend.get_product(phone.id).stock == 0


def test_product_search_and_category(backend):
    make_product(backend, "Galaxy S24", category="Smartphones")
    make_product(backend, "ThinkPad X1", category="Laptops")

    assert [p.name for p in backend.list_products(category="Laptops")] == ["ThinkPad X1"]
    assert [p.name for p in backend.list_products(search="galaxy")] == ["Galaxy S24"]
    assert [p.name for p in backend.list_products()] == ["ThinkPad X1", "Galaxy S24"]
    assert backend.list_products(search="_") == []
    assert backend.list_products(search="%") == []


def test_product_update_and_delete(backend):
    phone = make_product(backend, stock=2)
    updated = backend.update_product(phone.id, ProductUpdate(price=1500, is_featured=True))
    assert updated.price == 1500
    assert updated.is_featured is True
    assert updated.name == phone.name

    backend.delete_product(phone.id)
    assert backend.get_product(phone.id) is None
    with pytest.raises(NotFoundError):
        backend.delete_product(phone.id)


def test_single_admin(backend):
    backend.create_user("boss", "hash", role="admin")
    with pytest.raises(ConflictError):
        backend.create_user("other", "hash", role="admin")
    user = backend.create_user("other", "hash")
    with pytest.raises(ConflictError):
        backend.update_user(user.id, role="admin")
    with pytest.raises(ConflictError):
        backend.create_user("other", "hash")


def test_file_storage_survives_restart(tmp_path):
    path = str(tmp_path / "store.json")
    storage = FileStorage(path)
    phone = make_product(storage, stock=5)
    service = OrderService(storage, notifier=TelegramNotifier(bot_token="", chat_id=""))
    order = checkout(service, (phone.id, 2))

    reloaded = FileStorage(path)
    assert reloaded.get_product(phone.id).stock == 3
    assert reloaded.get_order(order.id).total_price == order.total_price
    assert make_product(reloaded, "Another").id == phone.id + 1


class RecordingSession:
    def __init__(self):
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        return self

    def raise_for_status(self):
        pass


def test_notification_lists_products(storage):
    phone = make_product(storage, "Galaxy S24", price=1000, stock=5)
    session = RecordingSession()
    service = OrderService(storage, notifier=TelegramNotifier("bot-token", "chat-1", session=session))
    order = checkout(service, (phone.id, 2))

    service.notify(order)

    url, body = session.calls[0]
    assert url == "https://api.telegram.org/botbot-token/sendMessage"
    assert body["chat_id"] == "chat-1"
    assert "- Galaxy S24 ×2" in body["text"]
    assert "2500 دج" in body["text"]


def test_notification_disabled_without_credentials(storage):
    phone = make_product(storage, stock=5)
    session = RecordingSession()
    service = OrderService(storage, notifier=TelegramNotifier("", "", session=session))
    service.notify(checkout(service, (phone.id, 1)))
    assert session.calls == []


def test_message_falls_back_to_product_id(storage):
    phone = make_product(storage, stock=5)
    service = OrderService(storage, notifier=TelegramNotifier("", ""))
    order = checkout(service, (phone.id, 1))
    assert f"- #{phone.id} ×1" in format_order_message(order, {})


def test_failed_save_leaves_memory_untouched(tmp_path):
    path = tmp_path / "store.json"
    storage = FileStorage(str(path))
    phone = make_product(storage, stock=5)
    service = OrderService(storage, notifier=TelegramNotifier(bot_token="", chat_id=""))

    # a directory where the temp file goes makes every save fail
    (tmp_path / "store.json.tmp").mkdir()
    with pytest.raises(OSError):
        checkout(service, (phone.id, 2))
    with pytest.raises(OSError):
        storage.update_product(phone.id, ProductUpdate(price=1))

    assert storage.get_product(phone.id).stock == 5
    assert storage.get_product(phone.id).price == 1000
    assert storage.list_orders() == []

    (tmp_path / "store.json.tmp").rmdir()
    order = checkout(service, (phone.id, 2))
    assert order.id == 1
    assert FileStorage(str(path)).get_product(phone.id).stock == 3


def test_failed_lookup_does_not_break_notification(storage, monkeypatch):
    phone = make_product(storage, stock=5)
    session = RecordingSession()
    service = OrderService(storage, notifier=TelegramNotifier("bot-token", "chat-1", session=session))
    order = checkout(service, (phone.id, 1))

    def broken(product_id):
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(storage, "get_product", broken)
    service.notify(order)
    assert session.calls == []
