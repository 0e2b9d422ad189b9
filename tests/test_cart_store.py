"""
Tests for the JSON file cart store and prefill store.
"""
import json

import pytest

from service_cart.engine.errors import PersistenceCorruptionError
from service_cart.engine.models import CarDetails, CartItem, CartState
from service_cart.services.cart_service import CartService
from service_cart.services.cart_store import JsonFileCartStore, JsonFilePrefillStore


INVALID_UTF8 = b'\xff\xfe{"version": 1'


@pytest.fixture
def cart_file(settings):
    return settings.cart_file


@pytest.fixture
def prefill_file(settings):
    return settings.prefill_file


def test_missing_or_blank_file_loads_nothing(cart_file):
    store = JsonFileCartStore(cart_file)
    assert store.load() is None

    cart_file.write_text("   \n", encoding="utf-8")
    assert store.load() is None


def test_file_round_trip(cart_file):
    store = JsonFileCartStore(cart_file)
    state = CartState(
        items=[CartItem("pkg-standard", 2)],
        address_id="addr-1",
        slot_id="slot-2",
        coupon_code="SAVE200",
        car_details=CarDetails(make="Honda", model="City", year="2020", fuel="Petrol"),
    )

    store.save(state)

    assert JsonFileCartStore(cart_file).load() == state
    assert json.loads(cart_file.read_text(encoding="utf-8"))["version"] == 1


def test_save_replaces_without_leaving_temp_file(cart_file):
    store = JsonFileCartStore(cart_file)
    store.save(CartState(items=[CartItem("pkg-a", 1)]))
    store.save(CartState(items=[CartItem("pkg-b", 3)]))

    assert store.load().items == [CartItem("pkg-b", 3)]
    assert [p.name for p in cart_file.parent.iterdir()] == [cart_file.name]


def test_save_creates_data_dir(tmp_path):
    store = JsonFileCartStore(tmp_path / "nested" / "cart.json")
    store.save(CartState())
    assert store.load() == CartState()


def test_clear_removes_file(cart_file):
    store = JsonFileCartStore(cart_file)
    store.save(CartState())

    store.clear()
    store.clear()

    assert not cart_file.exists()
    assert store.load() is None


@pytest.mark.parametrize("raw", [INVALID_UTF8, b"{not json", b'{"version": 2, "state": {}}'])
def test_unreadable_file_is_corruption(cart_file, raw):
    cart_file.write_bytes(raw)
    with pytest.raises(PersistenceCorruptionError):
        JsonFileCartStore(cart_file).load()


def test_undecodable_cart_file_starts_fresh_cart(cart_file, settings):
    cart_file.write_bytes(INVALID_UTF8)

    service = CartService(JsonFileCartStore(cart_file), settings=settings)

    assert service.state.items == [CartItem("pkg-comprehensive", 1)]
    # the fresh cart overwrites the corrupt record
    assert JsonFileCartStore(cart_file).load() == service.state


def test_prefill_consumed_and_deleted(prefill_file):
    prefill_file.write_text(json.dumps({"serviceId": "pkg-standard"}), encoding="utf-8")
    store = JsonFilePrefillStore(prefill_file)

    assert store.consume() == {"serviceId": "pkg-standard"}
    assert not prefill_file.exists()
    assert store.consume() is None


@pytest.mark.parametrize("raw", [INVALID_UTF8, b"{not json", b'["not", "a", "dict"]'])
def test_unreadable_prefill_deleted_and_ignored(prefill_file, raw):
    prefill_file.write_bytes(raw)

    assert JsonFilePrefillStore(prefill_file).consume() is None
    assert not prefill_file.exists()


def test_undecodable_prefill_does_not_block_cart(cart_file, prefill_file, settings):
    prefill_file.write_bytes(INVALID_UTF8)

    service = CartService(
        JsonFileCartStore(cart_file),
        settings=settings,
        prefill=JsonFilePrefillStore(prefill_file),
    )

    assert service.state.items == [CartItem("pkg-comprehensive", 1)]
    assert not prefill_file.exists()
