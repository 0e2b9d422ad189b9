"""
Tests for CartService: item operations, selections, persistence and
reconciliation against refreshed feeds.
"""
import pytest

from service_cart.engine.errors import UnknownServiceError, ValidationError
from service_cart.engine.models import Address, CarDetails, CartItem, CartState, ProviderOffering
from service_cart.services.cart_service import CartService
from service_cart.services.cart_store import InMemoryCartStore, InMemoryPrefillStore, serialize_state


def test_fresh_cart_seeded_with_first_default_package(settings):
    service = CartService(InMemoryCartStore(), settings=settings)

    assert service.state.items == [CartItem("pkg-comprehensive", 1)]
    assert service.state.address_id == "addr-1"
    assert service.state.slot_id == "slot-1"


def test_add_item_is_idempotent(service):
    first = service.add_item("pkg-oil-change")
    again = service.add_item("pkg-oil-change")

    assert again is first
    assert service.state.items == [CartItem("pkg-oil-change", 1)]


def test_add_unknown_service_rejected(service):
    with pytest.raises(UnknownServiceError) as exc:
        service.add_item("pkg-teleport")
    assert exc.value.field == "serviceId"
    assert service.state.items == []


def test_remove_item_whatever_the_quantity(service):
    service.add_item("pkg-oil-change")
    service.set_quantity("pkg-oil-change", 4)

    assert service.remove_item("pkg-oil-change") is True
    assert service.remove_item("pkg-oil-change") is False
    assert service.state.items == []


def test_quantity_clamped_at_one(service):
    service.add_item("pkg-oil-change")
    service.set_quantity("pkg-oil-change", -5)
    assert service.state.find_item("pkg-oil-change").quantity == 1

    service.set_quantity("pkg-oil-change", 2)
    assert service.state.find_item("pkg-oil-change").quantity == 3


def test_set_quantity_for_missing_item_rejected(service):
    with pytest.raises(ValidationError):
        service.set_quantity("pkg-oil-change", 1)


def test_every_mutation_is_persisted(service, store):
    saves = store.save_count
    service.add_item("pkg-oil-change")
    service.select_slot("slot-2")
    service.set_note("Gate code 1234")

    assert store.save_count == saves + 3
    restored = store.load()
    assert restored == service.state
    assert restored.note == "Gate code 1234"


def test_rehydrates_persisted_cart(settings):
    stored = CartState(items=[CartItem("pkg-standard", 2)], address_id="addr-2", slot_id="slot-3")
    store = InMemoryCartStore(serialize_state(stored))

    service = CartService(store, settings=settings)

    assert service.state.items == [CartItem("pkg-standard", 2)]
    assert service.state.address_id == "addr-2"
    # records written before addresses were stored get the defaults
    assert [a.id for a in service.state.addresses] == ["addr-1", "addr-2"]


@pytest.mark.parametrize("raw", ["{not json", '{"version": 99, "state": {}}', '["a list"]', '{"version": 1}'])
def test_corrupt_record_starts_fresh_cart(settings, raw):
    service = CartService(InMemoryCartStore(raw), settings=settings)
    assert service.state.items == [CartItem("pkg-comprehensive", 1)]


def test_prefill_consumed_once(settings):
    prefill = InMemoryPrefillStore({
        "serviceId": "pkg-standard",
        "carDetails": {"make": "Honda", "model": "City", "year": "2020", "fuel": "Petrol"},
    })

    service = CartService(InMemoryCartStore(), settings=settings, prefill=prefill)

    assert service.state.items == [CartItem("pkg-standard", 1)]
    assert service.state.car_details.make == "Honda"
    assert prefill.consume() is None


def test_prefill_items_list(settings):
    prefill = InMemoryPrefillStore({"items": [{"serviceId": "pkg-standard", "quantity": 2}]})
    service = CartService(InMemoryCartStore(), settings=settings, prefill=prefill)
    assert service.state.items == [CartItem("pkg-standard", 2)]


def test_malformed_prefill_applied_not_at_all(settings):
    prefill = InMemoryPrefillStore({"serviceId": "pkg-standard", "carDetails": "honda"})

    service = CartService(InMemoryCartStore(), settings=settings, prefill=prefill)

    assert service.state.items == [CartItem("pkg-comprehensive", 1)]
    assert service.state.car_details is None


def test_prefill_unknown_service_dropped(settings):
    prefill = InMemoryPrefillStore({"items": [
        {"serviceId": "pkg-nope", "quantity": 1},
        {"serviceId": "pkg-standard", "quantity": 2},
    ]})

    service = CartService(InMemoryCartStore(), settings=settings, prefill=prefill)

    assert service.state.items == [CartItem("pkg-standard", 2)]


def test_prefill_of_only_unknown_services_keeps_cart(settings):
    service = CartService(InMemoryCartStore(), settings=settings, prefill=InMemoryPrefillStore({"serviceId": "pkg-nope"}))

    assert service.state.items == [CartItem("pkg-comprehensive", 1)]
    assert all(item.service_id in {p.id for p in service.packages} for item in service.state.items)


def test_prefill_incomplete_car_details_ignored(settings):
    prefill = InMemoryPrefillStore({"serviceId": "pkg-standard", "carDetails": {"make": "Honda", "model": ""}})

    service = CartService(InMemoryCartStore(), settings=settings, prefill=prefill)

    assert service.state.items == [CartItem("pkg-standard", 1)]
    assert service.state.car_details is None


def test_coupon_validation(service):
    service.select_coupon("SAVE200")
    assert service.state.coupon_code == "SAVE200"

    with pytest.raises(ValidationError) as exc:
        service.select_coupon("FREESTUFF")
    assert exc.value.field == "couponCode"
    assert service.state.coupon_code == "SAVE200"

    service.select_coupon(None)
    assert service.state.coupon_code is None


def test_address_and_slot_validation(service):
    with pytest.raises(ValidationError):
        service.select_address("addr-404")
    with pytest.raises(ValidationError):
        service.select_slot("slot-404")

    service.select_address("addr-2")
    assert service.state.address_id == "addr-2"


def test_provider_selection_validated_and_deduplicated(service):
    assert service.select_providers(["sp-2", "sp-1", "sp-2"]) == ["sp-2", "sp-1"]

    with pytest.raises(ValidationError):
        service.select_providers(["sp-404"])
    assert service.state.candidate_provider_ids == ["sp-2", "sp-1"]


def test_car_details_require_core_fields(service):
    with pytest.raises(ValidationError) as exc:
        service.set_car_details(CarDetails(make="Honda", model="City", year="", fuel="Petrol"))
    assert exc.value.field == "year"

    car = CarDetails(make="Honda", model="City", year="2020", fuel="Petrol")
    service.set_car_details(car)
    assert service.state.car_details == car


def test_save_and_remove_address(service):
    service.save_address(Address("addr-3", "Gym", "5 Side St", "London", "LDN", "E1"))
    service.select_address("addr-3")

    assert service.remove_address("addr-3") is True
    assert service.state.address_id == "addr-1"
    assert service.remove_address("addr-3") is False


def test_refresh_drops_items_no_longer_offered(service, sample_roster):
    service.add_item("pkg-oil-change")
    service.add_item("pkg-deep-detailing")

    service.apply_feeds([ProviderOffering("sp-1", "Deep Detailing", price=1700)], sample_roster)

    assert service.state.items == [CartItem("pkg-deep-detailing", 1)]
    assert service.find_package("pkg-deep-detailing").price == 1700


def test_refresh_does_not_reseed_cart_emptied_by_reconciliation(service, sample_roster):
    service.add_item("pkg-oil-change")

    service.apply_feeds([ProviderOffering("sp-1", "Wash", price=200)], sample_roster)
    assert service.state.items == []

    # the next refresh sees an already-empty cart and seeds it
    service.apply_feeds([ProviderOffering("sp-1", "Wash", price=200)], sample_roster)
    assert service.state.items == [CartItem("pkg-wash", 1)]


def test_feed_passed_as_none_keeps_last_good(service):
    service.apply_feeds(None, None)
    assert [p.id for p in service.packages] == ["pkg-deep-detailing", "pkg-oil-change"]
    assert [p.id for p in service.providers] == ["sp-1", "sp-2", "sp-3"]


def test_stale_candidate_providers_pruned(service, sample_offerings, sample_roster):
    service.select_providers(["sp-1", "sp-3"])
    service.apply_feeds(sample_offerings, sample_roster[:2])
    assert service.state.candidate_provider_ids == ["sp-1"]


def test_totals_follow_live_catalog(service):
    service.add_item("pkg-deep-detailing")
    totals = service.totals()
    assert totals.subtotal == 1500
    assert totals.tax == 75
    assert totals.total == 1575


def test_ranked_quotes_for_cart(service):
    service.add_item("pkg-oil-change")
    assert [q.provider.id for q in service.ranked_quotes()] == ["sp-3", "sp-1", "sp-2"]
    assert service.service_types() == ["Oil Change"]


def test_summary_shape(service):
    service.add_item("pkg-oil-change")
    summary = service.summary()
    assert summary["cart"]["items"] == [{"serviceId": "pkg-oil-change", "quantity": 1}]
    assert summary["totals"]["subtotal"] == 850
    assert summary["submitting"] is False


def test_reset_starts_over(service, store):
    service.add_item("pkg-oil-change")
    service.select_coupon("SAVE200")

    state = service.reset()

    assert state.items == [CartItem("pkg-deep-detailing", 1)]
    assert state.coupon_code is None
    assert store.load() == state
