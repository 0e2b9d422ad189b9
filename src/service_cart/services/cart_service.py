"""
Cart Service - Owns the cart state and every operation on it.

Mutations are validated, applied to the single CartState and written to
the cart store in full. Derived views (eligible providers, quotes, ranking,
totals) are recomputed from current state on every call.
"""
from typing import Callable, Iterable, Optional

from ..config.logging import get_logger
from ..config.settings import Settings, get_settings
from ..data.build_catalog import build_service_catalog, group_offerings_by_provider, reconcile_items
from ..engine.errors import (
    PersistenceCorruptionError,
    SubmissionInProgressError,
    UnknownServiceError,
    ValidationError,
)
from ..engine.models import (
    Address,
    CarDetails,
    CartItem,
    CartState,
    CartTotals,
    ProviderMatch,
    ProviderOffering,
    ProviderQuote,
    ServicePackage,
    ServiceProvider,
)
from ..engine.pricing_engine import PricingEngine
from ..engine.provider_matcher import ProviderMatcher
from ..engine.quote_engine import aggregate_quotes, rank_quotes
from .cart_store import CartStore, PrefillStore

logger = get_logger(__name__)


class CartService:
    """
    Single owner of one shopper's cart.

    Construction order for the initial state:
    1. Persisted cart from the store (a corrupt record starts a fresh cart)
    2. Fresh cart with the default address/slot and the first catalog package
    A one-shot prefill, when present, then overrides items and car details.

    Usage:
        service = CartService(InMemoryCartStore())
        service.add_item("pkg-standard")
        service.totals()
    """

    def __init__(
        self,
        store: CartStore,
        settings: Optional[Settings] = None,
        prefill: Optional[PrefillStore] = None,
        offerings: Optional[list[ProviderOffering]] = None,
        roster: Optional[list[ServiceProvider]] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.pricing = PricingEngine(tax_rate=self.settings.tax_rate, coupons=self.settings.coupons)
        self.time_slots = list(self.settings.time_slots)

        self.packages: list[ServicePackage] = list(self.settings.default_packages)
        self.catalog_report: Optional[dict] = None
        self.offerings: list[ProviderOffering] = []
        self._roster: list[ServiceProvider] = []
        self.providers: list[ServiceProvider] = []

        self._listeners: list[Callable[[CartState], None]] = []
        self._submitting = False
        self._pending_reconcile = False

        self.state = self._initial_state(prefill)
        self.store.save(self.state)

        if offerings is not None or roster is not None:
            self.apply_feeds(offerings, roster)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _fresh_state(self) -> CartState:
        addresses = [Address.from_dict(a.to_dict()) for a in self.settings.addresses]
        return CartState(
            address_id=addresses[0].id if addresses else "",
            slot_id=self.time_slots[0].id if self.time_slots else "",
            addresses=addresses,
        )

    def _initial_state(self, prefill: Optional[PrefillStore]) -> CartState:
        state = None
        try:
            state = self.store.load()
        except PersistenceCorruptionError as e:
            logger.warning("Discarding stored cart: %s", e)

        if state is None:
            state = self._fresh_state()
            state.items, _ = reconcile_items([], self.packages, was_empty=True)
        elif not state.addresses:
            state.addresses = self._fresh_state().addresses

        data = prefill.consume() if prefill else None
        if data:
            self._apply_prefill(state, data)
        return state

    def _apply_prefill(self, state: CartState, data: dict) -> None:
        """
        Overlay a prefill record (``serviceId`` or ``items``, plus ``carDetails``).

        The record is applied whole or not at all. Services missing from the
        catalog are dropped, and incomplete car details are ignored.
        """
        try:
            items = None
            if data.get("serviceId"):
                items = [CartItem(service_id=str(data["serviceId"]), quantity=1)]
            elif data.get("items"):
                items = []
                for raw in data["items"]:
                    item = CartItem.from_dict(raw)
                    if all(i.service_id != item.service_id for i in items):
                        items.append(item)
            car_details = CarDetails.from_dict(data["carDetails"]) if data.get("carDetails") else None
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed prefill record: %s", e)
            return

        if items is not None:
            items, dropped = reconcile_items(items, self.packages, was_empty=False)
            if dropped:
                logger.warning("Prefill named unknown service(s): %s", ", ".join(dropped))
            if items:
                state.items = items
        if car_details is not None:
            missing = car_details.missing_fields()
            if missing:
                logger.warning("Ignoring prefilled car details missing: %s", ", ".join(missing))
            else:
                state.car_details = car_details
        logger.info("Cart prefilled with %d item(s)", len(state.items))

    # ------------------------------------------------------------------
    # Persistence and change notification
    # ------------------------------------------------------------------

    def add_listener(self, listener: Callable[[CartState], None]) -> None:
        """Register a callback invoked after every user mutation."""
        self._listeners.append(listener)

    def _ensure_idle(self) -> None:
        if self._submitting:
            raise SubmissionInProgressError()

    def _commit(self, user_change: bool = True) -> None:
        self.store.save(self.state)
        if user_change:
            for listener in self._listeners:
                listener(self.state)

    # ------------------------------------------------------------------
    # Item operations
    # ------------------------------------------------------------------

    def add_item(self, service_id: str) -> CartItem:
        """Add one unit of a service. Adding a service already in the cart is a no-op."""
        self._ensure_idle()
        if self.find_package(service_id) is None:
            raise UnknownServiceError(service_id)

        existing = self.state.find_item(service_id)
        if existing is not None:
            return existing

        item = CartItem(service_id=service_id, quantity=1)
        self.state.items.append(item)
        self._commit()
        return item

    def remove_item(self, service_id: str) -> bool:
        """Remove the line for ``service_id`` whatever its quantity."""
        self._ensure_idle()
        before = len(self.state.items)
        self.state.items = [i for i in self.state.items if i.service_id != service_id]
        if len(self.state.items) == before:
            return False
        self._commit()
        return True

    def set_quantity(self, service_id: str, delta: int) -> CartItem:
        """Adjust a line's quantity by ``delta``, clamped to at least 1."""
        self._ensure_idle()
        item = self.state.find_item(service_id)
        if item is None:
            raise ValidationError(f"Service '{service_id}' is not in the cart", field="serviceId")
        item.quantity = max(1, item.quantity + int(delta))
        self._commit()
        return item

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------

    def select_address(self, address_id: str) -> None:
        self._ensure_idle()
        if self.state.find_address(address_id) is None:
            raise ValidationError(f"Unknown address '{address_id}'", field="addressId")
        self.state.address_id = address_id
        self._commit()

    def select_slot(self, slot_id: str) -> None:
        self._ensure_idle()
        if all(slot.id != slot_id for slot in self.time_slots):
            raise ValidationError(f"Unknown time slot '{slot_id}'", field="slotId")
        self.state.slot_id = slot_id
        self._commit()

    def select_coupon(self, code: Optional[str]) -> None:
        """Apply a known coupon, or clear the coupon with None."""
        self._ensure_idle()
        if code and self.pricing.find_coupon(code) is None:
            raise ValidationError(f"Unknown coupon code '{code}'", field="couponCode")
        self.state.coupon_code = code or None
        self._commit()

    def select_providers(self, provider_ids: Iterable[str]) -> list[str]:
        """Replace the manually checked candidate providers."""
        self._ensure_idle()
        known = {p.id for p in self.providers}
        selected = []
        for provider_id in provider_ids:
            if provider_id not in known:
                raise ValidationError(f"Unknown provider '{provider_id}'", field="candidateProviderIds")
            if provider_id not in selected:
                selected.append(provider_id)
        self.state.candidate_provider_ids = selected
        self._commit()
        return selected

    def set_note(self, note: str) -> None:
        self._ensure_idle()
        self.state.note = note or ""
        self._commit()

    def set_car_details(self, car_details: Optional[CarDetails]) -> None:
        """Store the vehicle. Make, model, year and fuel are required."""
        self._ensure_idle()
        if car_details is not None:
            missing = car_details.missing_fields()
            if missing:
                raise ValidationError(
                    "Please fill required fields: " + ", ".join(missing),
                    field=missing[0],
                )
        self.state.car_details = car_details
        self._commit()

    def save_address(self, address: Address) -> Address:
        """Insert or replace an address by id; the first address becomes selected."""
        self._ensure_idle()
        if not address.id:
            raise ValidationError("Address id is required", field="id")
        for index, existing in enumerate(self.state.addresses):
            if existing.id == address.id:
                self.state.addresses[index] = address
                break
        else:
            self.state.addresses.append(address)
        if not self.state.address_id:
            self.state.address_id = address.id
        self._commit()
        return address

    def remove_address(self, address_id: str) -> bool:
        self._ensure_idle()
        before = len(self.state.addresses)
        self.state.addresses = [a for a in self.state.addresses if a.id != address_id]
        if len(self.state.addresses) == before:
            return False
        if self.state.address_id == address_id:
            self.state.address_id = self.state.addresses[0].id if self.state.addresses else ""
        self._commit()
        return True

    def reset(self) -> CartState:
        """Discard the cart and start over."""
        self._ensure_idle()
        self.store.clear()
        self.state = self._fresh_state()
        self.state.items, _ = reconcile_items([], self.packages, was_empty=True)
        self._commit()
        return self.state

    # ------------------------------------------------------------------
    # Feeds and reconciliation
    # ------------------------------------------------------------------

    def apply_feeds(
        self,
        offerings: Optional[list[ProviderOffering]] = None,
        roster: Optional[list[ServiceProvider]] = None,
    ) -> None:
        """
        Take in refreshed feeds. A feed passed as None keeps its last-good value.

        Rebuilds the catalog, re-attaches offerings to the roster and
        reconciles the cart against the new catalog.
        """
        if offerings is not None:
            self.offerings = list(offerings)
            self.packages, self.catalog_report = build_service_catalog(
                self.offerings,
                default_packages=self.settings.default_packages,
                warranty_months=self.settings.default_warranty_months,
            )
        if roster is not None:
            self._roster = list(roster)
        self.providers = group_offerings_by_provider(self._roster, self.offerings)

        if self._submitting:
            self._pending_reconcile = True
            return
        self._reconcile()

    def _reconcile(self) -> None:
        was_empty = not self.state.items
        self.state.items, dropped = reconcile_items(self.state.items, self.packages, was_empty=was_empty)
        if dropped:
            logger.info("Dropped %d cart item(s) no longer in the catalog: %s", len(dropped), ", ".join(dropped))

        if self.providers:
            known = {p.id for p in self.providers}
            stale = [pid for pid in self.state.candidate_provider_ids if pid not in known]
            if stale:
                self.state.candidate_provider_ids = [
                    pid for pid in self.state.candidate_provider_ids if pid in known
                ]
                logger.info("Unselected providers that left the roster: %s", ", ".join(stale))

        self._commit(user_change=False)

    # ------------------------------------------------------------------
    # Submission guard
    # ------------------------------------------------------------------

    @property
    def submitting(self) -> bool:
        return self._submitting

    def begin_submission(self) -> None:
        self._ensure_idle()
        self._submitting = True

    def end_submission(self) -> None:
        self._submitting = False
        if self._pending_reconcile:
            self._pending_reconcile = False
            self._reconcile()

    def clear_after_submission(self) -> None:
        """Drop the submitted selection; addresses, slot and car details are kept."""
        self.state.items = []
        self.state.coupon_code = None
        self.state.note = ""
        self.state.candidate_provider_ids = []
        self._commit(user_change=False)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def catalog(self) -> list[ServicePackage]:
        return list(self.packages)

    def find_package(self, service_id: str) -> Optional[ServicePackage]:
        for package in self.packages:
            if package.id == service_id:
                return package
        return None

    def matcher(self) -> ProviderMatcher:
        return ProviderMatcher(self.packages, self.settings.package_categories)

    def service_types(self) -> list[str]:
        """Human-readable names of the selected services."""
        matcher = self.matcher()
        return [matcher.service_name(sid) for sid in self.state.service_ids]

    def eligible_providers(self) -> list[ProviderMatch]:
        return self.matcher().find_eligible_providers(self.providers, self.state.service_ids)

    def quotes(self) -> list[ProviderQuote]:
        matcher = self.matcher()
        matches = matcher.find_eligible_providers(self.providers, self.state.service_ids)
        return aggregate_quotes(matches, self.state.items, matcher)

    def ranked_quotes(self) -> list[ProviderQuote]:
        return rank_quotes(self.quotes())

    def totals(self) -> CartTotals:
        return self.pricing.calculate(self.state.items, self.packages, self.state.coupon_code)

    def summary(self) -> dict:
        """Cart state together with its totals, for display."""
        return {
            "cart": self.state.to_dict(),
            "totals": self.totals().to_dict(),
            "serviceTypes": self.service_types(),
            "submitting": self._submitting,
        }
