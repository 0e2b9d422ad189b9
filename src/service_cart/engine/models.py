"""
Data models for the service cart engine.

Uses dataclasses for structured, type-safe data representation.
Dictionaries produced by ``to_dict`` use the camelCase keys of the
marketplace feeds and of the persisted cart record.
"""
import math
from dataclasses import dataclass, field
from typing import Optional


def _to_float(value) -> Optional[float]:
    """Parse an optional numeric feed value; blanks and NaN become None."""
    if value is None or value == "":
        return None
    number = float(value)
    if math.isnan(number):
        return None
    return number


def _to_int(value) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def _to_str(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class ServicePackage:
    """A sellable, catalog-level service offering."""
    id: str
    name: str
    price: Optional[float] = None
    warranty_months: int = 0
    description: Optional[str] = None
    is_custom: bool = False

    @property
    def unit_price(self) -> float:
        """Price used for cart pricing; an unquoted package counts as 0."""
        return self.price or 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "warrantyMonths": self.warranty_months,
            "description": self.description,
            "isCustom": self.is_custom,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ServicePackage':
        price = _to_float(data.get("price"))
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            price=price,
            warranty_months=_to_int(data.get("warrantyMonths")) or 0,
            description=_to_str(data.get("description")),
            is_custom=bool(data.get("isCustom", not price)),
        )


@dataclass
class CartItem:
    """A single cart line. Quantity is clamped to at least 1."""
    service_id: str
    quantity: int = 1

    def __post_init__(self):
        self.quantity = max(1, int(self.quantity))

    def to_dict(self) -> dict:
        return {"serviceId": self.service_id, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: dict) -> 'CartItem':
        return cls(service_id=str(data["serviceId"]), quantity=int(data.get("quantity", 1)))


@dataclass
class ProviderOffering:
    """One vendor's price/availability declaration for a service type."""
    provider_id: str
    service_type: str
    price: Optional[float] = None
    description: Optional[str] = None
    eta_minutes: Optional[int] = None
    active: bool = True

    def to_dict(self) -> dict:
        return {
            "providerId": self.provider_id,
            "serviceType": self.service_type,
            "price": self.price,
            "description": self.description,
            "etaMinutes": self.eta_minutes,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict, provider_id: Optional[str] = None) -> 'ProviderOffering':
        """Parse a feed entry. ``active`` is only false when explicitly false."""
        return cls(
            provider_id=str(provider_id or data.get("providerId") or ""),
            service_type=str(data.get("serviceType") or "").strip(),
            price=_to_float(data.get("price")),
            description=_to_str(data.get("description")),
            eta_minutes=_to_int(data.get("etaMinutes")),
            active=data.get("active") is not False,
        )


@dataclass
class ServiceProvider:
    """A vendor on the roster together with its own offerings."""
    id: str
    name: str
    city: str = ""
    distance_km: Optional[float] = None
    service_categories: list[str] = field(default_factory=list)
    offerings: list[ProviderOffering] = field(default_factory=list)

    def active_offering_for(self, service_type: str) -> Optional[ProviderOffering]:
        """First active offering declared for ``service_type``, if any."""
        for offering in self.offerings:
            if offering.active and offering.service_type == service_type:
                return offering
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "city": self.city,
            "distanceKm": self.distance_km,
            "serviceCategories": list(self.service_categories),
            "services": [o.to_dict() for o in self.offerings],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ServiceProvider':
        """Parse a roster entry; providers may be keyed by ``id`` or ``uid``."""
        provider_id = str(data.get("id") or data.get("uid") or "")
        if not provider_id:
            raise ValueError("Provider entry without id")
        services = data.get("offerings") or data.get("services") or []
        return cls(
            id=provider_id,
            name=str(data.get("name") or provider_id),
            city=str(data.get("city") or ""),
            distance_km=_to_float(data.get("distanceKm")),
            service_categories=[str(c) for c in data.get("serviceCategories") or []],
            offerings=[ProviderOffering.from_dict(s, provider_id=provider_id) for s in services],
        )


@dataclass
class Coupon:
    """A flat, non-negative discount."""
    code: str
    label: str
    amount_off: float

    def __post_init__(self):
        if self.amount_off < 0:
            raise ValueError(f"Coupon {self.code} has a negative amount")

    def to_dict(self) -> dict:
        return {"code": self.code, "label": self.label, "amountOff": self.amount_off}


@dataclass
class Address:
    id: str
    label: str
    line1: str
    city: str
    state: str
    pincode: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "line1": self.line1,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Address':
        return cls(
            id=str(data["id"]),
            label=str(data.get("label", "")),
            line1=str(data.get("line1", "")),
            city=str(data.get("city", "")),
            state=str(data.get("state", "")),
            pincode=str(data.get("pincode", "")),
        )


@dataclass
class TimeSlot:
    id: str
    label: str

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label}


@dataclass
class CarDetails:
    """Vehicle captured before a request can be submitted."""
    make: str
    model: str
    year: str
    fuel: str
    registration: Optional[str] = None
    city: Optional[str] = None

    REQUIRED_FIELDS = ('make', 'model', 'year', 'fuel')

    def missing_fields(self) -> list[str]:
        """Names of required fields that are blank."""
        return [name for name in self.REQUIRED_FIELDS if not str(getattr(self, name) or "").strip()]

    def to_dict(self) -> dict:
        return {
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "fuel": self.fuel,
            "registration": self.registration,
            "city": self.city,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CarDetails':
        # Older records stored the registration under "reg"
        return cls(
            make=str(data.get("make") or ""),
            model=str(data.get("model") or ""),
            year=str(data.get("year") or ""),
            fuel=str(data.get("fuel") or ""),
            registration=_to_str(data.get("registration") or data.get("reg")),
            city=_to_str(data.get("city")),
        )


@dataclass
class CartState:
    """The cart aggregate root. Holds at most one line per service."""
    items: list[CartItem] = field(default_factory=list)
    address_id: str = ""
    slot_id: str = ""
    coupon_code: Optional[str] = None
    candidate_provider_ids: list[str] = field(default_factory=list)
    note: str = ""
    car_details: Optional[CarDetails] = None
    addresses: list[Address] = field(default_factory=list)

    @property
    def service_ids(self) -> list[str]:
        return [item.service_id for item in self.items]

    def find_item(self, service_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.service_id == service_id:
                return item
        return None

    def find_address(self, address_id: str) -> Optional[Address]:
        for address in self.addresses:
            if address.id == address_id:
                return address
        return None

    def to_dict(self) -> dict:
        """Convert to the persisted record shape."""
        return {
            "items": [item.to_dict() for item in self.items],
            "addressId": self.address_id,
            "slotId": self.slot_id,
            "couponCode": self.coupon_code,
            "candidateProviderIds": list(self.candidate_provider_ids),
            "note": self.note,
            "carDetails": self.car_details.to_dict() if self.car_details else None,
            "addresses": [a.to_dict() for a in self.addresses],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CartState':
        """Create from a persisted record. Raises on malformed input."""
        if not isinstance(data, dict):
            raise TypeError(f"Cart record must be an object, got {type(data).__name__}")

        items: list[CartItem] = []
        seen = set()
        for raw in data.get("items") or []:
            item = CartItem.from_dict(raw)
            if item.service_id in seen:
                continue
            seen.add(item.service_id)
            items.append(item)

        car = data.get("carDetails")
        return cls(
            items=items,
            address_id=str(data.get("addressId") or ""),
            slot_id=str(data.get("slotId") or ""),
            coupon_code=data.get("couponCode") or None,
            candidate_provider_ids=[str(p) for p in data.get("candidateProviderIds") or []],
            note=str(data.get("note") or ""),
            car_details=CarDetails.from_dict(car) if car else None,
            addresses=[Address.from_dict(a) for a in data.get("addresses") or []],
        )


@dataclass
class ProviderMatch:
    """A provider that is eligible for the current selection, with context."""
    provider: ServiceProvider
    match_type: str  # "all", "category" or "offerings"
    match_reason: str


@dataclass
class QuoteLine:
    """One cart item as quoted by one provider. ``unit_price`` is None when unquoted."""
    item_id: str
    name: str
    quantity: int
    unit_price: Optional[float] = None

    @property
    def is_priced(self) -> bool:
        return self.unit_price is not None

    @property
    def amount(self) -> Optional[float]:
        if self.unit_price is None:
            return None
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {"itemId": self.item_id, "name": self.name, "price": self.amount}


@dataclass
class ProviderQuote:
    """Aggregate price of the current cart from one provider's own offerings."""
    provider: ServiceProvider
    lines: list[QuoteLine] = field(default_factory=list)
    match_type: Optional[str] = None

    @property
    def total(self) -> float:
        """Sum over priced lines only; 0 when nothing is priced."""
        return sum(line.amount for line in self.lines if line.is_priced)

    @property
    def has_quote(self) -> bool:
        """True when at least one line carries a price."""
        return any(line.is_priced for line in self.lines)

    @property
    def ranking_total(self) -> float:
        return self.total if self.has_quote else math.inf

    def to_dict(self) -> dict:
        return {
            "providerId": self.provider.id,
            "name": self.provider.name,
            "city": self.provider.city,
            "distanceKm": self.provider.distance_km,
            "matchType": self.match_type,
            "total": self.total,
            "hasQuote": self.has_quote,
            "breakdown": [line.to_dict() for line in self.lines],
        }


@dataclass
class CartTotals:
    """Cart-level pricing, independent of the chosen provider."""
    subtotal: float
    discount: float
    tax: float
    total: float

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
        }


@dataclass
class ServiceRequestPayload:
    """The bookable request handed to the submission collaborator."""
    items: list[CartItem]
    address_id: str
    address: Optional[Address]
    slot_id: str
    candidate_provider_ids: list[str]
    total: float
    note: str
    car_details: CarDetails
    coupon_code: Optional[str] = None
    service_types: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload = {
            "items": [item.to_dict() for item in self.items],
            "addressId": self.address_id,
            "address": self.address.to_dict() if self.address else None,
            "slotId": self.slot_id,
            "candidateProviderIds": list(self.candidate_provider_ids),
            "total": self.total,
            "note": self.note,
            "carDetails": self.car_details.to_dict(),
            "serviceTypes": list(self.service_types),
        }
        if self.coupon_code:
            payload["couponCode"] = self.coupon_code
        return payload
