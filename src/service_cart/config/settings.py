"""
Centralized settings, reference data and path configuration for the service cart.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from ..engine.models import Address, Coupon, ServicePackage, TimeSlot


# Catalog used when no provider has a live offering
DEFAULT_PACKAGES: tuple[ServicePackage, ...] = (
    ServicePackage(id='pkg-comprehensive', name='Comprehensive Service Package', price=6099,
                   warranty_months=3, description='3 months warranty'),
    ServicePackage(id='pkg-standard', name='Standard Service Package', price=2599,
                   warranty_months=3, description='3 months warranty'),
    ServicePackage(id='pkg-care-plus', name='Care Plus', price=0,
                   warranty_months=0, description='Custom quote', is_custom=True),
)

DEFAULT_COUPONS: tuple[Coupon, ...] = (
    Coupon(code='SAVE200', label='Flat ₹200 off', amount_off=200),
    Coupon(code='SAVE10', label='10% off up to ₹500', amount_off=500),  # modelled as flat
)

DEFAULT_ADDRESSES: tuple[Address, ...] = (
    Address(id='addr-1', label='Home', line1='221B Baker Street', city='London', state='LDN', pincode='NW16XE'),
    Address(id='addr-2', label='Office', line1='100 Market Street', city='London', state='LDN', pincode='SW1A1AA'),
)

DEFAULT_TIME_SLOTS: tuple[TimeSlot, ...] = (
    TimeSlot(id='slot-1', label='Tomorrow 10:00 - 12:00'),
    TimeSlot(id='slot-2', label='Tomorrow 12:00 - 14:00'),
    TimeSlot(id='slot-3', label='Tomorrow 14:00 - 16:00'),
)

# Package id -> provider service category. Unlisted packages match by name.
PACKAGE_CATEGORIES: dict[str, str] = {
    'pkg-comprehensive': 'Essential Service',
    'pkg-standard': 'Deep Detailing',
    'pkg-care-plus': 'Care Plus',
}

CART_KEY = 'service_cart_v1'
PREFILL_KEY = 'service_cart_prefill'


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Persisted cart record and one-shot prefill record
    cart_file: Path
    prefill_file: Path

    # Feed / submission backend
    api_base_url: str = 'http://localhost:3000'
    request_timeout_seconds: float = 10.0
    refresh_interval_seconds: float = 30.0

    # Pricing
    tax_rate: float = 0.05
    default_warranty_months: int = 3

    clear_cart_on_submit: bool = True

    # Reference data
    default_packages: tuple = DEFAULT_PACKAGES
    coupons: tuple = DEFAULT_COUPONS
    addresses: tuple = DEFAULT_ADDRESSES
    time_slots: tuple = DEFAULT_TIME_SLOTS
    package_categories: dict[str, str] = field(default_factory=lambda: dict(PACKAGE_CATEGORIES))

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()
        data_dir = Path(os.environ.get('SERVICE_CART_DATA_DIR', root / 'data'))

        return cls(
            project_root=root,
            data_dir=data_dir,
            cart_file=data_dir / f'{CART_KEY}.json',
            prefill_file=data_dir / f'{PREFILL_KEY}.json',
            api_base_url=os.environ.get('SERVICE_CART_API_URL', 'http://localhost:3000'),
            refresh_interval_seconds=float(os.environ.get('SERVICE_CART_REFRESH_SECONDS', 30)),
            tax_rate=float(os.environ.get('SERVICE_CART_TAX_RATE', 0.05)),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
