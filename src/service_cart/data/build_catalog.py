"""
Catalog Builder - Derives sellable service packages from provider offerings.

Groups the live offerings feed by service type, takes the cheapest quoted
price per type and counts the participating vendors. Falls back to the
configured default catalog when there is nothing live to sell.
"""
import re
from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from ..config.logging import get_logger
from ..engine.models import CartItem, ProviderOffering, ServicePackage, ServiceProvider

logger = get_logger(__name__)

OFFERING_COLUMNS = ['provider_id', 'service_type', 'price', 'description', 'active']


def package_id_for(service_type: str) -> str:
    """Catalog id for a service type, e.g. "Deep Detailing" -> "pkg-deep-detailing"."""
    return "pkg-" + re.sub(r'\s+', '-', service_type.strip().lower())


def _offerings_frame(offerings: Iterable[ProviderOffering]) -> pd.DataFrame:
    """Load offerings into a frame with normalized columns."""
    rows = [
        {
            'provider_id': o.provider_id,
            'service_type': (o.service_type or '').strip(),
            'price': o.price,
            'description': o.description,
            'active': o.active,
        }
        for o in offerings
    ]
    df = pd.DataFrame(rows, columns=OFFERING_COLUMNS)
    df['price'] = pd.to_numeric(df['price'], errors='coerce')
    df['active'] = df['active'].astype(bool)
    return df


def build_service_catalog(
    offerings: Iterable[ProviderOffering],
    default_packages: Iterable[ServicePackage] = (),
    warranty_months: int = 3,
) -> tuple[list[ServicePackage], dict]:
    """
    Build the active catalog from the offerings feed.

    Args:
        offerings: Offerings across all providers
        default_packages: Static catalog used when no live package can be derived
        warranty_months: Warranty assigned to live packages

    Returns:
        (packages, build report dictionary)
    """
    report = {
        "timestamp": datetime.now().isoformat(),
        "status": "pending",
        "source": None,
        "metrics": {},
        "warnings": [],
    }

    df = _offerings_frame(offerings)
    report["metrics"]["offering_count"] = len(df)

    # 1. Inactive offerings never reach the catalog
    inactive = int((~df['active']).sum())
    df = df[df['active']]
    report["metrics"]["inactive_skipped"] = inactive

    untyped = int((df['service_type'] == '').sum())
    if untyped:
        report["warnings"].append(f"{untyped} offerings have no service type")
    df = df[df['service_type'] != '']

    # 2-3. One package per service type, in first-seen order
    packages = []
    seen_ids = set()
    for service_type, group in df.groupby('service_type', sort=False):
        package_id = package_id_for(service_type)
        if package_id in seen_ids:
            report["warnings"].append(f"Service type '{service_type}' collides with package {package_id}")
            continue
        seen_ids.add(package_id)

        prices = group['price'].dropna()
        price = float(prices.min()) if not prices.empty else None

        descriptions = group['description'].dropna().astype(str).str.strip()
        descriptions = descriptions[descriptions != '']
        count = len(group)
        if not descriptions.empty:
            description = descriptions.iloc[0]
        else:
            description = f"{count} provider{'s' if count > 1 else ''} available"

        packages.append(ServicePackage(
            id=package_id,
            name=service_type,
            price=price,
            warranty_months=warranty_months,
            description=description,
            is_custom=price is None or price == 0,
        ))

    # 4. Live packages replace the catalog, otherwise fall back
    if packages:
        report["source"] = "live"
    else:
        packages = list(default_packages)
        report["source"] = "default"
        logger.info("No live offerings, using default catalog (%d packages)", len(packages))

    report["metrics"]["package_count"] = len(packages)
    report["metrics"]["custom_count"] = sum(1 for p in packages if p.is_custom)
    report["status"] = "success"
    return packages, report


def reconcile_items(
    items: list[CartItem],
    catalog: list[ServicePackage],
    was_empty: Optional[bool] = None,
) -> tuple[list[CartItem], list[str]]:
    """
    Drop cart items whose service left the catalog.

    When the cart was already empty before reconciliation it is seeded with
    one unit of the first package. A cart emptied by dropping stale items
    stays empty.

    Returns:
        (kept items, dropped service ids)
    """
    if was_empty is None:
        was_empty = not items

    catalog_ids = {p.id for p in catalog}
    kept = [item for item in items if item.service_id in catalog_ids]
    dropped = [item.service_id for item in items if item.service_id not in catalog_ids]

    if not kept and was_empty and catalog:
        kept = [CartItem(service_id=catalog[0].id, quantity=1)]

    return kept, dropped


def group_offerings_by_provider(
    roster: list[ServiceProvider],
    offerings: Iterable[ProviderOffering],
) -> list[ServiceProvider]:
    """
    Attach the offerings feed to roster entries by provider id.

    Providers whose roster entry already embeds offerings keep them when the
    feed has none for that provider.
    """
    grouped: dict[str, list[ProviderOffering]] = {}
    for offering in offerings:
        if not offering.provider_id:
            continue
        grouped.setdefault(offering.provider_id, []).append(offering)

    merged = []
    for provider in roster:
        merged.append(ServiceProvider(
            id=provider.id,
            name=provider.name,
            city=provider.city,
            distance_km=provider.distance_km,
            service_categories=list(provider.service_categories),
            offerings=grouped.get(provider.id, list(provider.offerings)),
        ))
    return merged
