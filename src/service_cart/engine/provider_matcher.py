"""
Provider Matcher - Filters the provider roster down to eligible vendors.

A provider is eligible for the current selection when either:
1. Category match: one of its service categories is a category that a
   selected service maps to, or
2. Offerings match (fallback, stricter): it has an active offering for
   every selected service name.

With nothing selected every provider is eligible. Results are recomputed
from the inputs on every call and never cached.
"""
from typing import Iterable, Optional

from .models import ProviderMatch, ServicePackage, ServiceProvider


class ProviderMatcher:
    """
    Matches providers against the services selected in a cart.

    Service ids are resolved to human-readable names through the catalog and
    to provider categories through the package → category map.
    """

    def __init__(self, catalog: Iterable[ServicePackage], package_categories: Optional[dict[str, str]] = None):
        self.packages = {p.id: p for p in catalog}
        self.package_categories = package_categories or {}

    def service_name(self, service_id: str) -> str:
        """Service type name for a catalog id (the id itself when unknown)."""
        package = self.packages.get(service_id)
        return package.name if package else service_id

    def service_category(self, service_id: str) -> str:
        """Provider category for a catalog id, falling back to its name."""
        return self.package_categories.get(service_id) or self.service_name(service_id)

    def match_provider(self, provider: ServiceProvider, service_ids: list[str]) -> Optional[ProviderMatch]:
        """Return a match for ``provider`` or None when it is not eligible."""
        if not service_ids:
            return ProviderMatch(provider=provider, match_type="all", match_reason="no services selected")

        categories = [self.service_category(sid) for sid in service_ids]
        provider_categories = set(provider.service_categories)
        for category in categories:
            if category in provider_categories:
                return ProviderMatch(
                    provider=provider,
                    match_type="category",
                    match_reason=f"category={category}",
                )

        names = [self.service_name(sid) for sid in service_ids]
        if all(provider.active_offering_for(name) is not None for name in names):
            return ProviderMatch(
                provider=provider,
                match_type="offerings",
                match_reason="offers " + ", ".join(names),
            )

        return None

    def find_eligible_providers(self, roster: Iterable[ServiceProvider], service_ids: list[str]) -> list[ProviderMatch]:
        """All eligible providers, in roster order."""
        matched = []
        for provider in roster:
            match = self.match_provider(provider, service_ids)
            if match is not None:
                matched.append(match)
        return matched
