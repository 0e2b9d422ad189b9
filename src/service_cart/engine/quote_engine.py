"""
Quote Engine - Per-provider aggregate quotes and provider ranking.

Each eligible provider is quoted from its own active offerings. A cart item
the provider has no offering for still appears in the breakdown, unpriced,
and contributes nothing to the total.
"""
import math
from typing import Iterable

from .models import CartItem, ProviderMatch, ProviderQuote, QuoteLine
from .provider_matcher import ProviderMatcher


def quote_provider(match: ProviderMatch, items: Iterable[CartItem], matcher: ProviderMatcher) -> ProviderQuote:
    """Build one provider's quote for the cart items."""
    provider = match.provider
    quote = ProviderQuote(provider=provider, match_type=match.match_type)

    for item in items:
        name = matcher.service_name(item.service_id)
        offering = provider.active_offering_for(name)
        quote.lines.append(QuoteLine(
            item_id=item.service_id,
            name=name,
            quantity=item.quantity,
            unit_price=offering.price if offering else None,
        ))

    return quote


def aggregate_quotes(
    matches: Iterable[ProviderMatch],
    items: Iterable[CartItem],
    matcher: ProviderMatcher,
) -> list[ProviderQuote]:
    """Quote every eligible provider, keeping eligibility order."""
    items = list(items)
    return [quote_provider(match, items, matcher) for match in matches]


def ranking_key(quote: ProviderQuote) -> tuple[float, float]:
    """
    Sort key: total ascending, then distance ascending.

    Providers with no priced line sort as +inf so they never look cheapest,
    and a missing distance sorts last among equal totals.
    """
    distance = quote.provider.distance_km
    return (quote.ranking_total, distance if distance is not None else math.inf)


def rank_quotes(quotes: Iterable[ProviderQuote]) -> list[ProviderQuote]:
    """Stable ranking of provider quotes."""
    return sorted(quotes, key=ranking_key)
