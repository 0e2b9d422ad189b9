"""Engine subpackage - cart models, matching, quoting and pricing logic."""
from .pricing_engine import PricingEngine
from .models import CartItem, CartState, CartTotals, ProviderQuote, ServicePackage

__all__ = ['PricingEngine', 'CartItem', 'CartState', 'CartTotals', 'ProviderQuote', 'ServicePackage']
