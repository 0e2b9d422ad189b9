"""
Service Cart Package

Shopping-cart and request-assembly engine for a multi-vendor service marketplace.
Builds the catalog from provider offerings, matches and ranks providers,
prices the cart and assembles bookable service requests.
"""

__version__ = "1.0.0"
