"""
Shared API state - one cart session per process, created on first use.
"""
from dataclasses import dataclass
from typing import Optional

from ..config.settings import Settings, get_settings
from ..policy.request_builder import RequestBuilder
from ..services.cart_service import CartService
from ..services.cart_store import JsonFileCartStore, JsonFilePrefillStore
from ..services.feeds import HttpProviderFeed
from ..services.refresh import CatalogRefresher


@dataclass
class CartSession:
    """The cart service together with its collaborators."""
    service: CartService
    builder: RequestBuilder
    refresher: Optional[CatalogRefresher] = None
    feed: Optional[HttpProviderFeed] = None


def create_session(settings: Optional[Settings] = None) -> CartSession:
    """Wire a session against the file store and the HTTP feeds."""
    settings = settings or get_settings()
    feed = HttpProviderFeed(settings.api_base_url, timeout=settings.request_timeout_seconds)
    service = CartService(
        store=JsonFileCartStore(settings.cart_file),
        settings=settings,
        prefill=JsonFilePrefillStore(settings.prefill_file),
    )
    return CartSession(
        service=service,
        builder=RequestBuilder(service, submitter=feed),
        refresher=CatalogRefresher(service, feed, interval_seconds=settings.refresh_interval_seconds),
        feed=feed,
    )


_session: Optional[CartSession] = None


def get_session() -> CartSession:
    """Get the process-wide cart session."""
    global _session
    if _session is None:
        _session = create_session()
    return _session
