"""Pytest configuration and fixtures"""
import asyncio
import os
import sys
from typing import Optional

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from service_cart.config.settings import Settings
from service_cart.engine.errors import FeedFetchError, SubmissionError
from service_cart.engine.models import ProviderOffering, ServiceProvider
from service_cart.services.cart_service import CartService
from service_cart.services.cart_store import InMemoryCartStore


class FakeFeed:
    """Provider feed returning canned data, or raising when told to."""

    def __init__(self, offerings=None, roster=None):
        self.offerings = offerings or []
        self.roster = roster or []
        self.fail_offerings = False
        self.fail_roster = False
        self.calls = 0

    async def fetch_provider_offerings(self):
        self.calls += 1
        if self.fail_offerings:
            raise FeedFetchError("offerings feed down")
        return list(self.offerings)

    async def fetch_provider_roster(self):
        if self.fail_roster:
            raise FeedFetchError("roster feed down")
        return list(self.roster)


class FakeSubmitter:
    """Records submitted payloads. Can fail or block until released."""

    def __init__(self):
        self.payloads = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def submit_service_request(self, payload: dict) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.payloads.append(payload)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to a temporary data directory."""
    return Settings(
        project_root=tmp_path,
        data_dir=tmp_path,
        cart_file=tmp_path / 'service_cart_v1.json',
        prefill_file=tmp_path / 'service_cart_prefill.json',
    )


@pytest.fixture
def sample_offerings():
    """Offerings feed: two live service types plus one inactive offering."""
    return [
        ProviderOffering(provider_id='sp-1', service_type='Deep Detailing', price=1800),
        ProviderOffering(provider_id='sp-1', service_type='Oil Change', price=900, description='Synthetic oil'),
        ProviderOffering(provider_id='sp-2', service_type='Deep Detailing', price=1500),
        ProviderOffering(provider_id='sp-2', service_type='Oil Change'),
        ProviderOffering(provider_id='sp-2', service_type='Wheel Alignment', price=700, active=False),
        ProviderOffering(provider_id='sp-3', service_type='Oil Change', price=850),
    ]


@pytest.fixture
def sample_roster():
    return [
        ServiceProvider(id='sp-1', name='City Auto Care', city='London', distance_km=4.2),
        ServiceProvider(id='sp-2', name='Prime Garage', city='London', distance_km=6.8,
                        service_categories=['Deep Detailing']),
        ServiceProvider(id='sp-3', name='Quick Lube', city='London'),
    ]


@pytest.fixture
def store():
    return InMemoryCartStore()


@pytest.fixture
def service(store, settings, sample_offerings, sample_roster):
    """Cart service with live feeds applied and an empty cart."""
    svc = CartService(store=store, settings=settings)
    svc.apply_feeds(sample_offerings, sample_roster)
    return svc


@pytest.fixture
def feed(sample_offerings, sample_roster):
    return FakeFeed(offerings=sample_offerings, roster=sample_roster)


@pytest.fixture
def submitter():
    return FakeSubmitter()


@pytest.fixture
def submission_error():
    return SubmissionError("Provider backend unavailable")
