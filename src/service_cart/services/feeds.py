"""
Provider Feeds - HTTP collaborators for offerings, roster and submissions.

Talks to the marketplace backend:
- GET  /api/provider-services?scope=public  -> offerings across providers
- GET  /api/service-providers?scope=all     -> provider roster
- POST /api/service-requests                -> submit a service request
"""
from typing import Optional, Protocol

import httpx

from ..config.logging import get_logger
from ..engine.errors import FeedFetchError, SubmissionError
from ..engine.models import ProviderOffering, ServiceProvider

logger = get_logger(__name__)


class ProviderFeed(Protocol):
    """Pull source for the offerings and roster feeds."""

    async def fetch_provider_offerings(self) -> list[ProviderOffering]: ...

    async def fetch_provider_roster(self) -> list[ServiceProvider]: ...


class RequestSubmitter(Protocol):
    """Accepts assembled service request payloads."""

    async def submit_service_request(self, payload: dict) -> None: ...


def parse_offerings(data) -> list[ProviderOffering]:
    """Parse the offerings feed, skipping entries without a provider id."""
    if not isinstance(data, list):
        raise FeedFetchError(f"Offerings feed must be a list, got {type(data).__name__}")
    offerings = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("providerId"):
            continue
        offerings.append(ProviderOffering.from_dict(entry))
    return offerings


def parse_roster(data) -> list[ServiceProvider]:
    """Parse the roster feed, skipping entries without an id."""
    if not isinstance(data, list):
        raise FeedFetchError(f"Roster feed must be a list, got {type(data).__name__}")
    providers = []
    for entry in data:
        if not isinstance(entry, dict) or not (entry.get("id") or entry.get("uid")):
            continue
        providers.append(ServiceProvider.from_dict(entry))
    return providers


class HttpProviderFeed:
    """
    httpx-backed feed client and request submitter.

    Usage:
        feed = HttpProviderFeed("https://example.com")
        offerings = await feed.fetch_provider_offerings()
        await feed.aclose()
    """

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._http_client = client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazily create the shared client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=5.0),
            )
        return self._http_client

    async def _get_json(self, path: str, params: dict):
        client = await self._get_http_client()
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise FeedFetchError(f"GET {path} failed: {e}") from e
        except ValueError as e:
            raise FeedFetchError(f"GET {path} returned invalid JSON: {e}") from e

    async def fetch_provider_offerings(self) -> list[ProviderOffering]:
        data = await self._get_json("/api/provider-services", {"scope": "public"})
        return parse_offerings(data)

    async def fetch_provider_roster(self) -> list[ServiceProvider]:
        data = await self._get_json("/api/service-providers", {"scope": "all"})
        return parse_roster(data)

    async def submit_service_request(self, payload: dict) -> None:
        client = await self._get_http_client()
        try:
            response = await client.post("/api/service-requests", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text
            try:
                body = e.response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                detail = str(body["error"])
            raise SubmissionError(detail or str(e)) from e
        except httpx.HTTPError as e:
            raise SubmissionError(f"Service request could not be sent: {e}") from e
        logger.info("Service request accepted (status %s)", response.status_code)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
