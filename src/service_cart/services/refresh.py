"""
Catalog Refresher - Periodic pull of the offerings and roster feeds.

Runs as a cancellable asyncio task. A failed fetch keeps the last-good
catalog/roster and is retried on the next tick.
"""
import asyncio
import contextlib
from datetime import datetime
from typing import Optional

from ..config.logging import get_logger
from .cart_service import CartService
from .feeds import ProviderFeed

logger = get_logger(__name__)


class CatalogRefresher:
    """
    Keeps a CartService in sync with the provider feeds.

    Usage:
        refresher = CatalogRefresher(service, feed, interval_seconds=30)
        refresher.start()
        ...
        await refresher.stop()
    """

    def __init__(self, cart: CartService, feed: ProviderFeed, interval_seconds: float = 30.0):
        self.cart = cart
        self.feed = feed
        self.interval_seconds = interval_seconds
        self.last_refreshed_at: Optional[datetime] = None
        self.failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh_once(self) -> bool:
        """
        Fetch both feeds and apply whatever arrived.

        Returns:
            True when both feeds were fetched
        """
        offerings, roster = await asyncio.gather(
            self.feed.fetch_provider_offerings(),
            self.feed.fetch_provider_roster(),
            return_exceptions=True,
        )

        ok = True
        if isinstance(offerings, Exception):
            logger.warning("Offerings refresh failed, keeping last catalog: %s", offerings)
            offerings = None
            ok = False
        if isinstance(roster, Exception):
            logger.warning("Roster refresh failed, keeping last roster: %s", roster)
            roster = None
            ok = False

        if offerings is not None or roster is not None:
            self.cart.apply_feeds(offerings, roster)

        if ok:
            self.last_refreshed_at = datetime.now()
        else:
            self.failures += 1
        return ok

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Catalog refresh crashed: %s", e, exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Start polling on the running event loop. Starting twice is a no-op."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Catalog refresh started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel polling and wait for the task to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Catalog refresh stopped")
