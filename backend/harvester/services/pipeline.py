import logging
from typing import Optional

from harvester.connectors.base import BaseConnector
from harvester.core.config import Settings
from harvester.core.errors import FatalFailure, HarvestError
from harvester.schemas import HarvestResult, HarvestStats
from .detail_pool import DetailHarvestWorkerPool
from .discovery import PageDiscoveryLoop
from .gate import ConcurrencyGate
from .normalization import NormalizationStage, Normalizer
from .raw_queue import RawRecordQueue

logger = logging.getLogger(__name__)


class HarvestPipeline:
    """Two-phase harvest: fetch every page first, then normalize the collected queue.

    Phase 1 walks the listing pages and fetches item details page by page, each page
    behind a barrier. The raw queue is sealed when phase 1 ends and only then handed
    to phase 2, which normalizes it sequentially. The connector is open for phase 1
    only.
    """

    def __init__(
        self,
        connector: BaseConnector,
        normalizer: Normalizer,
        max_concurrent_fetches: int = 3,
        listing_timeout: float = 60,
        detail_timeout: float = 60,
        max_items_per_page: Optional[int] = None,
    ) -> None:
        self.connector = connector
        self.normalizer = normalizer
        self.max_concurrent_fetches = max_concurrent_fetches
        self.listing_timeout = listing_timeout
        self.detail_timeout = detail_timeout
        self.max_items_per_page = max_items_per_page

    @classmethod
    def from_settings(cls, connector: BaseConnector, normalizer: Normalizer, settings: Settings) -> "HarvestPipeline":
        return cls(
            connector,
            normalizer,
            max_concurrent_fetches=settings.max_concurrent_fetches,
            listing_timeout=settings.listing_timeout_seconds,
            detail_timeout=settings.detail_timeout_seconds,
            max_items_per_page=settings.max_items_per_page,
        )

    async def run(self, key: str, max_pages: int) -> HarvestResult:
        if not key or not key.strip():
            raise ValueError("key must not be empty")
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")

        stats = HarvestStats(key=key, max_pages=max_pages)
        queue = await self._collect(key, max_pages, stats)

        logger.info("Fetch phase complete: %s raw records from %s pages", len(queue), stats.pages_processed)
        stage = NormalizationStage(self.normalizer)
        records = await stage.run(queue)
        stats.normalization_fallbacks = stage.fallbacks

        logger.info(
            "Harvest complete for %r: %s records, %s fetch failures, %s fallbacks",
            key,
            len(records),
            stats.fetch_failures,
            stats.normalization_fallbacks,
        )
        return HarvestResult(records=records, raw_records=queue.snapshot(), stats=stats)

    async def _collect(self, key: str, max_pages: int, stats: HarvestStats) -> RawRecordQueue:
        queue = RawRecordQueue()
        gate = ConcurrencyGate(self.max_concurrent_fetches)
        pool = DetailHarvestWorkerPool(self.connector, gate, timeout=self.detail_timeout)
        discovery = PageDiscoveryLoop(
            self.connector, timeout=self.listing_timeout, max_items_per_page=self.max_items_per_page
        )

        try:
            await self.connector.open()
        except FatalFailure:
            raise
        except Exception as exc:
            raise FatalFailure(f"Unable to open connector {self.connector.name}: {exc}") from exc

        try:
            async for page in discovery.pages(key, max_pages):
                stats.pages_processed += 1
                stats.identifiers_discovered += len(page.identifiers)
                await pool.harvest_page(page, queue)
        except HarvestError:
            raise
        except Exception as exc:
            raise FatalFailure(f"Harvest aborted: {exc}") from exc
        finally:
            await self._close_connector()

        queue.seal()
        stats.raw_records = len(queue)
        stats.fetch_failures = len(pool.failures)
        return queue

    async def _close_connector(self) -> None:
        try:
            await self.connector.close()
        except Exception as exc:
            logger.warning("Failed to close connector %s: %s", self.connector.name, exc)
