import asyncio
import logging
from typing import AsyncIterator, List, Optional

from harvester.connectors.base import BaseConnector
from harvester.core.errors import DiscoveryExhausted, FatalFailure
from harvester.schemas import ListingPage

logger = logging.getLogger(__name__)


class PageDiscoveryLoop:
    """Walks listing pages in order and stops at the first empty or failed page.

    Listing exhaustion is inferred from emptiness: the source is never asked whether
    more results exist, and a failed page is not retried.
    """

    def __init__(
        self,
        connector: BaseConnector,
        timeout: float,
        max_items_per_page: Optional[int] = None,
    ) -> None:
        self.connector = connector
        self.timeout = timeout
        self.max_items_per_page = max_items_per_page
        self.exhausted_at: Optional[DiscoveryExhausted] = None

    async def pages(self, key: str, max_pages: int) -> AsyncIterator[ListingPage]:
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")

        for page_number in range(1, max_pages + 1):
            try:
                identifiers = await self._resolve(key, page_number)
            except DiscoveryExhausted as exc:
                self.exhausted_at = exc
                logger.info("%s, stopping discovery", exc, extra={"key": key})
                return

            logger.info(
                "Found %s items on page %s", len(identifiers), page_number, extra={"key": key}
            )
            yield ListingPage(page_number=page_number, identifiers=tuple(identifiers))

    async def _resolve(self, key: str, page_number: int) -> List[str]:
        try:
            identifiers = await asyncio.wait_for(
                self.connector.list_page(key, page_number, timeout=self.timeout), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise DiscoveryExhausted(page_number, f"timed out after {self.timeout}s") from exc
        except FatalFailure:
            raise
        except Exception as exc:
            raise DiscoveryExhausted(page_number, f"listing failed: {exc}") from exc

        unique = list(dict.fromkeys(item for item in identifiers if item))
        if not unique:
            raise DiscoveryExhausted(page_number, "no identifiers")
        if self.max_items_per_page is not None:
            unique = unique[: self.max_items_per_page]
        return unique
