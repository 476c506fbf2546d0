import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from harvester.core.errors import DetailFetchFailure
from harvester.schemas import RawRecord
from .base import BaseConnector

logger = logging.getLogger(__name__)

BASE_URL = "https://example.com"


class ExampleMarketplaceConnector(BaseConnector):
    """In-memory marketplace for local development and tests.

    ``pages`` maps a page number to the identifiers shown on it; pages that are not
    present are empty. ``items`` maps an identifier to its raw fields. Identifiers in
    ``failing_items`` raise on fetch, and ``fetch_delay`` keeps every fetch in flight
    for a while so that concurrency can be observed through ``peak_in_flight``.
    """

    name = "example_marketplace"

    def __init__(
        self,
        pages: Optional[Mapping[int, Sequence[str]]] = None,
        items: Optional[Mapping[str, Mapping[str, str]]] = None,
        failing_items: Iterable[str] = (),
        fetch_delay: float = 0.0,
        listing_delay: float = 0.0,
    ) -> None:
        self.pages = dict(pages if pages is not None else {1: ["demo-1"]})
        self.items: Dict[str, Mapping[str, str]] = dict(items or {})
        self.failing_items = set(failing_items)
        self.fetch_delay = fetch_delay
        self.listing_delay = listing_delay

        self.listed_pages: List[int] = []
        self.fetch_calls: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def list_page(self, key: str, page_number: int, *, timeout: float) -> List[str]:
        self.listed_pages.append(page_number)
        if self.listing_delay:
            await asyncio.sleep(self.listing_delay)
        return list(self.pages.get(page_number, []))

    async def fetch_item(self, item_id: str, *, timeout: float) -> RawRecord:
        self.fetch_calls.append(item_id)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.fetch_delay:
                await asyncio.sleep(self.fetch_delay)
            if item_id in self.failing_items:
                raise DetailFetchFailure(item_id, "injected failure")
            fields = self.items.get(item_id) or {
                "title": f"<span>Demo item {item_id}</span>",
                "primary_price": "<span>US $10.00</span>",
                "approx_price": "",
                "about_item": "<div>Condition: New</div>",
                "full_description": "",
            }
            return RawRecord(id=item_id, source_url=f"{BASE_URL}/itm/{item_id}", fields=dict(fields))
        finally:
            self.in_flight -= 1
