from abc import ABC, abstractmethod
from typing import List

from harvester.schemas import RawRecord


class BaseConnector(ABC):
    """Listing and detail capabilities of one marketplace.

    Both capabilities receive the caller's timeout; callers also bound the awaited
    coroutine themselves, so implementations must release browsing resources in
    ``finally`` blocks to stay safe under cancellation.
    """

    name: str

    async def open(self) -> None:
        """Acquire long-lived resources (browser, HTTP client)."""

    async def close(self) -> None:
        """Release everything acquired by :meth:`open`."""

    async def __aenter__(self) -> "BaseConnector":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @abstractmethod
    async def list_page(self, key: str, page_number: int, *, timeout: float) -> List[str]:  # pragma: no cover - interface
        """Return the item identifiers shown on one listing page, possibly none."""

    @abstractmethod
    async def fetch_item(self, item_id: str, *, timeout: float) -> RawRecord:  # pragma: no cover - interface
        """Fetch the raw detail fields of one item or raise."""
