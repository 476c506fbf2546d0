import asyncio
import logging
from typing import List, Optional

from harvester.connectors.base import BaseConnector
from harvester.core.errors import DetailFetchFailure, FatalFailure
from harvester.schemas import ListingPage, RawRecord
from .gate import ConcurrencyGate
from .raw_queue import RawRecordQueue

logger = logging.getLogger(__name__)


class DetailHarvestWorkerPool:
    """Fetches the details of one listing page with bounded concurrency.

    Every identifier gets its own task; the gate caps how many of them talk to the
    connector at once. A task that fails yields ``None`` and is recorded in
    :attr:`failures` without touching its siblings.
    """

    def __init__(self, connector: BaseConnector, gate: ConcurrencyGate, timeout: float) -> None:
        self.connector = connector
        self.gate = gate
        self.timeout = timeout
        self.failures: List[DetailFetchFailure] = []

    async def harvest_page(self, page: ListingPage, queue: RawRecordQueue) -> List[RawRecord]:
        tasks = [
            asyncio.create_task(self._fetch_one(item_id, page.page_number), name=f"fetch-{item_id}")
            for item_id in page.identifiers
        ]

        completed: List[Optional[RawRecord]] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                completed.append(await next_done)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        records = [record for record in completed if record is not None]
        queue.extend(records)
        logger.info(
            "Page %s: collected %s of %s items",
            page.page_number,
            len(records),
            len(page.identifiers),
            extra={"page_number": page.page_number},
        )
        return records

    async def _fetch_one(self, item_id: str, page_number: int) -> Optional[RawRecord]:
        async with self.gate.permit():
            try:
                return await asyncio.wait_for(
                    self.connector.fetch_item(item_id, timeout=self.timeout), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                failure = DetailFetchFailure(item_id, f"timed out after {self.timeout}s")
            except DetailFetchFailure as exc:
                failure = exc
            except FatalFailure:
                raise
            except Exception as exc:
                failure = DetailFetchFailure(item_id, str(exc) or type(exc).__name__)

        logger.warning("%s", failure, extra={"item_id": item_id, "page_number": page_number})
        self.failures.append(failure)
        return None
