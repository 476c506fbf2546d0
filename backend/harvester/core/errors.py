class HarvestError(Exception):
    """Base class for harvesting failures."""


class DiscoveryExhausted(HarvestError):
    """A listing page resolved to no identifiers or timed out; discovery is over."""

    def __init__(self, page_number: int, reason: str) -> None:
        super().__init__(f"Listing exhausted at page {page_number}: {reason}")
        self.page_number = page_number
        self.reason = reason


class DetailFetchFailure(HarvestError):
    """A single item could not be fetched; the item is dropped."""

    def __init__(self, item_id: str, reason: str) -> None:
        super().__init__(f"Failed to fetch item {item_id}: {reason}")
        self.item_id = item_id
        self.reason = reason


class NormalizationFailure(HarvestError):
    """The extraction oracle failed or returned unusable output for one record."""


class FatalFailure(HarvestError):
    """Failure outside the per-item isolation boundaries; aborts the run."""
