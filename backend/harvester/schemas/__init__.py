from .harvest import (
    MISSING,
    HarvestResult,
    HarvestStats,
    ListingPage,
    NormalizedRecord,
    RawRecord,
)

__all__ = [
    "MISSING",
    "ListingPage",
    "RawRecord",
    "NormalizedRecord",
    "HarvestStats",
    "HarvestResult",
]
