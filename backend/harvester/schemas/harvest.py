from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MISSING = "-"


class ListingPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    identifiers: Tuple[str, ...]

    @field_validator("identifiers")
    @classmethod
    def _unique_within_page(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if len(set(value)) != len(value):
            raise ValueError("identifiers must be unique within a page")
        return value


class RawRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source_url: str
    fields: Dict[str, str] = {}
    auxiliary_content_url: Optional[str] = None

    def field(self, name: str) -> str:
        return self.fields.get(name, "")


class NormalizedRecord(BaseModel):
    """Canonical output record; top-level fields fall back to "-" rather than being absent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    source_url: str = MISSING
    title: str = MISSING
    primary_price: str = MISSING
    approx_price: str = MISSING
    description: Dict[str, Any] = {}
    error: Optional[str] = None

    @field_validator("source_url", "title", "primary_price", "approx_price", mode="before")
    @classmethod
    def _fill_missing(cls, value: Any) -> str:
        if value is None:
            return MISSING
        if not isinstance(value, str):
            value = str(value)
        return value.strip() or MISSING

    @field_validator("description", mode="before")
    @classmethod
    def _description_mapping(cls, value: Any) -> Dict[str, Any]:
        if isinstance(value, Mapping):
            return dict(value)
        return {}

    @classmethod
    def fallback(cls, raw: RawRecord, error: str) -> "NormalizedRecord":
        return cls(id=raw.id, source_url=raw.source_url, description={}, error=error)

    def to_artifact(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class HarvestStats(BaseModel):
    key: str
    max_pages: int
    pages_processed: int = 0
    identifiers_discovered: int = 0
    raw_records: int = 0
    fetch_failures: int = 0
    normalization_fallbacks: int = 0


class HarvestResult(BaseModel):
    records: List[NormalizedRecord]
    raw_records: List[RawRecord]
    stats: HarvestStats
