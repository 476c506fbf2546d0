import pytest
from pydantic import ValidationError

from harvester.schemas import ListingPage, NormalizedRecord, RawRecord


def test_listing_page_rejects_duplicate_identifiers():
    with pytest.raises(ValidationError):
        ListingPage(page_number=1, identifiers=("A", "A"))


def test_listing_page_numbers_start_at_one():
    with pytest.raises(ValidationError):
        ListingPage(page_number=0, identifiers=("A",))


def test_raw_record_is_immutable():
    raw = RawRecord(id="A", source_url="https://www.ebay.com/itm/A", fields={"title": ""})
    with pytest.raises(ValidationError):
        raw.id = "B"
    assert raw.field("title") == ""
    assert raw.field("missing") == ""


def test_normalized_record_never_leaves_fields_absent():
    record = NormalizedRecord.model_validate({"id": "A", "title": None, "primaryPrice": "  ", "approxPrice": 12})

    assert record.title == "-"
    assert record.primary_price == "-"
    assert record.approx_price == "12"
    assert record.source_url == "-"
    assert record.to_artifact() == {
        "id": "A",
        "sourceUrl": "-",
        "title": "-",
        "primaryPrice": "-",
        "approxPrice": "12",
        "description": {},
    }


def test_fallback_record_shape():
    raw = RawRecord(id="C", source_url="https://www.ebay.com/itm/C")

    fallback = NormalizedRecord.fallback(raw, "JSON Parse Error").to_artifact()

    assert fallback == {
        "id": "C",
        "sourceUrl": "https://www.ebay.com/itm/C",
        "title": "-",
        "primaryPrice": "-",
        "approxPrice": "-",
        "description": {},
        "error": "JSON Parse Error",
    }
