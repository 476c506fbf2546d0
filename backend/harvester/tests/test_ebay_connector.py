import httpx
import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from conftest import read_fixture
from harvester.connectors.ebay import (
    EbayConnector,
    build_item_url,
    build_search_url,
    extract_description_body,
    parse_listing_detail,
    parse_search_results,
)
from harvester.core.errors import DetailFetchFailure, FatalFailure

DESCRIPTION_URL = "https://vi.vipr.ebaydesc.com/ws/eBayISAPI.dll?ViewItemDescV4&item=111111111111"


def test_build_search_url_joins_words_with_plus():
    url = build_search_url("  laptop   gaming ", 2)
    assert url == "https://www.ebay.com/sch/i.html?_from=R40&_nkw=laptop+gaming&_pgn=2"
    assert build_item_url("123") == "https://www.ebay.com/itm/123"


def test_parse_search_results_returns_unique_listing_ids():
    ids = parse_search_results(read_fixture("ebay_search.html"))
    assert ids == ["111111111111", "222222222222", "333333333333"]


def test_parse_search_results_empty_page():
    assert parse_search_results(read_fixture("ebay_search_empty.html")) == []


def test_parse_listing_detail_extracts_raw_fields():
    detail = parse_listing_detail(read_fixture("ebay_detail.html"))

    assert "Nike Air Max 90 Triple White Size 10" in detail["title"]
    assert detail["title"].startswith("<span")
    assert "US $120.00" in detail["primary_price"]
    assert "EUR 110.50" in detail["approx_price"]
    assert detail["about_item"].count("ux-layout-section-evo__row") == 2
    assert "New with box" in detail["about_item"]
    assert detail["description_url"] == DESCRIPTION_URL


def test_parse_listing_detail_missing_content():
    detail = parse_listing_detail(read_fixture("ebay_detail_missing.html"))
    assert detail["title"] == ""
    assert detail["primary_price"] == ""
    assert detail["about_item"] == ""
    assert detail["description_url"] is None


def test_extract_description_body_strips_non_content_markup():
    body = extract_description_body(read_fixture("ebay_description.html"))

    assert "<script" not in body
    assert "<link" not in body
    assert "<style" not in body
    assert "Ships within 2 business days." in body
    assert "Payment: PayPal only." in body
    assert not body.startswith("<body")


def test_extract_description_body_without_body_tag():
    assert extract_description_body("<p>Hi</p><script>x()</script>") == "<p>Hi</p>"


class FakePage:
    def __init__(self, html: str, rendered: bool = True) -> None:
        self.html = html
        self.rendered = rendered
        self.visited = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)

    async def wait_for_selector(self, selector, timeout=None):
        if not self.rendered:
            raise PlaywrightTimeoutError("selector timeout")

    async def content(self):
        return self.html


class FakeContext:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.closed = False

    async def route(self, pattern, handler):
        self.route_handler = handler

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.contexts = []

    async def new_context(self, **kwargs):
        context = FakeContext(self.page)
        self.contexts.append(context)
        return context


def _connector_with(page: FakePage, handler=None) -> EbayConnector:
    def default_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=read_fixture("ebay_description.html"))

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler or default_handler))
    connector = EbayConnector(client=client)
    connector._browser = FakeBrowser(page)
    return connector


@pytest.mark.asyncio
async def test_fetch_item_builds_raw_record_with_description():
    page = FakePage(read_fixture("ebay_detail.html"))
    connector = _connector_with(page)

    record = await connector.fetch_item("111111111111", timeout=5)

    assert record.id == "111111111111"
    assert record.source_url == "https://www.ebay.com/itm/111111111111"
    assert record.auxiliary_content_url == DESCRIPTION_URL
    assert "US $120.00" in record.fields["primary_price"]
    assert "Ships within 2 business days." in record.fields["full_description"]
    assert "<script" not in record.fields["full_description"]
    assert connector._browser.contexts[0].closed


@pytest.mark.asyncio
async def test_fetch_item_tolerates_description_failure():
    def failing_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    connector = _connector_with(FakePage(read_fixture("ebay_detail.html")), failing_handler)

    record = await connector.fetch_item("111111111111", timeout=5)

    assert record.fields["full_description"] == ""
    assert record.fields["title"]


@pytest.mark.asyncio
async def test_fetch_item_without_content_fails():
    connector = _connector_with(FakePage(read_fixture("ebay_detail_missing.html"), rendered=False))

    with pytest.raises(DetailFetchFailure):
        await connector.fetch_item("555", timeout=5)
    assert connector._browser.contexts[0].closed


@pytest.mark.asyncio
async def test_list_page_returns_ids_and_closes_context():
    page = FakePage(read_fixture("ebay_search.html"))
    connector = _connector_with(page)

    ids = await connector.list_page("nike air", 3, timeout=5)

    assert ids == ["111111111111", "222222222222", "333333333333"]
    assert page.visited == ["https://www.ebay.com/sch/i.html?_from=R40&_nkw=nike+air&_pgn=3"]
    assert connector._browser.contexts[0].closed


@pytest.mark.asyncio
async def test_list_page_without_rendered_items_is_empty():
    connector = _connector_with(FakePage(read_fixture("ebay_search_empty.html"), rendered=False))

    assert await connector.list_page("nike", 9, timeout=5) == []


@pytest.mark.asyncio
async def test_connector_requires_open():
    connector = EbayConnector()

    with pytest.raises(FatalFailure):
        await connector.list_page("nike", 1, timeout=5)


class Closable:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    async def _release(self):
        self.calls += 1
        if self.error is not None:
            raise self.error

    close = stop = aclose = _release


@pytest.mark.asyncio
async def test_close_releases_everything_when_browser_close_fails():
    connector = EbayConnector()
    browser = Closable(RuntimeError("browser crashed"))
    playwright = Closable()
    client = Closable()
    connector._browser, connector._playwright, connector._client = browser, playwright, client

    with pytest.raises(RuntimeError, match="browser crashed"):
        await connector.close()

    assert (browser.calls, playwright.calls, client.calls) == (1, 1, 1)
    assert connector._browser is None
    assert connector._playwright is None
    assert connector._client is None


@pytest.mark.asyncio
async def test_close_keeps_injected_client_open():
    client = Closable()
    connector = EbayConnector(client=client)
    connector._browser = Closable()

    await connector.close()

    assert client.calls == 0
    assert connector._client is client
