import logging
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Mapping, Optional
from urllib.parse import quote_plus, urljoin

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Browser, Page, Playwright, Route
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from harvester.core.errors import DetailFetchFailure, FatalFailure
from harvester.schemas import RawRecord
from .base import BaseConnector

logger = logging.getLogger(__name__)

BASE_URL = "https://www.ebay.com"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"

LISTING_ITEM_SELECTOR = "ul.srp-results > li[data-listingid]"
DETAIL_READY_SELECTOR = ".vim.x-evo-atf-right-river,[data-testid='x-evo-atf-right-river']"
TITLE_SELECTOR = '[data-testid="x-item-title"] h1 span'
PRIMARY_PRICE_SELECTOR = '[data-testid="x-price-primary"] span'
APPROX_PRICE_SELECTOR = '[data-testid="x-price-approx"] .x-price-approx__price span'
ABOUT_ROW_SELECTOR = ".ux-layout-section-evo__row"
DESCRIPTION_FRAME_SELECTOR = "#desc_ifr"

BLOCKED_RESOURCE_TYPES = {"image", "media", "font"}
NON_CONTENT_TAGS = ["script", "style", "link", "noscript"]


def build_search_url(key: str, page_number: int = 1) -> str:
    keyword = quote_plus(re.sub(r"\s+", " ", key.strip()))
    return f"{BASE_URL}/sch/i.html?_from=R40&_nkw={keyword}&_pgn={page_number}"


def build_item_url(item_id: str) -> str:
    return f"{BASE_URL}/itm/{item_id}"


def parse_search_results(html: str) -> List[str]:
    soup = BeautifulSoup(html, "html.parser")
    ids: List[str] = []
    for item in soup.select(LISTING_ITEM_SELECTOR):
        listing_id = (item.get("data-listingid") or "").strip()
        if listing_id:
            ids.append(listing_id)
    return list(dict.fromkeys(ids))  # preserve order, drop duplicates


def _outer_html(soup: BeautifulSoup, selector: str) -> str:
    node = soup.select_one(selector)
    return str(node) if node else ""


def parse_listing_detail(html: str, base_url: str = BASE_URL) -> Mapping[str, Optional[str]]:
    soup = BeautifulSoup(html, "html.parser")
    rows = [str(row) for row in soup.select(ABOUT_ROW_SELECTOR)]

    frame = soup.select_one(DESCRIPTION_FRAME_SELECTOR)
    frame_src = frame.get("src") if frame else None

    return {
        "title": _outer_html(soup, TITLE_SELECTOR),
        "primary_price": _outer_html(soup, PRIMARY_PRICE_SELECTOR),
        "approx_price": _outer_html(soup, APPROX_PRICE_SELECTOR),
        "about_item": "\n".join(rows).strip(),
        "description_url": urljoin(base_url, frame_src) if frame_src else None,
    }


def extract_description_body(html: str) -> str:
    """Inner HTML of ``<body>`` (or the whole document) without scripts, styles and links."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()
    body = soup.body
    if body is None:
        return str(soup).strip()
    return body.decode_contents().strip()


class EbayConnector(BaseConnector):
    name = "ebay"

    def __init__(
        self,
        headless: bool = True,
        selector_timeout: float = 30,
        description_timeout: float = 15,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.headless = headless
        self.selector_timeout = selector_timeout
        self.description_timeout = description_timeout
        self._client = client
        self._owns_client = client is None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def open(self) -> None:
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=["--no-sandbox", "--disable-setuid-sandbox"]
            )
        except Exception as exc:
            await self.close()
            raise FatalFailure(f"Unable to launch browser: {exc}") from exc
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT}, timeout=self.description_timeout, follow_redirects=True
            )
        logger.info("[ebay] browser started headless=%s", self.headless)

    async def close(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        client = self._client if self._owns_client else None
        if client is not None:
            self._client = None
        try:
            if browser is not None:
                await browser.close()
        finally:
            try:
                if playwright is not None:
                    await playwright.stop()
            finally:
                if client is not None:
                    await client.aclose()

    @asynccontextmanager
    async def _page(self) -> AsyncIterator[Page]:
        if self._browser is None:
            raise FatalFailure("EbayConnector used before open()")
        context = await self._browser.new_context(user_agent=USER_AGENT)
        try:
            await context.route("**/*", self._block_resources)
            yield await context.new_page()
        finally:
            await context.close()

    async def _block_resources(self, route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def list_page(self, key: str, page_number: int, *, timeout: float) -> List[str]:
        url = build_search_url(key, page_number)
        logger.info("[ebay] listing page %s: %s", page_number, url)
        async with self._page() as page:
            await page.goto(url, wait_until="networkidle", timeout=timeout * 1000)
            try:
                await page.wait_for_selector(LISTING_ITEM_SELECTOR, timeout=timeout * 1000)
            except PlaywrightTimeoutError:
                logger.info("[ebay] no listing items rendered on page %s", page_number)
                return []
            html = await page.content()
        return parse_search_results(html)

    async def fetch_item(self, item_id: str, *, timeout: float) -> RawRecord:
        url = build_item_url(item_id)
        logger.info("[ebay] fetching item %s", url)
        async with self._page() as page:
            await page.goto(url, wait_until="networkidle", timeout=timeout * 1000)
            try:
                await page.wait_for_selector(DETAIL_READY_SELECTOR, timeout=self.selector_timeout * 1000)
            except PlaywrightTimeoutError:
                logger.warning("[ebay] timeout waiting for main content of item %s", item_id)
            html = await page.content()

        detail = parse_listing_detail(html, base_url=url)
        if not detail["title"] and not detail["primary_price"]:
            raise DetailFetchFailure(item_id, "item page has no title or price")

        description_url = detail["description_url"]
        full_description = await self._fetch_description(item_id, description_url) if description_url else ""
        return RawRecord(
            id=item_id,
            source_url=url,
            fields={
                "title": detail["title"] or "",
                "primary_price": detail["primary_price"] or "",
                "approx_price": detail["approx_price"] or "",
                "about_item": detail["about_item"] or "",
                "full_description": full_description,
            },
            auxiliary_content_url=description_url,
        )

    async def _fetch_description(self, item_id: str, url: str) -> str:
        if self._client is None:
            raise FatalFailure("EbayConnector used before open()")
        try:
            response = await self._client.get(url, timeout=self.description_timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("[ebay] failed to fetch description document for %s: %s", item_id, exc)
            return ""
        return extract_description_body(response.text)
