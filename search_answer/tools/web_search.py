from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from bs4 import BeautifulSoup
from loguru import logger
from playwright.async_api import Error as PlaywrightError

from search_answer.config import settings
from search_answer.errors import SearchError
from search_answer.services import logger as log_service
from search_answer.tools import web_utils

GOOGLE_SEARCH_URL = "https://www.google.com/search"

NOISE_TAGS = ("script", "style", "noscript", "nav", "header", "footer", "svg", "iframe", "form")


@dataclass(slots=True)
class SearchLink:
    title: str
    url: str


@dataclass(slots=True)
class PageResult:
    title: str
    url: str
    text: str


def build_search_url(query: str) -> str:
    return f"{GOOGLE_SEARCH_URL}?{urlencode({'q': query, 'hl': 'en'})}"


def parse_result_links(html: str, max_results: int = 10) -> list[SearchLink]:
    """Pull organic result links out of a Google result page.

    Handles both the scripted layout (anchor wrapping an ``<h3>``) and the
    script-disabled layout (``/url?q=`` redirect anchors).
    """
    soup = BeautifulSoup(html, "html.parser")
    links: list[SearchLink] = []
    seen: set[str] = set()

    for anchor in soup.find_all("a", href=True):
        raw_href = anchor["href"]
        heading = anchor.find("h3")
        if heading is None and not raw_href.startswith("/url?"):
            continue

        url = web_utils.unwrap_result_url(raw_href)
        if not url or web_utils.is_google_host(url) or url in seen:
            continue

        title = heading.get_text(" ", strip=True) if heading else anchor.get_text(" ", strip=True)
        if not title:
            continue

        seen.add(url)
        links.append(SearchLink(title=title, url=url))
        if len(links) >= max_results:
            break

    return links


def extract_page_text(html: str, max_chars: int = 12000) -> tuple[str, str]:
    """Return ``(title, visible_text)`` for a rendered page."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    for tag in soup.find_all(list(NOISE_TAGS)):
        tag.decompose()
    root = soup.find("main") or soup.find("article") or soup.body or soup
    text = web_utils.normalize_text(root.get_text("\n"))
    return title, web_utils.truncate(text, max_chars)


def format_page_contents(pages: list[PageResult]) -> str:
    blocks = [f"Title: {page.title}\nURL: {page.url}\n\n{page.text}" for page in pages]
    return "\n\n---\n\n".join(blocks)


class WebSearcher:
    """Scrapes a search result page and the pages it links to.

    Every page is tried in the scriptable context first. When that fails or
    yields too little text, the script-disabled context gets a turn and the
    longer text wins.
    """

    def __init__(
        self,
        *,
        max_results: int | None = None,
        max_parallel: int | None = None,
        min_page_chars: int | None = None,
        max_page_chars: int | None = None,
    ):
        self.max_results = max_results or settings.search_max_results
        self.max_parallel = max(max_parallel or settings.search_max_parallel_pages, 1)
        self.min_page_chars = settings.search_min_page_chars if min_page_chars is None else min_page_chars
        self.max_page_chars = max_page_chars or settings.search_max_page_chars

    async def search(self, browser_name: str, context: Any, no_js_context: Any, query: str) -> str:
        t0 = time.monotonic()
        logger.info(f"Searching with {browser_name}: {query}")

        links = await self._search_links(context, no_js_context, query)
        logger.info(f"Found {len(links)} result links")

        semaphore = asyncio.Semaphore(self.max_parallel)

        async def run_one(link: SearchLink) -> PageResult | None:
            async with semaphore:
                return await self._scrape_link(context, no_js_context, link)

        scraped = await asyncio.gather(*(run_one(link) for link in links))
        pages = [page for page in scraped if page is not None]
        if not pages:
            raise SearchError(f"No readable pages for query: {query}")

        log_service.log_pipeline_stage(
            "search",
            "completed",
            duration_ms=int((time.monotonic() - t0) * 1000),
            data={"browser": browser_name, "links": len(links), "pages": len(pages)},
        )
        return format_page_contents(pages)

    async def _search_links(self, context: Any, no_js_context: Any, query: str) -> list[SearchLink]:
        url = build_search_url(query)
        last_error: Exception | None = None

        for handle in (context, no_js_context):
            try:
                html = await self._load(handle, url)
            except PlaywrightError as exc:
                last_error = exc
                logger.warning(f"Search page failed to load (javascript={handle.script_enabled}): {exc}")
                continue
            links = parse_result_links(html, self.max_results)
            if links:
                return links
            logger.debug(f"No result links parsed (javascript={handle.script_enabled})")

        if last_error is not None:
            raise SearchError(f"Search page could not be loaded for query '{query}': {last_error}") from last_error
        raise SearchError(f"No search results for query: {query}")

    async def _scrape_link(self, context: Any, no_js_context: Any, link: SearchLink) -> PageResult | None:
        best: PageResult | None = None
        for handle in (context, no_js_context):
            try:
                html = await self._load(handle, link.url)
            except Exception as exc:
                logger.debug(f"Failed to load {link.url} (javascript={handle.script_enabled}): {exc}")
                continue

            title, text = extract_page_text(html, self.max_page_chars)
            if best is None or len(text) > len(best.text):
                best = PageResult(title=title or link.title, url=link.url, text=text)
            if len(best.text) >= self.min_page_chars:
                break

        if best is None or not best.text:
            return None
        return best

    async def _load(self, handle: Any, url: str) -> str:
        page = await handle.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded")
            return await page.content()
        finally:
            await page.close()


async def search(browser_name: str, context: Any, no_js_context: Any, query: str) -> str:
    return await WebSearcher().search(browser_name, context, no_js_context, query)
