"""
Page fetcher with retry.

Loads a URL either in headless Chromium (Playwright) or with a plain httpx
GET, depending on ``settings.scrape_renderer``, downloads the external
stylesheets and hands everything to the extractor.

``scrape_website_full`` never raises: after the last failed attempt it
returns a ScrapedSite whose ``error`` is set, and callers must check it.
"""

import asyncio
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx
from playwright.async_api import async_playwright

from webbuilder.config import get_settings
from webbuilder.extractor import (
    build_scraped_site,
    company_name_from_url,
    inline_css,
    parse_html,
    stylesheet_urls,
)
from webbuilder.models import ScrapedSite


RETRYABLE_PATTERNS = [
    "timeout",
    "network",
    "econnrefused",
    "enotfound",
    "econnreset",
    "etimedout",
    "eai_again",
    "socket hang up",
    "net::err_",
    "failed to fetch",
    "connection refused",
    "dns",
]

MAX_STYLESHEETS = 20


class RobotsDisallowedError(Exception):
    pass


def is_retryable_error(exc: BaseException) -> bool:
    """Timeouts, dropped connections and DNS hiccups are worth another try."""
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    message = str(exc).lower()
    return any(pattern in message for pattern in RETRYABLE_PATTERNS)


async def _load_robots(origin: str) -> RobotFileParser | None:
    """Parsed robots.txt for ``origin``; None means everything is allowed."""
    settings = get_settings()
    try:
        async with httpx.AsyncClient(timeout=10.0, follow_redirects=True) as client:
            resp = await client.get(f"{origin}/robots.txt", headers={"User-Agent": settings.user_agent})
        if resp.status_code != 200:
            return None
        parser = RobotFileParser()
        parser.parse(resp.text.splitlines())
        return parser
    except Exception as e:
        print(f"  [fetcher] robots.txt check skipped for {origin}: {e}")
        return None


async def check_robots_txt(url: str, cache: dict | None = None) -> bool:
    """
    True when robots.txt allows fetching ``url`` (or cannot be read).

    Pass the same ``cache`` dict across calls to fetch each origin's
    robots.txt only once.
    """
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    if cache is not None and origin in cache:
        parser = cache[origin]
    else:
        parser = await _load_robots(origin)
        if cache is not None:
            cache[origin] = parser
    if parser is None:
        return True
    return parser.can_fetch(get_settings().user_agent, url)


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

async def _load_with_browser(url: str) -> str:
    settings = get_settings()
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True)
        try:
            context = await browser.new_context(
                viewport={"width": settings.viewport_width, "height": settings.viewport_height},
                user_agent=settings.user_agent,
            )
            page = await context.new_page()

            # networkidle can hang on chatty pages, fall back to DOM ready
            try:
                await page.goto(url, wait_until="networkidle", timeout=settings.page_load_timeout)
            except Exception:
                await page.goto(url, wait_until="domcontentloaded", timeout=settings.page_load_timeout)
                await page.wait_for_timeout(2000)

            return await page.content()
        finally:
            await browser.close()


async def _load_with_http(url: str) -> str:
    settings = get_settings()
    async with httpx.AsyncClient(
        timeout=settings.http_timeout,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    ) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.text


async def load_page(url: str) -> str:
    """Return the rendered HTML for ``url`` using the configured renderer."""
    if get_settings().scrape_renderer == "http":
        return await _load_with_http(url)
    return await _load_with_browser(url)


async def fetch_stylesheets(urls: list[str]) -> list[str]:
    """Download external CSS. Sheets that fail to load are skipped."""
    if not urls:
        return []
    settings = get_settings()
    sheets = []
    async with httpx.AsyncClient(
        timeout=settings.http_timeout,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    ) as client:
        for css_url in urls[:MAX_STYLESHEETS]:
            try:
                resp = await client.get(css_url)
                if resp.status_code == 200:
                    sheets.append(resp.text)
            except Exception as e:
                print(f"  [fetcher] Stylesheet skipped {css_url}: {e}")
    return sheets


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _scrape_once(url: str, company_name: str | None, on_progress) -> ScrapedSite:
    if on_progress:
        await on_progress("loading", 0, 3, f"Loading {url}")
    html = await load_page(url)

    if on_progress:
        await on_progress("stylesheets", 1, 3, "Downloading stylesheets")
    soup = parse_html(html)
    css_parts = inline_css(soup)
    css_parts.extend(await fetch_stylesheets(stylesheet_urls(soup, url)))

    if on_progress:
        await on_progress("extracting", 2, 3, "Extracting content")
    site = build_scraped_site(url, html, "\n".join(css_parts), company_name)

    if on_progress:
        await on_progress("done", 3, 3, f"Scraped {site.company_name}")
    return site


async def scrape_website_full(
    url: str,
    company_name: str | None = None,
    max_retries: int | None = None,
    retry_delay: float | None = None,
    on_progress=None,
    robots_cache: dict | None = None,
) -> ScrapedSite:
    """
    Scrape one page into a ScrapedSite.

    Retryable failures are retried up to ``max_retries`` attempts in total
    with a fixed ``retry_delay`` between them. Anything else ends the
    attempt loop at once.

    ``on_progress`` is an optional ``async (phase, current, total, message)``
    callback.
    """
    settings = get_settings()
    max_retries = max_retries if max_retries is not None else settings.scrape_max_retries
    retry_delay = retry_delay if retry_delay is not None else settings.scrape_retry_delay
    max_retries = max(1, max_retries)

    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url

    if settings.respect_robots_txt and not await check_robots_txt(url, robots_cache):
        print(f"  [fetcher] Disallowed by robots.txt: {url}")
        return ScrapedSite.failed(url, "Disallowed by robots.txt", company_name or company_name_from_url(url))

    last_error: Exception | None = None
    for attempt in range(1, max_retries + 1):
        try:
            site = await _scrape_once(url, company_name, on_progress)
            if attempt > 1:
                print(f"  [fetcher] {url} succeeded on attempt {attempt}")
            return site
        except Exception as e:
            last_error = e
            retryable = is_retryable_error(e)
            print(f"  [fetcher] Attempt {attempt}/{max_retries} failed for {url}: {e}")
            if not retryable or attempt == max_retries:
                break
            await asyncio.sleep(retry_delay)

    return ScrapedSite.failed(
        url,
        str(last_error) or last_error.__class__.__name__,
        company_name or company_name_from_url(url),
    )
