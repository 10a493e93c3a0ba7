"""
Multi-page crawler: breadth-first over same-origin links from a seed URL.

Pages are visited in discovery order, bounded by ``max_pages`` and
``max_depth``. Each page goes through the fetcher and is stored as a
template page. The crawl's CrawlStatus is kept current in the registry so
the status endpoint can be polled while it runs.
"""

import asyncio
import re
from collections import deque
from datetime import datetime, timezone
from urllib.parse import urlparse

from webbuilder import fetcher, persister
from webbuilder.config import get_settings
from webbuilder.extractor import extract_links, normalize_url
from webbuilder.models import CrawlStatus
from webbuilder.progress import spawn_background
from webbuilder.registry import crawl_statuses, pause_registry


MAX_LINKS_PER_PAGE = 50

SKIP_URL_RE = re.compile(
    r"\.(pdf|docx?|xlsx?|zip|rar|exe|dmg|jpe?g|png|gif|svg|webp|mp4|mp3|avi|mov|css|js|json|xml)$"
    r"|mailto:|tel:|javascript:|\?.*download|/download/",
    re.IGNORECASE,
)


def should_skip_url(url: str) -> bool:
    return bool(SKIP_URL_RE.search(url))


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


async def _scrape_page(url: str, robots_cache: dict | None = None):
    # One retry, short delay; the per-page timeout is applied by the caller
    return await fetcher.scrape_website_full(
        url, max_retries=2, retry_delay=1.0, robots_cache=robots_cache
    )


async def crawl_website_multipage(
    start_url: str,
    template_id: str,
    max_pages: int = 50,
    max_depth: int = 3,
    on_progress=None,
    pause=None,
    pause_every: int | None = None,
    pause_key: str | None = None,
    on_pause=None,
    on_error=None,
    scrape=None,
) -> dict:
    """
    Crawl and store up to ``max_pages`` pages. Returns ``{pagesScraped, errors}``.

    ``on_progress(pages_scraped, estimated_total, url)`` fires after each
    stored page. With ``pause``/``pause_every`` the crawl stops every
    ``pause_every`` pages, calls ``on_pause(key, pages_scraped)`` and waits
    for a resume or the registry timeout. ``on_error(message)`` fires as
    soon as a page fails, so callers can surface errors mid-crawl.
    """
    settings = get_settings()
    if scrape is None:
        # robots.txt is fetched once per origin for the whole crawl
        robots_cache: dict = {}

        async def scrape(url):
            return await _scrape_page(url, robots_cache)

    start_url = normalize_url(start_url)
    origin = _origin(start_url)

    visited: set[str] = set()
    queued: set[str] = {start_url}
    to_visit: deque[tuple[str, int]] = deque([(start_url, 0)])
    errors: list[str] = []
    pages_scraped = 0

    async def record_error(message: str):
        errors.append(message)
        if on_error:
            await on_error(message)

    print(f"[crawler] Starting crawl of {start_url} (max {max_pages} pages, depth {max_depth})")
    await persister.clear_pages(template_id)

    while to_visit and pages_scraped < max_pages:
        url, depth = to_visit.popleft()
        if url in visited or depth > max_depth:
            continue
        if _origin(url) != origin or should_skip_url(url):
            continue
        visited.add(url)

        try:
            site = await asyncio.wait_for(scrape(url), timeout=settings.crawl_page_timeout)
        except Exception as e:
            print(f"[crawler] {url} failed: {e}")
            await record_error(f"{url}: {str(e) or 'Scrape failed or timed out'}")
            continue
        if not site.ok:
            await record_error(f"{url}: {site.error}")
            continue

        path = urlparse(url).path or "/"
        is_home = path in ("", "/")
        try:
            await persister.persist_page(
                template_id,
                url,
                site,
                order=0 if is_home else pages_scraped + 1,
                is_home_page=is_home,
            )
        except Exception as e:
            await record_error(f"{url}: Storage error - {e}")
            continue

        pages_scraped += 1
        print(f"[crawler] Saved {path} ({pages_scraped} total)")
        if on_progress:
            await on_progress(pages_scraped, min(max_pages, pages_scraped + len(to_visit)), url)

        if depth < max_depth and pages_scraped < max_pages:
            added = 0
            for link in extract_links(site.html_content, url):
                if added >= MAX_LINKS_PER_PAGE or len(to_visit) >= max_pages * 2:
                    break
                if link in visited or link in queued:
                    continue
                if _origin(link) != origin or should_skip_url(link):
                    continue
                to_visit.append((link, depth + 1))
                queued.add(link)
                added += 1

        if not to_visit or pages_scraped >= max_pages:
            continue
        if pause is not None and pause_every and pages_scraped % pause_every == 0:
            key = pause_key or pause.new_key()
            print(f"[crawler] Paused after {pages_scraped} pages, waiting on {key}")
            if on_pause:
                await on_pause(key, pages_scraped)
            await pause.wait(key)
        elif settings.crawl_page_delay:
            await asyncio.sleep(settings.crawl_page_delay)

    print(f"[crawler] Finished {start_url}: {pages_scraped} pages, {len(errors)} errors")
    return {"pagesScraped": pages_scraped, "errors": errors}


def start_crawl(
    template_id: str,
    source_url: str,
    template_name: str = "Unknown",
    max_pages: int = 50,
    max_depth: int = 3,
    pause_every: int | None = None,
) -> CrawlStatus:
    """Kick off a crawl in the background and return its initial status."""
    status = CrawlStatus(
        template_id=template_id,
        template_name=template_name,
        source_url=source_url,
        status="running",
        total_pages=max_pages,
        start_time=datetime.now(timezone.utc),
    )
    crawl_statuses.set(template_id, status)

    async def on_progress(pages_scraped, total, url):
        status.pages_scraped = pages_scraped
        status.total_pages = total
        status.current_url = url
        status.pause_key = None
        crawl_statuses.set(template_id, status)

    async def on_pause(key, pages_scraped):
        status.pause_key = key
        crawl_statuses.set(template_id, status)

    async def on_error(message):
        status.errors = [*status.errors, message]
        crawl_statuses.set(template_id, status)

    async def _run():
        try:
            result = await crawl_website_multipage(
                source_url,
                template_id,
                max_pages=max_pages,
                max_depth=max_depth,
                on_progress=on_progress,
                pause=pause_registry,
                pause_every=pause_every,
                on_pause=on_pause,
                on_error=on_error,
            )
            status.status = "completed"
            status.pages_scraped = result["pagesScraped"]
            status.errors = result["errors"]
        except Exception as e:
            print(f"[crawler] Crawl for {template_id} failed: {e}")
            status.status = "error"
            status.errors = [*status.errors, str(e)]
        finally:
            status.pause_key = None
            status.current_url = None
            status.end_time = datetime.now(timezone.utc)
            crawl_statuses.set(template_id, status)

    spawn_background(_run())
    return status
