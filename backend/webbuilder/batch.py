"""
Batch driver: runs sites one after another, never in parallel.

A failing site is recorded and the batch moves on. Results keep the input
order. Sites are separated by a fixed delay to go easy on the scraped
sites and the AI providers.
"""

import asyncio

from webbuilder import pipeline
from webbuilder.config import get_settings
from webbuilder.models import BatchSummary, SiteResult


async def run_batch(
    sites: list,
    on_progress=None,
    delay: float | None = None,
    pause=None,
    pause_every: int | None = None,
    pause_key: str | None = None,
    on_pause=None,
    on_result=None,
    process=None,
) -> BatchSummary:
    """
    Process ``sites`` sequentially and return the summary.

    ``process(site, on_progress)`` defaults to the full pipeline. When a
    ``pause`` registry and ``pause_every`` are given the driver stops after
    every ``pause_every`` items (if any remain), calls
    ``on_pause(key, processed, remaining)`` and waits for a resume or the
    registry timeout. ``on_result(index, result)`` fires after every site.
    """
    process = process or pipeline.process_website
    delay = get_settings().batch_delay if delay is None else delay
    summary = BatchSummary()
    total = len(sites)

    for index, site in enumerate(sites):
        url = getattr(site, "url", None) or str(site)
        print(f"[batch] [{index + 1}/{total}] {url}")
        try:
            result = await process(site, on_progress)
        except Exception as e:
            print(f"[batch] {url} failed: {e}")
            result = SiteResult(url=url, success=False, error=str(e))
        summary.results.append(result)

        if on_result:
            await on_result(index, result)

        remaining = total - index - 1
        if remaining == 0:
            break

        processed = index + 1
        if pause is not None and pause_every and processed % pause_every == 0:
            key = pause_key or pause.new_key()
            print(f"[batch] Batch {processed // pause_every} complete, waiting on {key}")
            if on_pause:
                await on_pause(key, processed, remaining)
            await pause.wait(key)
        elif delay:
            await asyncio.sleep(delay)

    print(f"[batch] Done: {summary.success_count} succeeded, {summary.fail_count} failed")
    return summary
