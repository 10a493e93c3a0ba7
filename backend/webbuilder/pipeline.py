"""
Per-site pipeline: scrape -> rewrite -> reimage -> SEO -> verify -> persist.

Each stage takes the Template produced by the previous one and returns a
new Template; nothing is mutated in place. Stage order is fixed and the
StageTracker rejects any status that would move backwards or continue
after a terminal stage.
"""

from webbuilder import fetcher, persister
from webbuilder.image_generator import regenerate_images
from webbuilder.models import ProcessingStatus, SiteResult, WebsiteInput, utc_now_iso
from webbuilder.progress import StageTracker
from webbuilder.rewriter import BusinessContext, rewrite_page_content
from webbuilder.seo import augment_seo
from webbuilder.template_factory import create_template_from_scrape
from webbuilder.verifier import verify_html


class ScrapeFailedError(Exception):
    pass


def _named(scraped, name: str | None):
    """Pin the caller's name so the template id and name agree with it."""
    if name and scraped.company_name != name:
        return scraped.model_copy(update={"company_name": name})
    return scraped


async def process_website(site: WebsiteInput, on_progress=None) -> SiteResult:
    """
    Run one site through the whole pipeline.

    ``on_progress`` is an optional ``async (ProcessingStatus)`` callback.
    Failures never escape: they come back as an unsuccessful SiteResult
    after a final ``error`` status.
    """
    tracker = StageTracker()
    name = site.name

    async def report(stage: str, progress: int, message: str, error: str | None = None):
        tracker.advance(stage)
        if on_progress:
            await on_progress(ProcessingStatus(
                url=site.url,
                name=name or site.url,
                year=site.year,
                industry=site.industry,
                stage=stage,
                progress=progress,
                message=message,
                error=error,
            ))

    try:
        # Stage 1: scrape
        await report("scraping", 10, "Scraping website...")

        async def scrape_progress(phase, current, total, message):
            await report("scraping", 10 + int(current / total * 20), message or "Scraping...")

        scraped = await fetcher.scrape_website_full(
            site.url,
            company_name=site.name or None,
            on_progress=scrape_progress,
        )
        if not scraped.ok:
            raise ScrapeFailedError(scraped.error)
        scraped = _named(scraped, site.name)

        name = name or scraped.company_name
        year = site.year or None
        template = create_template_from_scrape(scraped, None, site.industry)
        template = template.model_copy(update={
            "name": f"{name} ({year})" if year else f"{name} Template",
            "industry": site.industry,
            "year": year,
            "award_winning": bool(year),
        })

        # Stage 2: rewrite
        await report("rewriting", 30, "Rewriting content...")
        rewrite = await rewrite_page_content(
            template.html,
            BusinessContext(name=name, industry=site.industry or "business", location="Global"),
        )
        template = template.with_html(
            rewrite.html,
            contentRewritten=True,
            rewrittenAt=utc_now_iso(),
            rewriteChanges=rewrite.changes_count,
            rewriteFailures=len(rewrite.failures),
        )

        # Stage 3: reimage
        await report("reimaging", 50, "Regenerating images...")

        async def image_progress(attempted, total):
            await report(
                "reimaging",
                50 + int(attempted / total * 20) if total else 70,
                f"Regenerated {attempted}/{total} images...",
            )

        images = await regenerate_images(template.html, name, site.industry, on_progress=image_progress)
        template = template.with_html(
            images.html,
            imagesRegenerated=True,
            imagesRegeneratedAt=utc_now_iso(),
            imagesCount=images.regenerated,
        )

        # Stage 4: SEO
        await report("seo", 75, "Evaluating SEO...")
        template = template.with_html(
            augment_seo(template.html, name, site.industry, year),
            seoEvaluated=True,
            seoEvaluatedAt=utc_now_iso(),
        )

        # Stage 5: verify
        await report("verifying", 90, "Verifying template...")
        verification = verify_html(template.html)
        template = template.with_html(
            template.html,
            verified=verification.verified,
            verifiedAt=utc_now_iso(),
            verificationChecks=verification.checks(),
        )

        # Stage 6: persist
        stored = await persister.persist_template(template, scraped, {"metadata": {"year": year, "awardWinning": bool(year)}})

        await report("complete", 100, f"Template saved ({stored.storage})")
        return SiteResult(
            url=site.url,
            success=True,
            template_id=stored.template.id,
            storage=stored.storage,
            verified=verification.verified,
        )

    except Exception as e:
        print(f"[pipeline] {site.url} failed: {e}")
        if not tracker.finished:
            await report("error", 0, f"Failed: {e}", error=str(e))
        return SiteResult(url=site.url, success=False, error=str(e))


async def scrape_single_site(
    url: str,
    industry: str,
    create_templates: bool = True,
    country: str | None = None,
    state: str | None = None,
    city: str | None = None,
    ranking: str | None = None,
    design_category: str | None = None,
    is_design_quality: bool = False,
    design_score: float | None = None,
    design_award_source: str | None = None,
    company_name: str | None = None,
) -> SiteResult:
    """Scrape and store one site without the rewrite/reimage stages."""
    scraped = await fetcher.scrape_website_full(url, company_name=company_name)
    if not scraped.ok:
        return SiteResult(url=url, success=False, error=scraped.error)
    scraped = _named(scraped, company_name)

    source_fields = {"current_ranking": int(ranking) if ranking and str(ranking).isdigit() else None}
    if not create_templates:
        await persister.persist_scraped_content(scraped, industry, source_fields)
        return SiteResult(url=url, success=True, data=scraped.summary())

    template = create_template_from_scrape(
        scraped,
        None,
        industry,
        country=country,
        state=state,
        city=city,
        ranking=ranking,
        design_category=design_category,
        is_design_quality=is_design_quality,
        design_score=design_score,
        design_award_source=design_award_source,
    )
    stored = await persister.persist_template(template, scraped, source_fields)
    return SiteResult(
        url=url,
        success=True,
        template_id=stored.template.id,
        storage=stored.storage,
        data=scraped.summary(),
        template=stored.template.to_json_dict(),
    )
