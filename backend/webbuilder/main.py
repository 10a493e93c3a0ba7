from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from webbuilder import database, fetcher, pipeline, search
from webbuilder.batch import run_batch
from webbuilder.config import get_settings
from webbuilder.crawler import start_crawl
from webbuilder.file_store import templates_dir, load_index, load_template_file
from webbuilder.models import CamelModel, CrawlStatus, SiteResult, WebsiteInput
from webbuilder.progress import run_in_channel
from webbuilder.registry import crawl_statuses, pause_registry
from webbuilder.sse_utils import SSE_HEADERS
from webbuilder.templates_api import find_template, router as templates_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure the file fallback directory exists
    try:
        path = templates_dir()
        print(f"[startup] Template fallback directory: {path}")
    except Exception as e:
        print(f"[startup] Could not prepare template directory: {e}")
    yield


app = FastAPI(title="Website Builder API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(templates_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    print(f"[api] Validation error on {request.url.path}: {errors}")
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", []) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    print(f"[api] Unhandled {type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


def _sse_response(channel) -> StreamingResponse:
    return StreamingResponse(
        channel.stream(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ScrapeRequest(CamelModel):
    urls: Optional[list[str]] = None
    industry: Optional[str] = None
    options: Optional[dict] = None
    is_design_quality: bool = False
    design_category: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None


class DesignQualityRequest(CamelModel):
    design_category: Optional[str] = None
    limit: int = 100
    country: Optional[str] = "United States"
    stream_progress: bool = False
    # Skip the search step and process these URLs directly
    urls: Optional[list[str]] = None


class DesignSearchRequest(CamelModel):
    design_category: Optional[str] = None
    limit: int = 100
    country: Optional[str] = "United States"


class BulkIndustriesRequest(CamelModel):
    country: str = "United States"
    state: Optional[str] = None
    city: Optional[str] = None
    limit: int = 100
    # Defaults to every known industry
    industries: Optional[list[str]] = None


class BulkDesignRequest(CamelModel):
    limit: int = 10
    country: Optional[str] = "United States"
    # Defaults to every design category
    categories: Optional[list[str]] = None


class CheckSafeRequest(CamelModel):
    url: Optional[str] = None


class ContinueRequest(CamelModel):
    pause_key: Optional[str] = None


class CrawlRequest(CamelModel):
    max_pages: int = 50
    max_depth: int = 3
    pause_every: Optional[int] = None


class SearchRequest(CamelModel):
    industry: Optional[str] = None
    limit: int = 50
    location: str = ""


class SourceCreateRequest(CamelModel):
    company_name: Optional[str] = None
    website_url: Optional[str] = None
    industry: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    current_ranking: Optional[int] = None
    is_active: bool = True


class SourceUpdateRequest(CamelModel):
    company_name: Optional[str] = None
    website_url: Optional[str] = None
    industry: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    current_ranking: Optional[int] = None
    is_active: Optional[bool] = None


class BatchProcessRequest(CamelModel):
    websites: Optional[list[WebsiteInput]] = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/")
def root():
    return {"message": "Backend is running"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/admin/scraper/scrape")
async def scrape_websites(request: ScrapeRequest):
    """Scrape each URL in turn and store a template per site."""
    if not request.urls:
        raise HTTPException(status_code=400, detail="URLs array is required")
    if not request.industry:
        raise HTTPException(status_code=400, detail="Industry is required")

    options = request.options or {"fullDesign": True, "fullContent": True, "createTemplates": True}
    results = []
    for i, url in enumerate(request.urls):
        print(f"[scraper] Scraping {i + 1}/{len(request.urls)}: {url}")
        try:
            result = await pipeline.scrape_single_site(
                url,
                request.industry,
                create_templates=options.get("createTemplates", True),
                country=request.country,
                state=request.state,
                city=request.city,
                design_category=request.design_category,
                is_design_quality=request.is_design_quality,
            )
        except Exception as e:
            print(f"[scraper] {url} failed: {e}")
            result = SiteResult(url=url, success=False, error=str(e))
        results.append(result.to_dict())

    successful = sum(1 for r in results if r["success"])
    return {
        "success": True,
        "results": results,
        "summary": {"total": len(results), "successful": successful, "failed": len(results) - successful},
    }


def _require_design_category(category: Optional[str]) -> str:
    if not category:
        raise HTTPException(status_code=400, detail="Design category is required")
    if category not in search.DESIGN_CATEGORIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid design category. Must be one of: {', '.join(search.DESIGN_CATEGORIES)}",
        )
    return category


def _design_inputs(category: str, found: list[dict]) -> tuple[list[WebsiteInput], dict]:
    sites = [WebsiteInput(url=f["url"], name=f.get("title", ""), industry=category) for f in found]
    return sites, {f["url"]: f.get("awardSource") for f in found}


def _design_site_scraper(category: str, award_sources: dict):
    async def process(site: WebsiteInput, on_progress=None):
        return await pipeline.scrape_single_site(
            site.url,
            category,
            is_design_quality=True,
            design_category=category,
            design_award_source=award_sources.get(site.url),
        )
    return process


def _group_result(key: str, label: str, summary) -> dict:
    """One industry or category line of a bulk scrape report."""
    return {
        key: label,
        "success": summary.success_count > 0,
        "scraped": summary.success_count,
        "failed": summary.fail_count,
        "errors": [f"{r.url}: {r.error}" for r in summary.results if not r.success][:5],
    }


def _empty_group(key: str, label: str, reason: str) -> dict:
    return {key: label, "success": False, "scraped": 0, "failed": 0, "errors": [reason]}


@app.post("/api/admin/scraper/search-design-quality")
async def search_design_quality(request: DesignSearchRequest):
    """List award-winning sites for a design category without scraping them."""
    category = _require_design_category(request.design_category)
    try:
        found = await search.search_design_websites(category, request.limit, request.country)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not found:
        return {
            "success": True,
            "websites": [],
            "count": 0,
            "message": "No design-quality websites found. Check the search configuration or try another category.",
        }
    websites = [
        {
            "name": f.get("title") or "Unknown",
            "url": f["url"],
            "description": f.get("description", ""),
            "category": f.get("category", category),
            "awardSource": f.get("awardSource") or "Unknown",
            "ranking": i + 1,
        }
        for i, f in enumerate(found)
    ]
    return {
        "success": True,
        "websites": websites,
        "count": len(websites),
        "category": category,
        "country": request.country,
    }


@app.post("/api/admin/scraper/bulk-scrape-all-industries")
async def bulk_scrape_all_industries(request: BulkIndustriesRequest):
    """Search then scrape every industry in turn; one failing site never stops the sweep."""
    industries = request.industries or search.INDUSTRIES
    location = ", ".join(part for part in (request.city, request.state, request.country) if part)
    results = []

    for i, industry in enumerate(industries):
        print(f"[scraper] Bulk industry {i + 1}/{len(industries)}: {industry}")
        try:
            found = await search.search_industry_websites(industry, request.limit, location)
        except Exception as e:
            print(f"[scraper] Search for {industry} failed: {e}")
            found = []
        if not found:
            results.append(_empty_group("industry", industry, "No search results found"))
            continue

        sites = [WebsiteInput(url=f["websiteUrl"], name=f.get("companyName", ""), industry=industry) for f in found]
        rankings = {f["websiteUrl"]: f.get("ranking") for f in found}

        async def process(site: WebsiteInput, on_progress=None, industry=industry, rankings=rankings):
            ranking = rankings.get(site.url)
            return await pipeline.scrape_single_site(
                site.url,
                industry,
                country=request.country,
                state=request.state,
                city=request.city,
                ranking=str(ranking) if ranking is not None else None,
                company_name=site.name or None,
            )

        summary = await run_batch(sites, process=process)
        results.append(_group_result("industry", industry, summary))

    return {
        "success": True,
        "results": results,
        "summary": {
            "totalIndustries": len(industries),
            "totalScraped": sum(r["scraped"] for r in results),
            "totalFailed": sum(r["failed"] for r in results),
            "successfulIndustries": sum(1 for r in results if r["success"]),
        },
    }


@app.post("/api/admin/scraper/bulk-scrape-all-design-categories")
async def bulk_scrape_all_design_categories(request: BulkDesignRequest):
    """Search then scrape award winners for every design category in turn."""
    categories = request.categories or search.DESIGN_CATEGORIES
    for category in categories:
        _require_design_category(category)
    results = []

    for i, category in enumerate(categories):
        print(f"[scraper] Bulk design category {i + 1}/{len(categories)}: {category}")
        try:
            found = await search.search_design_websites(category, request.limit, request.country)
        except Exception as e:
            print(f"[scraper] Design search for {category} failed: {e}")
            found = []
        if not found:
            results.append(_empty_group("category", category, "No design websites found for this category"))
            continue

        sites, award_sources = _design_inputs(category, found)
        summary = await run_batch(sites, process=_design_site_scraper(category, award_sources))
        results.append(_group_result("category", category, summary))

    return {
        "success": True,
        "results": results,
        "summary": {
            "totalCategories": len(categories),
            "totalScraped": sum(r["scraped"] for r in results),
            "totalFailed": sum(r["failed"] for r in results),
            "successfulCategories": sum(1 for r in results if r["success"]),
        },
    }


@app.post("/api/admin/scraper/check-safe")
async def check_safe(request: CheckSafeRequest):
    """Whether ``url`` may be scraped under its site's robots.txt."""
    url = (request.url or "").strip()
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise HTTPException(status_code=400, detail="Invalid URL format")

    allowed = await fetcher.check_robots_txt(url)
    return {
        "success": True,
        "url": url,
        "safe": allowed,
        "robotsAllowed": allowed,
        "reason": "Allowed by robots.txt" if allowed else "Disallowed by robots.txt",
    }


@app.post("/api/admin/scraper/scrape-design-quality")
async def scrape_design_quality(request: DesignQualityRequest, http_request: Request):
    """
    Find award-winning sites for a design category and scrape them.

    Streams SSE progress when the client sends ``Accept: text/event-stream``
    or ``streamProgress: true``; otherwise answers with one JSON body.
    """
    category = _require_design_category(request.design_category)

    async def find_sites() -> tuple[list[WebsiteInput], dict]:
        if request.urls:
            found = [{"url": url} for url in request.urls]
        else:
            found = await search.search_design_websites(category, request.limit, request.country)
        return _design_inputs(category, found)

    streaming = request.stream_progress or "text/event-stream" in http_request.headers.get("accept", "")
    if not streaming:
        try:
            sites, award_sources = await find_sites()
            summary = await run_batch(sites, process=_design_site_scraper(category, award_sources))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {
            "success": True,
            "results": [r.to_dict() for r in summary.results],
            "summary": {
                "total": summary.processed,
                "successful": summary.success_count,
                "failed": summary.fail_count,
                "category": category,
            },
        }

    settings = get_settings()
    pause_key = pause_registry.new_key()

    async def job(channel):
        channel.emit("connected", {"pauseKey": pause_key, "message": "Connected to scraping stream"})
        channel.emit("progress", {"progress": 5, "message": f"Searching for {category} websites..."})
        sites, award_sources = await find_sites()
        total = len(sites)
        if total == 0:
            channel.emit("error", {
                "error": f"No websites found for category {category}",
                "summary": {"total": 0, "successful": 0, "failed": 0, "category": category},
            })
            return
        channel.emit("progress", {"progress": 10, "message": f"Found {total} websites, starting scrape..."})

        batch_size = settings.pause_batch_size
        counts = {"successful": 0, "failed": 0}
        process_site = _design_site_scraper(category, award_sources)
        position = {"index": 0}

        async def process(site, on_progress=None):
            i = position["index"]
            position["index"] += 1
            channel.emit("progress", {
                "progress": 10 + round(i / total * 90),
                "current": i + 1,
                "total": total,
                "currentUrl": site.url,
                "batchNumber": i // batch_size + 1,
                "batchPosition": i % batch_size + 1,
                "message": f"Scraping {i + 1}/{total}: {site.url}",
            })
            return await process_site(site, on_progress)

        async def on_result(index, result):
            counts["successful" if result.success else "failed"] += 1
            frame = {
                "url": result.url,
                "progress": 10 + round((index + 1) / total * 90),
                "current": index + 1,
                "total": total,
                **counts,
            }
            if result.success:
                template = result.template or {}
                channel.emit("success", {**frame, "templateId": result.template_id, "templateName": template.get("name")})
            else:
                channel.emit("error", {**frame, "error": result.error})

        async def on_pause(key, processed, remaining):
            batch_number = processed // batch_size
            channel.emit("batch-complete", {
                "pauseKey": key,
                "batchNumber": batch_number,
                "batchSize": batch_size,
                "totalProcessed": processed,
                "totalRemaining": remaining,
                "message": (
                    f"Batch {batch_number} complete ({processed} processed, {remaining} remaining). "
                    "Click Continue to proceed."
                ),
            })

        summary = await run_batch(
            sites,
            pause=pause_registry,
            pause_every=batch_size,
            pause_key=pause_key,
            on_pause=on_pause,
            on_result=on_result,
            process=process,
        )
        channel.emit("complete", {
            "success": True,
            "results": [r.to_dict() for r in summary.results],
            "summary": {
                "total": summary.processed,
                "successful": summary.success_count,
                "failed": summary.fail_count,
                "category": category,
            },
        })

    return _sse_response(run_in_channel(job))


@app.post("/api/admin/scraper/continue-scraping")
async def continue_scraping(request: ContinueRequest):
    if not request.pause_key:
        raise HTTPException(status_code=400, detail="pauseKey is required")
    if not pause_registry.resume(request.pause_key):
        raise HTTPException(status_code=404, detail="Pause key not found or already resolved")
    return {"success": True, "message": "Scraping continued"}


async def _template_source_url(template: dict) -> str | None:
    source_id = template.get("sourceId")
    if source_id:
        try:
            source = await database.get_source(source_id)
            if source and source.get("website_url"):
                return source["website_url"]
        except Exception as e:
            print(f"[scraper] Source lookup for {source_id} failed: {e}")
    content = template.get("contentData") or {}
    metadata = content.get("metadata") or {}
    return content.get("url") or content.get("sourceUrl") or metadata.get("url") or template.get("sourceUrl") or None


@app.post("/api/admin/scraper/crawl-multipage/{template_id}")
async def crawl_multipage(template_id: str, request: Optional[CrawlRequest] = None):
    """Start a background crawl; poll crawl-status for progress."""
    request = request or CrawlRequest()
    template, _ = await find_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    source_url = await _template_source_url(template)
    if not source_url:
        raise HTTPException(status_code=400, detail="Could not determine source URL for template")

    pause_every = get_settings().pause_batch_size if request.pause_every is None else request.pause_every
    start_crawl(
        template_id,
        source_url,
        template_name=template.get("name") or "Unknown",
        max_pages=request.max_pages,
        max_depth=request.max_depth,
        pause_every=pause_every or None,
    )
    return {
        "success": True,
        "message": f"Started crawling {source_url}",
        "sourceUrl": source_url,
        "maxPages": request.max_pages,
        "maxDepth": request.max_depth,
    }


@app.get("/api/admin/scraper/crawl-status/{template_id}")
async def crawl_status(template_id: str):
    status = crawl_statuses.get(template_id) or CrawlStatus(template_id=template_id)
    return {"success": True, "status": status.to_json_dict()}


@app.post("/api/admin/scraper/search")
async def search_websites(request: SearchRequest):
    if not request.industry:
        raise HTTPException(status_code=400, detail="Industry is required")
    try:
        results = await search.search_industry_websites(request.industry, request.limit, request.location)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    response = {"success": True, "results": results, "count": len(results)}
    if not search.search_configured():
        response["warning"] = "Google Custom Search is not configured (GOOGLE_SEARCH_API_KEY, GOOGLE_SEARCH_ENGINE_ID)"
    return response


@app.get("/api/admin/scraper/sources")
async def list_sources(
    industry: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
):
    try:
        sources = await database.list_sources({"industry": industry, "country": country, "state": state, "city": city})
        return {"success": True, "sources": sources, "count": len(sources)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/admin/scraper/sources")
async def create_source(request: SourceCreateRequest):
    if not (request.company_name and request.website_url and request.industry and request.country):
        raise HTTPException(status_code=400, detail="companyName, websiteUrl, industry, and country are required")
    try:
        source = await database.create_source(request.model_dump())
        return {"success": True, "source": source}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/admin/scraper/sources/{source_id}")
async def update_source(source_id: str, request: SourceUpdateRequest):
    try:
        source = await database.update_source(source_id, request.model_dump(exclude_unset=True))
        if not source:
            raise HTTPException(status_code=404, detail="Source not found")
        return {"success": True, "source": source}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/api/admin/scraper/sources/{source_id}")
async def delete_source(source_id: str):
    try:
        if not await database.delete_source(source_id):
            raise HTTPException(status_code=404, detail="Source not found")
        return {"success": True, "message": "Source deleted"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/admin/scraper/template/{template_id}")
async def get_scraped_template(template_id: str):
    """A scraped template, from its JSON file first and then the database."""
    record = load_template_file(template_id)
    if record:
        return {"success": True, "template": record, "source": "file"}
    try:
        row = await database.get_template(template_id)
    except Exception as e:
        print(f"[scraper] Database lookup for {template_id} failed: {e}")
        row = None
    if not row:
        raise HTTPException(status_code=404, detail="Template not found")
    return {"success": True, "template": database.row_to_template(row).to_json_dict(), "source": "database"}


@app.get("/api/admin/scraper/templates")
async def list_scraped_templates():
    """Scraped templates: file-fallback index entries plus database rows with a source."""
    templates = [{**entry, "source": "file"} for entry in load_index()]
    try:
        rows = await database.list_templates(with_source_only=True, limit=100)
        templates.extend({**database.row_to_template(r).to_json_dict(), "source": "database"} for r in rows)
    except Exception as e:
        print(f"[scraper] Database unavailable for template listing: {e}")
    return {"success": True, "templates": templates, "count": len(templates)}


@app.post("/api/award-websites/batch-process")
async def batch_process(request: BatchProcessRequest):
    """Run every website through the full pipeline, streaming progress."""
    websites = request.websites
    if not websites:
        raise HTTPException(status_code=400, detail="Websites array is required")

    async def job(channel):
        total = len(websites)

        async def on_progress(status):
            channel.send({"type": "progress", **status.to_json_dict()})

        async def on_result(index, result):
            channel.emit("site-complete", {"index": index, "total": total, **result.to_dict()})

        summary = await run_batch(websites, on_progress=on_progress, on_result=on_result)
        channel.emit("complete", {
            "url": "",
            "name": "Batch Processing Complete",
            "stage": "complete",
            "progress": 100,
            "message": f"Processed {summary.success_count}/{summary.processed} websites successfully",
            "summary": summary.to_dict(),
        })

    return _sse_response(run_in_channel(job))
