import json

import pytest
from fastapi.testclient import TestClient

from webbuilder import database, fetcher, file_store, pipeline, search
from webbuilder.main import app
from webbuilder.models import CrawlStatus, ProcessingStatus, SiteResult, Template
from webbuilder.registry import crawl_statuses, pause_registry


@pytest.fixture
def client():
    return TestClient(app)


def _frames(resp):
    return [json.loads(line[len("data: "):]) for line in resp.text.splitlines() if line.startswith("data: ")]


def _fake_single_site(fail=()):
    async def scrape_single_site(url, industry, **kwargs):
        if url in fail:
            return SiteResult(url=url, success=False, error="Scrape failed")
        return SiteResult(
            url=url,
            success=True,
            template_id=f"tpl-{url[-5:]}",
            storage="file",
            template={"name": f"Template for {url}", "isDesignQuality": kwargs.get("is_design_quality", False)},
        )

    return scrape_single_site


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_scrape_requires_urls_and_industry(client):
    assert client.post("/api/admin/scraper/scrape", json={"industry": "Law"}).json() == {
        "success": False,
        "error": "URLs array is required",
    }
    resp = client.post("/api/admin/scraper/scrape", json={"urls": ["https://a.com"]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Industry is required"


def test_bad_body_types_are_400(client):
    resp = client.post("/api/admin/scraper/scrape", json={"urls": 5, "industry": "Law"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_scrape_reports_each_url_in_order(client, monkeypatch):
    monkeypatch.setattr(pipeline, "scrape_single_site", _fake_single_site(fail={"https://b.com"}))
    body = client.post(
        "/api/admin/scraper/scrape",
        json={"urls": ["https://a.com", "https://b.com", "https://c.com"], "industry": "Law"},
    ).json()

    assert [r["url"] for r in body["results"]] == ["https://a.com", "https://b.com", "https://c.com"]
    assert [r["success"] for r in body["results"]] == [True, False, True]
    assert body["results"][1]["error"] == "Scrape failed"
    assert body["summary"] == {"total": 3, "successful": 2, "failed": 1}


def test_design_quality_rejects_unknown_category(client):
    resp = client.post("/api/admin/scraper/scrape-design-quality", json={"designCategory": "Nope"})
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid design category")
    assert client.post("/api/admin/scraper/scrape-design-quality", json={}).status_code == 400


def test_design_quality_json_mode(client, monkeypatch):
    monkeypatch.setattr(pipeline, "scrape_single_site", _fake_single_site())
    body = client.post(
        "/api/admin/scraper/scrape-design-quality",
        json={"designCategory": "Business", "urls": ["https://a.com", "https://b.com"]},
    ).json()

    assert body["success"] is True
    assert body["summary"] == {"total": 2, "successful": 2, "failed": 0, "category": "Business"}
    assert body["results"][0]["template"]["isDesignQuality"] is True


def test_design_quality_stream_pauses_between_batches(client, monkeypatch, settings):
    monkeypatch.setattr(settings, "pause_batch_size", 2)
    monkeypatch.setattr(pipeline, "scrape_single_site", _fake_single_site(fail={"https://c.com"}))

    resp = client.post(
        "/api/admin/scraper/scrape-design-quality",
        json={"designCategory": "Business", "streamProgress": True, "urls": ["https://a.com", "https://b.com", "https://c.com"]},
    )
    assert resp.headers["content-type"].startswith("text/event-stream")
    frames = _frames(resp)
    types = [f["type"] for f in frames]

    assert types[0] == "connected"
    assert types[-1] == "complete"
    assert types.count("success") == 2
    assert types.count("batch-complete") == 1
    assert "error" in types

    pause_key = frames[0]["pauseKey"]
    batch = next(f for f in frames if f["type"] == "batch-complete")
    assert batch["pauseKey"] == pause_key
    assert (batch["totalProcessed"], batch["totalRemaining"]) == (2, 1)
    assert types.index("batch-complete") < len(types) - 1

    progress = [f for f in frames if f["type"] == "progress" and "currentUrl" in f]
    assert [p["currentUrl"] for p in progress] == ["https://a.com", "https://b.com", "https://c.com"]
    assert [p["batchNumber"] for p in progress] == [1, 1, 2]
    assert frames[-1]["summary"] == {"total": 3, "successful": 2, "failed": 1, "category": "Business"}


def test_design_quality_stream_with_no_results(client):
    resp = client.post(
        "/api/admin/scraper/scrape-design-quality",
        headers={"Accept": "text/event-stream"},
        json={"designCategory": "Business"},
    )
    frames = _frames(resp)
    assert frames[-1]["type"] == "error"
    assert frames[-1]["summary"]["total"] == 0


def test_continue_scraping(client):
    assert client.post("/api/admin/scraper/continue-scraping", json={}).status_code == 400
    missing = client.post("/api/admin/scraper/continue-scraping", json={"pauseKey": "scrape-0-none"})
    assert missing.status_code == 404
    assert missing.json()["error"] == "Pause key not found or already resolved"


def test_crawl_status_defaults_to_idle(client):
    body = client.get("/api/admin/scraper/crawl-status/unknown").json()
    assert body["success"] is True
    assert body["status"]["status"] == "idle"
    assert body["status"]["templateName"] == "Unknown"
    assert body["status"]["pagesScraped"] == 0

    crawl_statuses.set("known", CrawlStatus(template_id="known", status="running", pages_scraped=4))
    assert client.get("/api/admin/scraper/crawl-status/known").json()["status"]["pagesScraped"] == 4


def test_crawl_requires_known_template_with_url(client, no_db, monkeypatch):
    assert client.post("/api/admin/scraper/crawl-multipage/missing", json={}).status_code == 404

    file_store.save_template_to_file(Template(id="no-url", name="No URL"))
    resp = client.post("/api/admin/scraper/crawl-multipage/no-url", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Could not determine source URL for template"

    started = []

    def fake_start_crawl(template_id, source_url, **kwargs):
        started.append((template_id, source_url, kwargs))
        return CrawlStatus(template_id=template_id, status="running")

    monkeypatch.setattr("webbuilder.main.start_crawl", fake_start_crawl)
    file_store.save_template_to_file(Template(
        id="with-url",
        name="Acme",
        content_data={"metadata": {"url": "https://acme.com"}},
    ))
    body = client.post("/api/admin/scraper/crawl-multipage/with-url", json={"maxPages": 5, "pauseEvery": 0}).json()

    assert body["sourceUrl"] == "https://acme.com"
    assert body["maxPages"] == 5
    template_id, source_url, kwargs = started[0]
    assert (template_id, source_url) == ("with-url", "https://acme.com")
    assert kwargs["pause_every"] is None
    assert kwargs["template_name"] == "Acme"


def test_search_requires_industry_and_warns_when_unconfigured(client):
    assert client.post("/api/admin/scraper/search", json={}).status_code == 400
    body = client.post("/api/admin/scraper/search", json={"industry": "Law"}).json()
    assert body["results"] == []
    assert "warning" in body


def test_search_design_quality_lists_ranked_sites(client, monkeypatch):
    async def fake_search(category, limit=100, country=None):
        return [
            {"url": "https://studio.com", "title": "Studio", "description": "Bold", "category": category, "awardSource": "Awwwards"},
            {"url": "https://plain.com", "title": "", "description": "", "category": category, "awardSource": None},
        ]

    monkeypatch.setattr(search, "search_design_websites", fake_search)
    body = client.post("/api/admin/scraper/search-design-quality", json={"designCategory": "Agency"}).json()

    assert body["count"] == 2
    assert (body["category"], body["country"]) == ("Agency", "United States")
    assert body["websites"][0] == {
        "name": "Studio",
        "url": "https://studio.com",
        "description": "Bold",
        "category": "Agency",
        "awardSource": "Awwwards",
        "ranking": 1,
    }
    assert (body["websites"][1]["name"], body["websites"][1]["awardSource"]) == ("Unknown", "Unknown")


def test_search_design_quality_validates_and_handles_no_results(client):
    missing = client.post("/api/admin/scraper/search-design-quality", json={})
    assert missing.json()["error"] == "Design category is required"
    invalid = client.post("/api/admin/scraper/search-design-quality", json={"designCategory": "Nope"})
    assert invalid.status_code == 400
    assert invalid.json()["error"].startswith("Invalid design category")

    body = client.post("/api/admin/scraper/search-design-quality", json={"designCategory": "Business"}).json()
    assert (body["success"], body["websites"], body["count"]) == (True, [], 0)
    assert "message" in body


def test_bulk_scrape_all_industries_reports_each_industry(client, monkeypatch):
    async def fake_search(industry, limit=50, location=""):
        searched.append((industry, location))
        if industry == "florist":
            return []
        return [
            {"companyName": "Good Co", "websiteUrl": f"https://good-{industry}.com", "ranking": 1},
            {"companyName": "Bad Co", "websiteUrl": f"https://bad-{industry}.com", "ranking": 2},
        ]

    searched = []
    monkeypatch.setattr(search, "search_industry_websites", fake_search)
    monkeypatch.setattr(pipeline, "scrape_single_site", _fake_single_site(fail={"https://bad-dentist.com"}))

    body = client.post(
        "/api/admin/scraper/bulk-scrape-all-industries",
        json={"industries": ["dentist", "florist"], "city": "Austin", "state": "TX", "limit": 2},
    ).json()

    assert searched == [("dentist", "Austin, TX, United States"), ("florist", "Austin, TX, United States")]
    dentist, florist = body["results"]
    assert (dentist["industry"], dentist["success"], dentist["scraped"], dentist["failed"]) == ("dentist", True, 1, 1)
    assert dentist["errors"] == ["https://bad-dentist.com: Scrape failed"]
    assert florist == {"industry": "florist", "success": False, "scraped": 0, "failed": 0, "errors": ["No search results found"]}
    assert body["summary"] == {"totalIndustries": 2, "totalScraped": 1, "totalFailed": 1, "successfulIndustries": 1}


def test_bulk_scrape_all_industries_defaults_to_every_industry(client):
    body = client.post("/api/admin/scraper/bulk-scrape-all-industries", json={}).json()
    assert body["summary"]["totalIndustries"] == len(search.INDUSTRIES)
    assert body["summary"]["totalScraped"] == 0


def test_bulk_scrape_all_design_categories(client, monkeypatch):
    async def fake_search(category, limit=100, country=None):
        if category == "Music":
            return []
        return [{"url": "https://studio.com", "title": "Studio", "awardSource": "FWA"}]

    monkeypatch.setattr(search, "search_design_websites", fake_search)
    monkeypatch.setattr(pipeline, "scrape_single_site", _fake_single_site())

    body = client.post(
        "/api/admin/scraper/bulk-scrape-all-design-categories",
        json={"categories": ["Agency", "Music"]},
    ).json()

    agency, music = body["results"]
    assert (agency["category"], agency["scraped"], agency["success"]) == ("Agency", 1, True)
    assert music["errors"] == ["No design websites found for this category"]
    assert body["summary"] == {"totalCategories": 2, "totalScraped": 1, "totalFailed": 0, "successfulCategories": 1}

    bad = client.post("/api/admin/scraper/bulk-scrape-all-design-categories", json={"categories": ["Nope"]})
    assert bad.status_code == 400


def test_check_safe(client, monkeypatch):
    assert client.post("/api/admin/scraper/check-safe", json={}).json()["error"] == "URL is required"
    invalid = client.post("/api/admin/scraper/check-safe", json={"url": "not a url"})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "Invalid URL format"

    async def robots(url, cache=None):
        return not url.endswith("/private")

    monkeypatch.setattr(fetcher, "check_robots_txt", robots)
    allowed = client.post("/api/admin/scraper/check-safe", json={"url": "https://acme.com/about"}).json()
    assert (allowed["success"], allowed["safe"], allowed["robotsAllowed"]) == (True, True, True)
    blocked = client.post("/api/admin/scraper/check-safe", json={"url": "https://acme.com/private"}).json()
    assert blocked["safe"] is False
    assert blocked["reason"] == "Disallowed by robots.txt"


def test_sources_crud(client, fake_db):
    missing = client.post("/api/admin/scraper/sources", json={"companyName": "Acme"})
    assert missing.status_code == 400

    created = client.post(
        "/api/admin/scraper/sources",
        json={"companyName": "Acme", "websiteUrl": "https://acme.com", "industry": "Law", "country": "US"},
    ).json()["source"]
    assert created["website_url"] == "https://acme.com"

    listed = client.get("/api/admin/scraper/sources", params={"industry": "Law"}).json()
    assert listed["count"] == 1
    assert client.get("/api/admin/scraper/sources", params={"industry": "Tax"}).json()["count"] == 0

    updated = client.put(f"/api/admin/scraper/sources/{created['id']}", json={"city": "Austin"}).json()
    assert updated["source"]["city"] == "Austin"
    assert client.put("/api/admin/scraper/sources/nope", json={"city": "x"}).status_code == 404

    assert client.delete(f"/api/admin/scraper/sources/{created['id']}").json()["message"] == "Source deleted"
    assert client.delete(f"/api/admin/scraper/sources/{created['id']}").status_code == 404


def test_scraped_template_lookup_prefers_file(client, fake_db):
    template = Template(id="tpl-x", name="From file")
    file_store.save_template_to_file(template)
    fake_db.tables[database.TEMPLATES] = [{"id": "tpl-db", "name": "From db", "source_id": "s1"}]

    assert client.get("/api/admin/scraper/template/tpl-x").json()["source"] == "file"
    assert client.get("/api/admin/scraper/template/tpl-db").json()["source"] == "database"
    assert client.get("/api/admin/scraper/template/none").status_code == 404

    listing = client.get("/api/admin/scraper/templates").json()
    assert {(t["id"], t["source"]) for t in listing["templates"]} == {("tpl-x", "file"), ("tpl-db", "database")}


def test_batch_process_streams_progress_and_summary(client, monkeypatch):
    async def fake_process(site, on_progress=None):
        await on_progress(ProcessingStatus(url=site.url, name=site.name, stage="scraping", progress=10))
        if site.url == "https://two.com":
            return SiteResult(url=site.url, success=False, error="boom")
        await on_progress(ProcessingStatus(url=site.url, name=site.name, stage="complete", progress=100))
        return SiteResult(url=site.url, success=True, template_id="t", storage="file", verified=True)

    monkeypatch.setattr(pipeline, "process_website", fake_process)
    resp = client.post(
        "/api/award-websites/batch-process",
        json={"websites": [
            {"url": "https://one.com", "name": "One", "year": 2020, "industry": "Design"},
            {"url": "https://two.com", "name": "Two"},
        ]},
    )
    frames = _frames(resp)

    assert [f["type"] for f in frames] == ["progress", "progress", "site-complete", "progress", "site-complete", "complete"]
    assert frames[0]["stage"] == "scraping"
    assert frames[2]["templateId"] == "t"
    assert frames[4]["error"] == "boom"
    summary = frames[-1]["summary"]
    assert (summary["processed"], summary["successCount"], summary["failCount"]) == (2, 1, 1)
    assert [r["url"] for r in summary["results"]] == ["https://one.com", "https://two.com"]


def test_batch_process_requires_websites(client):
    resp = client.post("/api/award-websites/batch-process", json={"websites": []})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Websites array is required"


def test_pause_registry_is_clean_after_stream(client, monkeypatch, settings):
    monkeypatch.setattr(settings, "pause_batch_size", 1)
    monkeypatch.setattr(pipeline, "scrape_single_site", _fake_single_site())
    frames = _frames(client.post(
        "/api/admin/scraper/scrape-design-quality",
        json={"designCategory": "Business", "streamProgress": True, "urls": ["https://a.com", "https://b.com"]},
    ))
    key = frames[0]["pauseKey"]
    assert not pause_registry.is_paused(key)
