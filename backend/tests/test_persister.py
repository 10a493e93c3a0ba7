import json

from fastapi.testclient import TestClient

from webbuilder import database, file_store, persister
from webbuilder.extractor import build_scraped_site
from webbuilder.main import app
from webbuilder.template_factory import create_template_from_scrape


def _scraped(page_html, url="https://acme.com"):
    return build_scraped_site(url, page_html)


async def test_database_failure_falls_back_to_file(no_db, page_html):
    scraped = _scraped(page_html)
    template = create_template_from_scrape(scraped, None, "Construction")

    result = await persister.persist_template(template, scraped)

    assert result.storage == "file"
    assert "SUPABASE_URL" in result.error
    path = file_store.templates_dir() / f"{template.id}.json"
    record = json.loads(path.read_text())
    assert record["id"] == template.id
    assert record["scrapedData"]["companyName"] == "Acme Builders"
    assert [e["id"] for e in file_store.load_index()] == [template.id]

    listing = TestClient(app).get("/api/admin/templates").json()
    listed = [t for t in listing["templates"] if t["id"] == template.id]
    assert len(listed) == 1
    assert listed[0]["source"] == "file"


async def test_database_write_reuses_source(fake_db, page_html):
    scraped = _scraped(page_html)
    first = await persister.persist_template(create_template_from_scrape(scraped, None, "Construction"), scraped)
    second = await persister.persist_template(create_template_from_scrape(scraped, None, "Construction"), scraped)

    assert first.storage == second.storage == "database"
    assert first.source_id == second.source_id
    assert len(fake_db.rows(database.SOURCES)) == 1
    assert len(fake_db.rows(database.SCRAPED_CONTENT)) == 2
    rows = fake_db.rows(database.TEMPLATES)
    assert rows[0]["source_id"] == first.source_id
    assert rows[0]["is_approved"] is False
    assert file_store.load_index() == []


async def test_failure_midway_still_saves_to_file(fake_db, page_html, monkeypatch):
    async def broken_upsert(row):
        raise RuntimeError("violates unique constraint")

    monkeypatch.setattr(database, "upsert_template", broken_upsert)
    scraped = _scraped(page_html)
    result = await persister.persist_template(create_template_from_scrape(scraped, None, "Construction"), scraped)

    assert result.storage == "file"
    assert file_store.load_template_file(result.template.id) is not None


async def test_pages_fall_back_to_files(no_db, page_html):
    scraped = _scraped(page_html, "https://acme.com/about")
    await persister.clear_pages("tpl-1")
    storage = await persister.persist_page("tpl-1", scraped.url, scraped, order=1)

    assert storage == "file"
    page = file_store.load_page_file("tpl-1", "/about")
    assert page["template_id"] == "tpl-1"
    assert page["is_home_page"] is False


async def test_pages_go_to_database(fake_db, page_html):
    scraped = _scraped(page_html)
    storage = await persister.persist_page("tpl-1", scraped.url, scraped, order=0, is_home_page=True)

    assert storage == "database"
    assert fake_db.rows(database.PAGES)[0]["path"] == "/"
