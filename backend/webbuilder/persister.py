"""
Persister: database first, JSON files when the database is unavailable.

A successfully scraped result is never dropped because the database is
down: any failure in the source / content / template writes sends the
whole template to the file store instead.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from webbuilder import database, file_store
from webbuilder.models import ScrapedSite, Template


@dataclass
class PersistResult:
    storage: str  # "database" or "file"
    template: Template
    source_id: Optional[str] = None
    error: Optional[str] = None


async def resolve_source(scraped: ScrapedSite, template: Template, source_fields: dict | None = None) -> str:
    """Existing source id for the site's URL, creating the source if needed."""
    existing = await database.get_source_by_url(scraped.url)
    if existing:
        return existing["id"]

    row = {
        "company_name": scraped.company_name,
        "website_url": scraped.url,
        "industry": template.industry,
        "country": template.location_country,
        "state": template.location_state,
        "city": template.location_city,
        "is_active": True,
    }
    row.update(source_fields or {})
    created = await database.create_source(row)
    if not created.get("id"):
        raise RuntimeError(f"Source insert for {scraped.url} returned no id")
    print(f"  [persister] Created source {created['id']} for {scraped.url}")
    return created["id"]


def scraped_content_row(source_id: str, scraped: ScrapedSite) -> dict:
    return {
        "source_id": source_id,
        "html_content": scraped.html_content,
        "css_content": scraped.css_content,
        "images": [img.to_json_dict() for img in scraped.images],
        "text_content": scraped.text_content.to_json_dict(),
        "design_tokens": scraped.design_tokens.to_json_dict(),
        "version": "1",
    }


async def persist_template(
    template: Template,
    scraped: ScrapedSite,
    source_fields: dict | None = None,
) -> PersistResult:
    try:
        source_id = template.source_id or await resolve_source(scraped, template, source_fields)
        await database.insert_scraped_content(scraped_content_row(source_id, scraped))
        stored = template.model_copy(update={"source_id": source_id})
        await database.upsert_template(database.template_to_row(stored))
        print(f"  [persister] Saved template {stored.id} to database")
        return PersistResult(storage="database", template=stored, source_id=source_id)
    except Exception as e:
        print(f"  [persister] Database unavailable ({e}), falling back to file")
        file_store.save_template_to_file(template, scraped)
        return PersistResult(storage="file", template=template, error=str(e))


async def persist_scraped_content(scraped: ScrapedSite, industry: str, source_fields: dict | None = None) -> Optional[str]:
    """Source + raw content only, for scrapes that skip template creation."""
    stub = Template(id="-", name=scraped.company_name, industry=industry)
    try:
        source_id = await resolve_source(scraped, stub, source_fields)
        await database.insert_scraped_content(scraped_content_row(source_id, scraped))
        return source_id
    except Exception as e:
        print(f"  [persister] Could not store scraped content for {scraped.url}: {e}")
        return None


# ---------------------------------------------------------------------------
# Crawled pages
# ---------------------------------------------------------------------------

def page_record(template_id: str, url: str, scraped: ScrapedSite, order: int, is_home_page: bool) -> dict:
    return {
        "template_id": template_id,
        "url": url,
        "path": urlparse(url).path or "/",
        "html": scraped.html_content,
        "css": scraped.css_content,
        "images": [img.to_json_dict() for img in scraped.images],
        "text": scraped.text_content.to_json_dict(),
        "title": scraped.metadata.title,
        "is_home_page": is_home_page,
        "order": order,
    }


async def clear_pages(template_id: str) -> None:
    try:
        removed = await database.delete_template_pages(template_id)
        print(f"  [persister] Cleared {removed} existing pages for {template_id}")
    except Exception as e:
        print(f"  [persister] Could not clear pages in database ({e})")
    file_store.delete_page_files(template_id)


async def persist_page(
    template_id: str,
    url: str,
    scraped: ScrapedSite,
    order: int,
    is_home_page: bool = False,
) -> str:
    """Store one crawled page. Returns the storage used."""
    record = page_record(template_id, url, scraped, order, is_home_page)
    try:
        await database.insert_template_page(record)
        return "database"
    except Exception as e:
        print(f"  [persister] Page {url} to file ({e})")
        file_store.save_page_to_file(template_id, record)
        return "file"
