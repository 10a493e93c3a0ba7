"""
Supabase client for sources, scraped content, templates and crawled pages.

Rows use snake_case columns. Every call raises on failure (missing
credentials included); the persister decides when to fall back to files.
"""

from webbuilder.config import get_settings
from webbuilder.models import Template


SOURCES = "template_sources"
SCRAPED_CONTENT = "scraped_content"
TEMPLATES = "brand_templates"
PAGES = "template_pages"


def _get_client():
    """Get a Supabase client. Raises if credentials are missing."""
    settings = get_settings()
    url = settings.supabase_url
    key = settings.supabase_key
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in .env")
    from supabase import create_client
    return create_client(url, key)


def _first(result) -> dict | None:
    return result.data[0] if result.data else None


def template_to_row(template: Template) -> dict:
    return template.model_dump(mode="json", exclude_none=True)


def row_to_template(row: dict) -> Template:
    return Template.model_validate(row)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

async def get_source_by_url(website_url: str) -> dict | None:
    client = _get_client()
    result = client.table(SOURCES).select("*").eq("website_url", website_url).limit(1).execute()
    return _first(result)


async def get_source_by_company(company_name: str) -> dict | None:
    client = _get_client()
    result = client.table(SOURCES).select("*").eq("company_name", company_name).limit(1).execute()
    return _first(result)


async def get_source(source_id: str) -> dict | None:
    client = _get_client()
    result = client.table(SOURCES).select("*").eq("id", source_id).limit(1).execute()
    return _first(result)


async def create_source(data: dict) -> dict:
    """Insert a source row. Returns the inserted row."""
    client = _get_client()
    result = client.table(SOURCES).insert(data).execute()
    return result.data[0] if result.data else {}


async def list_sources(filters: dict | None = None) -> list:
    """Sources ordered by ranking; ``filters`` are column equality checks."""
    client = _get_client()
    query = client.table(SOURCES).select("*")
    for column, value in (filters or {}).items():
        if value is not None and value != "":
            query = query.eq(column, value)
    result = query.order("current_ranking").execute()
    return result.data


async def update_source(source_id: str, data: dict) -> dict | None:
    client = _get_client()
    result = client.table(SOURCES).update(data).eq("id", source_id).execute()
    return _first(result)


async def delete_source(source_id: str) -> bool:
    client = _get_client()
    result = client.table(SOURCES).delete().eq("id", source_id).execute()
    return bool(result.data)


# ---------------------------------------------------------------------------
# Scraped content
# ---------------------------------------------------------------------------

async def insert_scraped_content(data: dict) -> dict:
    client = _get_client()
    result = client.table(SCRAPED_CONTENT).insert(data).execute()
    return result.data[0] if result.data else {}


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

async def upsert_template(row: dict) -> dict:
    """Insert or update on ``id`` conflict."""
    client = _get_client()
    result = client.table(TEMPLATES).upsert(row, on_conflict="id").execute()
    return result.data[0] if result.data else {}


async def insert_template(row: dict) -> dict:
    client = _get_client()
    result = client.table(TEMPLATES).insert(row).execute()
    return result.data[0] if result.data else {}


async def get_template(template_id: str) -> dict | None:
    client = _get_client()
    result = client.table(TEMPLATES).select("*").eq("id", template_id).limit(1).execute()
    return _first(result)


async def list_templates(active_only: bool = False, with_source_only: bool = False, limit: int | None = None) -> list:
    """Templates, newest first."""
    client = _get_client()
    query = client.table(TEMPLATES).select("*")
    if active_only:
        query = query.eq("is_active", True)
    query = query.order("created_at", desc=True)
    if limit:
        query = query.limit(limit)
    rows = query.execute().data or []
    if with_source_only:
        rows = [r for r in rows if r.get("source_id")]
    return rows


async def update_template(template_id: str, data: dict) -> dict | None:
    client = _get_client()
    result = client.table(TEMPLATES).update(data).eq("id", template_id).execute()
    return _first(result)


async def delete_template(template_id: str) -> bool:
    client = _get_client()
    result = client.table(TEMPLATES).delete().eq("id", template_id).execute()
    return bool(result.data)


async def delete_all_templates() -> int:
    """Delete every template row. Returns the number of rows removed."""
    client = _get_client()
    result = client.table(TEMPLATES).delete().neq("id", "").execute()
    return len(result.data or [])


# ---------------------------------------------------------------------------
# Crawled pages
# ---------------------------------------------------------------------------

async def insert_template_page(row: dict) -> dict:
    client = _get_client()
    result = client.table(PAGES).insert(row).execute()
    return result.data[0] if result.data else {}


async def delete_template_pages(template_id: str) -> int:
    client = _get_client()
    result = client.table(PAGES).delete().eq("template_id", template_id).execute()
    return len(result.data or [])


async def get_template_page(template_id: str, path: str) -> dict | None:
    client = _get_client()
    result = (
        client.table(PAGES)
        .select("*")
        .eq("template_id", template_id)
        .eq("path", path)
        .limit(1)
        .execute()
    )
    return _first(result)


async def list_template_pages(template_id: str) -> list:
    client = _get_client()
    result = (
        client.table(PAGES)
        .select("id, template_id, url, path, title, is_home_page, order")
        .eq("template_id", template_id)
        .order("order")
        .execute()
    )
    return result.data
