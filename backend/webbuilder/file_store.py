"""
JSON file fallback for when the database is unreachable.

Layout under ``settings.templates_dir``::

    {id}.json                     full template + scrapedAt + scrapedData summary
    index.json                    catalog, one summary entry per template
    pages/{templateId}/{slug}.json  crawled pages

When running without a database, index.json is the only catalog, so every
write here keeps it in step with the template files.
"""

import json
import os
import re
import shutil
from pathlib import Path

from webbuilder.config import get_settings
from webbuilder.models import ScrapedSite, Template, utc_now_iso


INDEX_FILE = "index.json"
INDEX_FIELDS = ["id", "name", "brand", "industry", "locationCountry", "locationState", "createdAt"]


class InvalidTemplateIdError(ValueError):
    pass


def templates_dir() -> Path:
    path = Path(get_settings().templates_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _safe_name(value: str) -> str:
    if not value or "/" in value or "\\" in value or value in (".", "..") or "\x00" in value:
        raise InvalidTemplateIdError(f"Invalid template id: {value!r}")
    return value


def _template_path(template_id: str) -> Path:
    return templates_dir() / f"{_safe_name(template_id)}.json"


def _write_json(path: Path, data) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)
    os.replace(tmp, path)


def _read_json(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------

def load_index() -> list[dict]:
    path = templates_dir() / INDEX_FILE
    if not path.exists():
        return []
    try:
        data = _read_json(path)
    except (OSError, json.JSONDecodeError) as e:
        print(f"  [file-store] index.json unreadable, treating as empty: {e}")
        return []
    return data if isinstance(data, list) else []


def _save_index(entries: list[dict]) -> None:
    _write_json(templates_dir() / INDEX_FILE, entries)


def _index_entry(record: dict) -> dict:
    entry = {field: record.get(field) for field in INDEX_FIELDS}
    entry["filename"] = f"{record['id']}.json"
    return entry


def _upsert_index(record: dict) -> None:
    entries = [e for e in load_index() if e.get("id") != record["id"]]
    entries.append(_index_entry(record))
    _save_index(entries)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def save_template_to_file(template: Template, scraped: ScrapedSite | None = None) -> Path:
    """Write ``{id}.json`` and replace the template's index.json entry."""
    record = template.to_json_dict()
    record["createdAt"] = record.get("createdAt") or utc_now_iso()
    record["scrapedAt"] = utc_now_iso()
    if scraped is not None:
        record["scrapedData"] = scraped.summary()

    path = _template_path(template.id)
    _write_json(path, record)
    _upsert_index(record)
    print(f"  [file-store] Saved template {template.id} to {path}")
    return path


def load_template_file(template_id: str) -> dict | None:
    try:
        path = _template_path(template_id)
    except InvalidTemplateIdError:
        return None
    if not path.exists():
        return None
    try:
        return _read_json(path)
    except (OSError, json.JSONDecodeError) as e:
        print(f"  [file-store] Could not read {path}: {e}")
        return None


def update_template_file(template_id: str, changes: dict) -> dict | None:
    """Merge camelCase ``changes`` into a stored template. None if not on disk."""
    record = load_template_file(template_id)
    if record is None:
        return None
    record.update(changes)
    record["id"] = template_id
    record["updatedAt"] = utc_now_iso()
    _write_json(_template_path(template_id), record)
    _upsert_index(record)
    return record


def delete_template_file(template_id: str) -> bool:
    """Remove the file and its index entry. True if either existed."""
    removed = False
    try:
        path = _template_path(template_id)
    except InvalidTemplateIdError:
        return False
    if path.exists():
        path.unlink()
        removed = True
    entries = load_index()
    kept = [e for e in entries if e.get("id") != template_id]
    if len(kept) != len(entries):
        _save_index(kept)
        removed = True
    delete_page_files(template_id)
    return removed


def delete_all_files() -> int:
    count = 0
    for entry in load_index():
        if entry.get("id") and delete_template_file(entry["id"]):
            count += 1
    _save_index([])
    return count


# ---------------------------------------------------------------------------
# Crawled pages
# ---------------------------------------------------------------------------

def page_slug(path: str) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", path or "").strip("-").lower()
    return slug or "index"


def _pages_dir(template_id: str) -> Path:
    return templates_dir() / "pages" / _safe_name(template_id)


def save_page_to_file(template_id: str, page: dict) -> Path:
    directory = _pages_dir(template_id)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{page_slug(page.get('path', '/'))}.json"
    _write_json(path, {**page, "savedAt": utc_now_iso()})
    return path


def load_page_file(template_id: str, path: str) -> dict | None:
    try:
        file_path = _pages_dir(template_id) / f"{page_slug(path)}.json"
    except InvalidTemplateIdError:
        return None
    if not file_path.exists():
        return None
    return _read_json(file_path)


def list_page_files(template_id: str) -> list[dict]:
    try:
        directory = _pages_dir(template_id)
    except InvalidTemplateIdError:
        return []
    if not directory.exists():
        return []
    pages = [_read_json(p) for p in directory.glob("*.json")]
    return sorted(pages, key=lambda p: p.get("order", 0))


def delete_page_files(template_id: str) -> None:
    try:
        directory = _pages_dir(template_id)
    except InvalidTemplateIdError:
        return
    if directory.exists():
        shutil.rmtree(directory)
