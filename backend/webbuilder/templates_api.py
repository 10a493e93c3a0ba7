"""
Template admin routes: listing, CRUD and the approval lifecycle.

Templates come from three places. Database rows are the normal case, JSON
files hold templates saved while the database was down, and the built-in
library is read-only. Reads look in that order.
"""

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic.alias_generators import to_camel

from webbuilder import database, file_store
from webbuilder.models import CamelModel, Template
from webbuilder.template_library import get_library_template, list_library_templates


router = APIRouter(prefix="/api/admin/templates", tags=["Templates"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class TemplateCreateRequest(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    industry: str = ""
    thumbnail: str = ""
    colors: dict[str, str] = {}
    typography: dict[str, str] = {}
    layout: dict[str, Any] = {}
    css: str = ""
    dark_mode: bool = False
    tags: list[str] = []
    content_data: dict[str, Any] = {}
    is_approved: bool = False
    is_active: bool = False
    is_design_quality: bool = False
    design_category: Optional[str] = None


class TemplateUpdateRequest(CamelModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    industry: Optional[str] = None
    thumbnail: Optional[str] = None
    colors: Optional[dict[str, str]] = None
    typography: Optional[dict[str, str]] = None
    layout: Optional[dict[str, Any]] = None
    css: Optional[str] = None
    dark_mode: Optional[bool] = None
    tags: Optional[list[str]] = None
    content_data: Optional[dict[str, Any]] = None
    is_approved: Optional[bool] = None
    is_active: Optional[bool] = None
    is_design_quality: Optional[bool] = None
    design_category: Optional[str] = None


class DuplicateRequest(CamelModel):
    new_id: Optional[str] = None
    new_name: Optional[str] = None


class MoveToDesignRequest(CamelModel):
    is_design_quality: bool = True
    design_category: Optional[str] = None


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------

async def _db_row(template_id: str) -> dict | None:
    """Database row for ``template_id``, or None if absent or unreachable."""
    try:
        return await database.get_template(template_id)
    except Exception as e:
        print(f"  [templates] Database lookup for {template_id} failed: {e}")
        return None


def _camel(changes: dict) -> dict:
    return {to_camel(k): v for k, v in changes.items()}


async def find_template(template_id: str) -> tuple[dict | None, str | None]:
    """Return ``(template_json, source)`` checking database, files, then library."""
    row = await _db_row(template_id)
    if row:
        return database.row_to_template(row).to_json_dict(), "database"
    record = file_store.load_template_file(template_id)
    if record:
        return record, "file"
    library = get_library_template(template_id)
    if library:
        return library.to_json_dict(), "library"
    return None, None


async def _update_stored(template_id: str, changes: dict) -> tuple[dict | None, str | None]:
    """Apply snake_case ``changes`` to the database row or, failing that, the file."""
    row = await _db_row(template_id)
    if row:
        updated = await database.update_template(template_id, changes)
        return database.row_to_template(updated or {**row, **changes}).to_json_dict(), "database"
    record = file_store.update_template_file(template_id, _camel(changes))
    if record:
        return record, "file"
    return None, None


async def _store_new(template: Template) -> str:
    try:
        await database.insert_template(database.template_to_row(template))
        return "database"
    except Exception as e:
        print(f"  [templates] Database insert for {template.id} failed ({e}), saving to file")
        file_store.save_template_to_file(template)
        return "file"


def _page_json(page: dict) -> dict:
    return {
        "id": page.get("id") or f"{page.get('template_id')}:{page.get('path')}",
        "url": page.get("url"),
        "path": page.get("path"),
        "htmlContent": page.get("html", ""),
        "cssContent": page.get("css", ""),
        "title": page.get("title", ""),
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("")
async def list_all_templates():
    """Active database templates, then file-only templates, then the library."""
    templates = []
    seen = set()

    try:
        for row in await database.list_templates(active_only=True):
            template = database.row_to_template(row).to_json_dict()
            templates.append({**template, "source": "database"})
            seen.add(template["id"])
    except Exception as e:
        print(f"  [templates] Database unavailable for listing: {e}")

    for entry in file_store.load_index():
        if entry.get("id") in seen:
            continue
        templates.append({
            **entry,
            "category": entry.get("industry") or "general",
            "isActive": True,
            "source": "file",
        })
        seen.add(entry.get("id"))

    for template in list_library_templates():
        if template.id not in seen:
            templates.append({**template.to_json_dict(), "source": "library"})

    return {"success": True, "templates": templates, "count": len(templates)}


@router.delete("")
async def delete_all_templates():
    try:
        deleted = 0
        try:
            deleted = await database.delete_all_templates()
        except Exception as e:
            print(f"  [templates] Could not clear database templates: {e}")
        deleted += file_store.delete_all_files()
        return {
            "success": True,
            "message": f"Deleted {deleted} templates",
            "deletedCount": deleted,
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{template_id}/page/{page_path:path}")
async def get_template_page(template_id: str, page_path: str):
    path = "/" + page_path.lstrip("/")
    page = None
    try:
        page = await database.get_template_page(template_id, path)
    except Exception as e:
        print(f"  [templates] Page lookup in database failed: {e}")
    if page is None:
        page = file_store.load_page_file(template_id, path)
    if page is None:
        raise HTTPException(status_code=404, detail="Page not found")
    return {"success": True, "page": _page_json(page)}


@router.get("/{template_id}")
async def get_template(template_id: str):
    template, source = await find_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return {"success": True, "template": template, "source": source}


@router.post("")
async def create_template(request: TemplateCreateRequest):
    if not (request.id and request.name and request.brand and request.category):
        raise HTTPException(status_code=400, detail="Missing required fields: id, name, brand, category")

    existing, _ = await find_template(request.id)
    if existing is not None:
        raise HTTPException(status_code=409, detail="Template with this ID already exists")

    try:
        template = Template.model_validate(request.model_dump())
        storage = await _store_new(template)
        return {
            "success": True,
            "template": template.to_json_dict(),
            "storage": storage,
            "message": "Template created successfully",
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{template_id}")
async def update_template(template_id: str, request: TemplateUpdateRequest):
    changes = request.model_dump(exclude_unset=True)
    if request.is_active is None and request.is_approved is True:
        changes["is_active"] = True

    try:
        template, source = await _update_stored(template_id, changes)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if template is None:
        raise HTTPException(
            status_code=404,
            detail="Template not found in database. Library templates cannot be updated. Create a new template instead.",
        )
    return {"success": True, "template": template, "source": source, "message": "Template updated successfully"}


@router.delete("/{template_id}")
async def delete_template(template_id: str, hard_delete: bool = Query(False, alias="hardDelete")):
    try:
        in_database = False
        row = await _db_row(template_id)
        if row:
            if hard_delete:
                await database.delete_template(template_id)
            else:
                await database.update_template(template_id, {"is_active": False})
            in_database = True
        in_files = file_store.delete_template_file(template_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    if not in_database and not in_files:
        if get_library_template(template_id):
            raise HTTPException(status_code=403, detail="Library templates cannot be deleted.")
        raise HTTPException(status_code=404, detail=f"Template {template_id} not found in database or file system.")

    if in_database and hard_delete:
        message = "Template permanently deleted from database and file system"
    elif in_database:
        message = "Template deleted from database (deactivated) and file system"
    else:
        message = "Template deleted from file system"
    return {"success": True, "message": message}


async def _set_approval(template_id: str, approved: bool):
    try:
        template, source = await _update_stored(template_id, {"is_approved": approved, "is_active": approved})
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    word = "approved" if approved else "disapproved"
    print(f"  [templates] {template_id} {word} ({source})")
    return {"success": True, "template": template, "message": f"Template {word} successfully"}


@router.post("/{template_id}/approve")
async def approve_template(template_id: str):
    return await _set_approval(template_id, True)


@router.post("/{template_id}/disapprove")
async def disapprove_template(template_id: str):
    return await _set_approval(template_id, False)


@router.post("/{template_id}/duplicate")
async def duplicate_template(template_id: str, request: DuplicateRequest):
    if not request.new_id or not request.new_name:
        raise HTTPException(status_code=400, detail="newId and newName are required")

    original, _ = await find_template(template_id)
    if original is None:
        raise HTTPException(status_code=404, detail="Template not found")
    taken, _ = await find_template(request.new_id)
    if taken is not None:
        raise HTTPException(status_code=409, detail="Template with this ID already exists")

    try:
        copy = Template.model_validate({
            **original,
            "id": request.new_id,
            "name": request.new_name,
            "isApproved": False,
            "isActive": False,
            "createdAt": None,
        })
        storage = await _store_new(copy)
        return {
            "success": True,
            "template": copy.to_json_dict(),
            "storage": storage,
            "message": "Template duplicated successfully",
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{template_id}/move-to-design")
async def move_to_design(template_id: str, request: MoveToDesignRequest):
    current, source = await find_template(template_id)
    if current is None or source == "library":
        raise HTTPException(status_code=404, detail="Template not found")

    if request.is_design_quality:
        category = request.design_category or current.get("industry") or "General"
        changes = {"is_design_quality": True, "design_category": category}
    else:
        changes = {"is_design_quality": False, "design_category": None}

    try:
        template, _ = await _update_stored(template_id, changes)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    message = "Template moved to Design Quality" if request.is_design_quality else "Template moved to Top Search"
    return {"success": True, "template": template, "message": message}
