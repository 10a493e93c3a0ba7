"""
Built-in reference templates. Read-only: they can be listed, fetched and
duplicated, never edited or deleted.
"""

from webbuilder.models import Template


def _library_template(id, name, brand, category, industry, colors, heading_font, body_font, sections, tags, dark_mode=False):
    return Template(
        id=id,
        name=name,
        brand=brand,
        category=category,
        industry=industry,
        thumbnail=f"/templates/{id}.jpg",
        colors=colors,
        typography={"headingFont": heading_font, "bodyFont": body_font, "headingWeight": "700"},
        layout={"heroStyle": "centered", "maxWidth": "1200px", "borderRadius": "8px", "sections": sections},
        dark_mode=dark_mode,
        tags=tags,
        is_approved=True,
        is_active=True,
    )


LIBRARY_TEMPLATES = [
    _library_template(
        "library-modern-minimal",
        "Modern Minimal",
        "Modern Minimal",
        "corporate",
        "Technology",
        {"primary": "#111827", "secondary": "#6b7280", "accent": "#2563eb", "background": "#FFFFFF",
         "surface": "#F9FAFB", "text": "#111827", "textMuted": "#6b7280"},
        "Inter, sans-serif",
        "Inter, sans-serif",
        ["hero", "features", "testimonials", "cta"],
        ["minimal", "saas", "technology"],
    ),
    _library_template(
        "library-bold-agency",
        "Bold Agency",
        "Bold Agency",
        "creative",
        "Agency",
        {"primary": "#f43f5e", "secondary": "#0f172a", "accent": "#facc15", "background": "#0f172a",
         "surface": "#1e293b", "text": "#f8fafc", "textMuted": "#94a3b8"},
        "Space Grotesk, sans-serif",
        "DM Sans, sans-serif",
        ["hero", "work", "services", "team", "contact"],
        ["agency", "portfolio", "dark"],
        dark_mode=True,
    ),
    _library_template(
        "library-classic-corporate",
        "Classic Corporate",
        "Classic Corporate",
        "corporate",
        "Professional Services",
        {"primary": "#1e3a8a", "secondary": "#475569", "accent": "#0ea5e9", "background": "#FFFFFF",
         "surface": "#F1F5F9", "text": "#0f172a", "textMuted": "#475569"},
        "Merriweather, serif",
        "Source Sans 3, sans-serif",
        ["hero", "about", "services", "clients", "contact"],
        ["corporate", "law", "accounting"],
    ),
    _library_template(
        "library-warm-restaurant",
        "Warm Restaurant",
        "Warm Restaurant",
        "hospitality",
        "Food & Beverage",
        {"primary": "#b45309", "secondary": "#78350f", "accent": "#65a30d", "background": "#FFFBEB",
         "surface": "#FEF3C7", "text": "#292524", "textMuted": "#78716c"},
        "Playfair Display, serif",
        "Lato, sans-serif",
        ["hero", "menu", "gallery", "reservations"],
        ["restaurant", "cafe", "food"],
    ),
]

_BY_ID = {t.id: t for t in LIBRARY_TEMPLATES}


def get_library_template(template_id: str) -> Template | None:
    return _BY_ID.get(template_id)


def list_library_templates() -> list[Template]:
    return list(LIBRARY_TEMPLATES)
