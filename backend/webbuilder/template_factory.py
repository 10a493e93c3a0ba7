"""
Builds a Template record from a ScrapedSite.

Relative asset URLs are made absolute against the scraped page so the
stored HTML renders outside its origin, and Subresource Integrity hashes
are dropped since the rewritten page no longer matches them.
"""

import base64
import re
import time
from urllib.parse import urljoin

from webbuilder.extractor import parse_html
from webbuilder.models import ScrapedSite, Template


DEFAULT_COLORS = {
    "primary": "#000000",
    "secondary": "#666666",
    "background": "#FFFFFF",
    "surface": "#F5F5F5",
    "text": "#000000",
    "textMuted": "#666666",
}
DEFAULT_FONT = "system-ui, sans-serif"
DEFAULT_SECTIONS = ["hero", "features", "about"]
MAX_ID_LENGTH = 200

_CSS_URL_RE = re.compile(r"""url\(['"]?([^'")]+)['"]?\)""")
_SKIP_PREFIXES = ("http", "//", "data:", "#", "mailto:", "tel:", "javascript:")


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (text or "").lower())


def generate_template_id(company: str, industry: str, url: str) -> str:
    company_slug = slugify(company)[:50]
    industry_slug = slugify(industry)[:30]
    url_hash = re.sub(r"[^a-z0-9]", "", base64.b64encode(url.encode()).decode()[:8])
    timestamp = int(time.time() * 1000)
    return f"{company_slug}-{industry_slug}-{url_hash}-{timestamp}"[:MAX_ID_LENGTH]


def _absolute(url: str, base_url: str) -> str:
    if not url or url.startswith(_SKIP_PREFIXES):
        return url
    return urljoin(base_url, url)


def _absolute_srcset(srcset: str, base_url: str) -> str:
    items = []
    for item in srcset.split(","):
        parts = item.strip().split()
        if not parts:
            continue
        parts[0] = _absolute(parts[0], base_url)
        items.append(" ".join(parts))
    return ", ".join(items)


def absolutize_html(html: str, base_url: str) -> str:
    soup = parse_html(html)
    for tag, attr in (("link", "href"), ("script", "src"), ("img", "src"), ("a", "href")):
        for el in soup.find_all(tag, attrs={attr: True}):
            el[attr] = _absolute(el[attr], base_url)
    for img in soup.find_all("img", srcset=True):
        img["srcset"] = _absolute_srcset(img["srcset"], base_url)
    for el in soup.find_all(["link", "script"], integrity=True):
        del el["integrity"]
    return str(soup)


def absolutize_css(css: str, base_url: str) -> str:
    def _replace(match):
        url = match.group(1)
        if url.startswith(("http", "//", "data:")):
            return match.group(0)
        return f"url('{urljoin(base_url, url)}')"

    return _CSS_URL_RE.sub(_replace, css or "")


def _luminance(hex_color: str) -> float:
    value = hex_color.lstrip("#")
    if len(value) != 6:
        return 0.5
    r, g, b = (int(value[i:i + 2], 16) / 255 for i in (0, 2, 4))
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def palette_to_colors(palette: list[str]) -> dict[str, str]:
    """Assign roles to a frequency-ranked palette, falling back to defaults."""
    colors = dict(DEFAULT_COLORS)
    light = [c for c in palette if _luminance(c) > 0.9]
    dark = [c for c in palette if _luminance(c) < 0.2]
    accents = [c for c in palette if c not in light and c not in dark]

    if accents:
        colors["primary"] = accents[0]
    elif palette:
        colors["primary"] = palette[0]
    if len(accents) > 1:
        colors["secondary"] = accents[1]
    colors["accent"] = accents[2] if len(accents) > 2 else colors["primary"]
    if light:
        colors["background"] = light[0]
        if len(light) > 1:
            colors["surface"] = light[1]
    if dark:
        colors["text"] = dark[0]
    return colors


def create_template_from_scrape(
    scraped: ScrapedSite,
    source_id: str | None,
    industry: str,
    country: str | None = None,
    state: str | None = None,
    city: str | None = None,
    ranking: str | None = None,
    design_category: str | None = None,
    is_design_quality: bool = False,
    design_score: float | None = None,
    design_award_source: str | None = None,
) -> Template:
    tokens = scraped.design_tokens
    typography = {
        "headingFont": tokens.typography.get("headingFont") or DEFAULT_FONT,
        "bodyFont": tokens.typography.get("bodyFont") or DEFAULT_FONT,
        "headingWeight": tokens.typography.get("headingWeight") or "700",
    }

    soup = parse_html(scraped.html_content)
    sections = [" ".join(h.get_text(" ").split()) for h in soup.find_all(["h1", "h2"])]
    sections = [s for s in sections if s][:10]
    layout = {
        "heroStyle": "centered",
        "maxWidth": tokens.spacing.get("containerMaxWidth") or "1200px",
        "borderRadius": "8px",
        "sections": sections or list(DEFAULT_SECTIONS),
    }

    html = scraped.html_content
    css = scraped.css_content
    if scraped.url:
        try:
            html = absolutize_html(html, scraped.url)
            css = absolutize_css(css, scraped.url)
        except Exception as e:
            print(f"  [template-factory] URL conversion failed: {e}")

    template_id = generate_template_id(scraped.company_name, industry, scraped.url)
    tags = [t for t in (industry, country, state, city) if t]

    return Template(
        id=template_id,
        name=f"{scraped.company_name} Template",
        brand=scraped.company_name,
        category="corporate",
        industry=industry,
        thumbnail=scraped.images[0].src if scraped.images else "",
        colors=palette_to_colors(tokens.colors),
        typography=typography,
        layout=layout,
        css=css,
        dark_mode=False,
        tags=tags,
        source_id=source_id,
        location_country=country,
        location_state=state,
        location_city=city,
        ranking_position=ranking,
        is_design_quality=is_design_quality,
        design_category=design_category,
        design_score=str(design_score) if design_score is not None else None,
        design_award_source=design_award_source,
        source_url=scraped.url,
        content_data={
            "html": html,
            "css": css,
            "text": scraped.text_content.to_json_dict(),
            "images": [img.to_json_dict() for img in scraped.images],
            "metadata": {
                **scraped.metadata.to_json_dict(),
                "url": scraped.url,
                "sourceUrl": scraped.url,
            },
        },
        is_approved=False,
        is_active=False,
    )
