"""
Structural extractor: turns raw HTML/CSS into a normalized ScrapedSite.

Everything here is a pure function of its inputs. Missing or malformed
markup yields empty lists/dicts; nothing raises on odd pages.
"""

import re
from collections import Counter
from urllib.parse import urljoin, urlparse, urldefrag

from bs4 import BeautifulSoup

from webbuilder.models import (
    DesignTokens,
    ImageRef,
    Link,
    PageMetadata,
    ScrapedSite,
    TextContent,
)


MIN_PARAGRAPH_LENGTH = 20
MAX_LINKS = 100
MAX_PALETTE = 10

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]

_COLOR_RE = re.compile(r"#[0-9a-fA-F]{6}\b|#[0-9a-fA-F]{3}\b|rgba?\([^)]*\)")
_RGB_RE = re.compile(r"rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*(\d*\.?\d+)\s*)?\)")
_CSS_RULE_RE = re.compile(r"([^{}]+)\{([^{}]*)\}")
_TITLE_SPLIT_RE = re.compile(r"\s+[-|\u2013\u2014]\s+|\s*\|\s*")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _clean_text(el) -> str:
    return " ".join(el.get_text(" ").split())


def document_title(soup: BeautifulSoup):
    """The page's <title>, ignoring <title> elements inside inline SVG."""
    for tag in soup.find_all("title"):
        if tag.find_parent("svg") is None:
            return tag
    return None


def _title_text(soup: BeautifulSoup) -> str:
    tag = document_title(soup)
    return _clean_text(tag) if tag else ""


def absolutize(url: str, base_url: str) -> str:
    if not url or url.startswith(("data:", "#", "mailto:", "tel:", "javascript:")):
        return url
    return urljoin(base_url, url)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def extract_text_content(soup: BeautifulSoup) -> TextContent:
    title = _title_text(soup)

    headings = []
    for el in soup.find_all(HEADING_TAGS):
        text = _clean_text(el)
        if text:
            headings.append(text)

    paragraphs = []
    for el in soup.find_all("p"):
        text = _clean_text(el)
        if len(text) > MIN_PARAGRAPH_LENGTH:
            paragraphs.append(text)

    lists = []
    for list_el in soup.find_all(["ul", "ol"]):
        items = [_clean_text(li) for li in list_el.find_all("li")]
        items = [i for i in items if i]
        if items:
            lists.append(items)

    links = []
    for a in soup.find_all("a", href=True):
        text = _clean_text(a)
        if text and a["href"]:
            links.append(Link(text=text, url=a["href"]))
        if len(links) >= MAX_LINKS:
            break

    return TextContent(
        title=title,
        headings=headings,
        paragraphs=paragraphs,
        lists=lists,
        links=links,
    )


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def extract_images(soup: BeautifulSoup, base_url: str = "") -> list[ImageRef]:
    images = []
    seen = set()
    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src") or ""
        if not src:
            continue
        src = absolutize(src, base_url) if base_url else src
        if src in seen:
            continue
        seen.add(src)
        images.append(ImageRef(src=src, alt=img.get("alt") or ""))
    return images


# ---------------------------------------------------------------------------
# Design tokens
# ---------------------------------------------------------------------------

def _normalize_color(raw: str) -> str | None:
    raw = raw.strip().lower()
    if raw.startswith("#"):
        if len(raw) == 4:
            return "#" + "".join(c * 2 for c in raw[1:])
        return raw
    match = _RGB_RE.match(raw)
    if not match:
        return None
    r, g, b, alpha = match.groups()
    if alpha is not None and float(alpha) == 0:
        return None
    return "#" + "".join(f"{min(int(x), 255):02x}" for x in (r, g, b))


def _css_rules(css: str) -> list[tuple[str, dict[str, str]]]:
    """Very small CSS rule reader: (selector, {property: value}) pairs."""
    rules = []
    for selector, body in _CSS_RULE_RE.findall(css or ""):
        declarations = {}
        for decl in body.split(";"):
            if ":" not in decl:
                continue
            prop, value = decl.split(":", 1)
            declarations[prop.strip().lower()] = value.strip().replace("!important", "").strip()
        rules.append((selector.strip().lower(), declarations))
    return rules


def _style_attr(el) -> dict[str, str]:
    style = el.get("style") if el else None
    if not style:
        return {}
    rules = _css_rules(f"x{{{style}}}")
    return rules[0][1] if rules else {}


def _selector_targets(selector: str, tag: str) -> bool:
    parts = [s.strip() for s in selector.split(",")]
    return any(re.fullmatch(rf"(html\s+)?{tag}(\s*|:root)?", p) for p in parts)


def extract_design_tokens(soup: BeautifulSoup, css: str = "") -> DesignTokens:
    inline_styles = " ".join(el.get("style", "") for el in soup.find_all(style=True))
    style_tags = " ".join(s.get_text() for s in soup.find_all("style"))
    counter = Counter()
    for raw in _COLOR_RE.findall(" ".join([inline_styles, style_tags, css or ""])):
        color = _normalize_color(raw)
        if color:
            counter[color] += 1
    colors = [c for c, _ in counter.most_common(MAX_PALETTE)]

    typography: dict[str, str] = {}
    spacing: dict[str, str] = {}
    for selector, decls in _css_rules(" ".join([style_tags, css or ""])):
        if _selector_targets(selector, "body"):
            if "font-family" in decls:
                typography.setdefault("bodyFont", decls["font-family"])
            if "font-size" in decls:
                typography.setdefault("bodySize", decls["font-size"])
        if _selector_targets(selector, "h1"):
            if "font-family" in decls:
                typography.setdefault("headingFont", decls["font-family"])
            if "font-weight" in decls:
                typography.setdefault("headingWeight", decls["font-weight"])
        if "max-width" in decls and ("container" in selector or _selector_targets(selector, "main")):
            spacing.setdefault("containerMaxWidth", decls["max-width"])

    # Inline styles win over nothing, never over stylesheet rules
    body_style = _style_attr(soup.body)
    h1_style = _style_attr(soup.find("h1"))
    if "font-family" in body_style:
        typography.setdefault("bodyFont", body_style["font-family"])
    if "font-family" in h1_style:
        typography.setdefault("headingFont", h1_style["font-family"])

    return DesignTokens(colors=colors, typography=typography, spacing=spacing)


# ---------------------------------------------------------------------------
# Metadata / naming
# ---------------------------------------------------------------------------

def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    return (tag.get("content") or "").strip() if tag else ""


def extract_metadata(soup: BeautifulSoup) -> PageMetadata:
    title = _title_text(soup)
    keywords = [
        k.strip() for k in _meta_content(soup, name="keywords").split(",") if k.strip()
    ]
    og_tags = {}
    for tag in soup.find_all("meta", attrs={"property": re.compile(r"^og:")}):
        if tag.get("content"):
            og_tags[tag["property"]] = tag["content"]
    return PageMetadata(
        title=title,
        description=_meta_content(soup, name="description"),
        keywords=keywords,
        og_tags=og_tags,
    )


def company_name_from_url(url: str) -> str:
    host = urlparse(url).hostname or ""
    host = host.removeprefix("www.")
    name = host.split(".")[0] if host else ""
    return name[:1].upper() + name[1:] if name else "Unknown Company"


def extract_company_name(soup: BeautifulSoup, url: str = "") -> str:
    title = _title_text(soup)
    if title:
        cleaned = _TITLE_SPLIT_RE.split(title)[0].strip()
        if len(cleaned) > 3:
            return cleaned

    h1 = soup.find("h1")
    if h1 and _clean_text(h1):
        return _clean_text(h1)

    site_name = _meta_content(soup, property="og:site_name")
    if site_name:
        return site_name

    return company_name_from_url(url) if url else "Unknown Company"


# ---------------------------------------------------------------------------
# Links / stylesheets
# ---------------------------------------------------------------------------

def stylesheet_urls(soup: BeautifulSoup, base_url: str) -> list[str]:
    urls = []
    for link in soup.find_all("link", rel="stylesheet"):
        href = link.get("href")
        if href:
            urls.append(absolutize(href, base_url))
    return urls


def inline_css(soup: BeautifulSoup) -> list[str]:
    return [s.get_text() for s in soup.find_all("style") if s.get_text().strip()]


def normalize_url(url: str) -> str:
    """Drop the fragment and trailing slash so revisits compare equal."""
    url = urldefrag(url)[0]
    return url.rstrip("/") or url


def extract_links(html: str, base_url: str) -> list[str]:
    """Absolute, de-duplicated link targets in document order."""
    soup = parse_html(html)
    links = []
    seen = set()
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
            continue
        absolute = normalize_url(urljoin(base_url, href))
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def build_scraped_site(url: str, html: str, css: str = "", company_name: str | None = None) -> ScrapedSite:
    soup = parse_html(html)
    return ScrapedSite(
        url=url,
        company_name=company_name or extract_company_name(soup, url),
        html_content=html,
        css_content=css,
        images=extract_images(soup, url),
        text_content=extract_text_content(soup),
        design_tokens=extract_design_tokens(soup, css),
        metadata=extract_metadata(soup),
    )
