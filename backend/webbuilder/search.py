"""
Website discovery through the Google Custom Search JSON API.

Two flavours: real business sites for an industry (directories, listicles
and social profiles filtered out), and design-award winners for a design
category. Without GOOGLE_SEARCH_API_KEY / GOOGLE_SEARCH_ENGINE_ID both
return an empty list.
"""

import asyncio
import re
from urllib.parse import urlparse

import httpx

from webbuilder.config import get_settings


GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"
MAX_API_RESULTS = 100
QUERY_DELAY = 0.5

DESIGN_CATEGORIES = [
    "Personal",
    "Business",
    "Corporate",
    "E-commerce",
    "Portfolio",
    "Agency",
    "Creative",
    "Technology",
    "Fashion",
    "Food & Beverage",
    "Entertainment",
    "Education",
    "Healthcare",
    "Real Estate",
    "Travel",
    "Non-profit",
    "Music",
    "Sports",
    "Art & Design",
    "Luxury",
    "Startup",
    "Enterprise",
    "Top 100",
    "Top 1000",
    "Top 10000",
]

# Industries swept by the bulk scrape
INDUSTRIES = [
    "restaurant", "cafe", "bakery", "food-truck", "catering", "bar", "brewery", "winery",
    "law-firm", "accounting", "consulting", "real-estate", "insurance", "financial-advisor",
    "dentist", "doctor", "veterinarian", "therapist", "chiropractor", "spa", "salon", "barber",
    "gym", "yoga-studio", "martial-arts", "personal-trainer", "nutritionist",
    "plumber", "electrician", "hvac", "landscaping", "cleaning", "pest-control", "roofing", "painting",
    "auto-repair", "auto-detailing", "car-dealership", "motorcycle", "towing",
    "photography", "videography", "wedding-planner", "event-planning", "dj", "musician",
    "web-design", "software", "it-services", "cybersecurity", "saas", "startup", "agency",
    "clothing-boutique", "jewelry", "furniture", "home-decor", "electronics", "pet-store",
    "school", "tutoring", "music-lessons", "art-classes", "driving-school", "daycare",
    "church", "nonprofit", "charity", "foundation", "community-center",
    "hotel", "bed-breakfast", "vacation-rental", "tour-operator", "travel-agency",
    "construction", "architect", "interior-design", "engineering", "manufacturing",
    "farm", "nursery", "garden-center", "florist", "organic-market",
    "podcast", "blog", "influencer", "portfolio", "resume", "personal-brand",
]

TOP_CATEGORY_QUERIES = {
    "Top 100": "site of the day winner",
    "Top 1000": "site of the day honorable mention",
    "Top 10000": "featured website",
}

AWARD_SITES = {
    "awwwards.com": "Awwwards",
    "cssdesignawards.com": "CSS Design Awards",
    "thefwa.com": "FWA",
    "siteinspire.com": "SiteInspire",
}

DIRECTORY_BLACKLIST = [
    "yelp.com", "yellowpages.com", "superpages.com", "whitepages.com", "manta.com",
    "bbb.org", "angieslist.com", "homeadvisor.com", "thumbtack.com", "houzz.com",
    "nextdoor.com", "tripadvisor.com", "opentable.com", "facebook.com", "linkedin.com",
    "instagram.com", "twitter.com", "pinterest.com", "tiktok.com", "youtube.com",
    "indeed.com", "glassdoor.com", "wikipedia.org", "google.com/maps",
]

DIRECTORY_URL_PARTS = [
    "/directory/", "/listings/", "/businesses/", "/companies/", "/search?",
    "/results?", "/category/", "/browse/", "/find/",
]

DIRECTORY_TITLE_RE = re.compile(
    r"top\s*\d+|\d+\s*best|best\s*\d+|the\s+best|ranking|ranked|reviews?\b|list\s+of|"
    r"directory|listings|near me|compare|\bvs\b|alternatives|\d+\s*(firms|companies|agencies|businesses)",
    re.IGNORECASE,
)

GALLERY_PAGE_PATTERNS = [
    re.compile(r"/websites/?$", re.I),
    re.compile(r"/websites/[a-z-]+/?$", re.I),
    re.compile(r"/website-gallery", re.I),
    re.compile(r"/(categories|tags|search|blog|market|conference)/", re.I),
    re.compile(r"/profiles?/", re.I),
    re.compile(r"\?(page|feature|industry)=", re.I),
]

PROJECT_PAGE_PATTERNS = [
    re.compile(r"awwwards\.com/sites/[a-z0-9-]+$", re.I),
    re.compile(r"cssdesignawards\.com/sites/[^/]+/\d+", re.I),
    re.compile(r"thefwa\.com/cases/[a-z0-9-]+$", re.I),
    re.compile(r"siteinspire\.com/website/\d+", re.I),
]

_SNIPPET_URL_RE = re.compile(r"https?://[^\s)\"']+", re.I)


def extract_company_name(title: str, url: str) -> str:
    """Company name from a search result title, falling back to the domain."""
    name = re.sub(r"\s+[-|]\s+.*$", "", title or "").strip()
    name = re.sub(r"\s*\|.*$", "", name).strip()
    if len(name) >= 3:
        return name
    host = (urlparse(url).hostname or "").removeprefix("www.")
    if not host:
        return "Unknown Company"
    first = host.split(".")[0]
    return first[:1].upper() + first[1:]


def is_real_business_website(url: str, title: str, snippet: str = "") -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    lowered = url.lower()
    if any(domain in lowered for domain in DIRECTORY_BLACKLIST):
        return False
    if any(part in lowered for part in DIRECTORY_URL_PARTS):
        return False
    if DIRECTORY_TITLE_RE.search(title or ""):
        return False
    if snippet and re.search(r"view all|see all|directory of|listings for", snippet, re.I):
        return False
    return bool(re.fullmatch(r"[a-z0-9.-]+\.[a-z]{2,}", parsed.hostname, re.I))


def is_gallery_page(url: str) -> bool:
    return any(p.search(url) for p in GALLERY_PAGE_PATTERNS)


def is_project_page(url: str) -> bool:
    return any(p.search(url) for p in PROJECT_PAGE_PATTERNS)


def search_configured() -> bool:
    settings = get_settings()
    return bool(settings.google_search_api_key and settings.google_search_engine_id)


async def google_search(query: str, limit: int = 10) -> list[dict]:
    """Raw Custom Search items (``title``, ``link``, ``snippet``), paginated."""
    settings = get_settings()
    items: list[dict] = []
    start = 1
    limit = min(limit, MAX_API_RESULTS)

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        while len(items) < limit:
            resp = await client.get(
                GOOGLE_CSE_URL,
                params={
                    "key": settings.google_search_api_key,
                    "cx": settings.google_search_engine_id,
                    "q": query,
                    "start": start,
                    "num": 10,
                },
            )
            resp.raise_for_status()
            data = resp.json()
            page = data.get("items") or []
            if not page:
                break
            items.extend(page)
            if not data.get("queries", {}).get("nextPage"):
                break
            start += 10
    return items[:limit]


async def search_industry_websites(industry: str, limit: int = 50, location: str = "") -> list[dict]:
    """Real business websites for ``industry``, one per domain."""
    if not search_configured():
        print("  [search] Google Custom Search not configured (GOOGLE_SEARCH_API_KEY / GOOGLE_SEARCH_ENGINE_ID)")
        return []

    where = f" {location}" if location else ""
    queries = [
        f"{industry} firm{where}",
        f"{industry} company{where}",
        f"{industry} services{where}",
        f"{industry}{where} -top -best -list -directory -review -compare",
    ]
    per_query = -(-limit // len(queries)) + 10

    results: list[dict] = []
    seen_domains = set()
    for query in queries:
        try:
            items = await google_search(query, per_query)
        except Exception as e:
            print(f"  [search] Query failed '{query}': {e}")
            continue
        for item in items:
            link = item.get("link", "")
            title = item.get("title", "")
            snippet = item.get("snippet", "")
            domain = (urlparse(link).hostname or "").lower()
            if not domain or domain in seen_domains:
                continue
            if not is_real_business_website(link, title, snippet):
                continue
            seen_domains.add(domain)
            results.append({
                "companyName": extract_company_name(title, link),
                "websiteUrl": link,
                "ranking": len(results) + 1,
                "snippet": snippet,
            })
            if len(results) >= limit:
                break
        if len(results) >= limit:
            break
        await asyncio.sleep(QUERY_DELAY)

    print(f"  [search] {len(results)} business websites for '{industry}'")
    return results


def _award_queries(category: str, country: str | None) -> list[tuple[str, str]]:
    term = TOP_CATEGORY_QUERIES.get(category, category).lower()
    suffix = f" {country}" if country and country != "All" else ""
    return [
        ("awwwards.com", f'"site of the day" {term}{suffix} site:awwwards.com/sites/'),
        ("awwwards.com", f"{term} winner{suffix} site:awwwards.com/sites/"),
        ("cssdesignawards.com", f"{term}{suffix} site:cssdesignawards.com/sites/"),
        ("thefwa.com", f"{term}{suffix} site:thefwa.com/cases/"),
        ("siteinspire.com", f"{term}{suffix} site:siteinspire.com/website/"),
    ]


async def search_design_websites(category: str, limit: int = 100, country: str | None = None) -> list[dict]:
    """
    Design-award winners for ``category``.

    External site URLs found in result snippets are preferred over the
    award-site project pages, and gallery/listing pages are dropped.
    """
    if not search_configured():
        print("  [search] Google Custom Search not configured, no design websites")
        return []

    candidates: list[dict] = []
    for award_site, query in _award_queries(category, country):
        try:
            items = await google_search(query, 10)
        except Exception as e:
            print(f"  [search] Query failed '{query}': {e}")
            continue
        for item in items:
            url = item.get("link", "")
            if not url or is_gallery_page(url):
                continue
            snippet = item.get("snippet", "")
            match = _SNIPPET_URL_RE.search(snippet)
            if match and award_site not in match.group(0):
                url = match.group(0).rstrip(".,;!?")
            candidates.append({
                "url": url,
                "title": item.get("title", ""),
                "description": snippet,
                "category": category,
                "awardSource": AWARD_SITES[award_site],
            })
        await asyncio.sleep(QUERY_DELAY)

    # External sites first, then award project pages, then the rest
    def _priority(candidate: dict) -> int:
        url = candidate["url"]
        if not any(site in url for site in AWARD_SITES):
            return 0
        return 1 if is_project_page(url) else 2

    results: list[dict] = []
    seen = set()
    for candidate in sorted(candidates, key=_priority):
        if candidate["url"] in seen:
            continue
        seen.add(candidate["url"])
        results.append(candidate)
        if len(results) >= limit:
            break

    print(f"  [search] {len(results)} design websites for '{category}'")
    return results
