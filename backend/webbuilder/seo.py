"""
SEO augmenter.

Meta description, keywords and the Open Graph title/description are only
added when missing. The <title> is always set, overwriting whatever was
there. Running the pass twice gives the same document.
"""

from webbuilder.extractor import document_title, parse_html


def seo_texts(name: str, industry: str, year: int | None = None) -> dict[str, str]:
    if year:
        description = f"{name} - Award-winning {industry} website from {year}"
        keywords = f"{industry}, {name}, award-winning, {year}"
        title = f"{name} - Award Winning {year}"
    else:
        description = f"{name} - Professional {industry} website"
        keywords = f"{industry}, {name}"
        title = f"{name} - {industry}"
    return {
        "description": description,
        "keywords": keywords,
        "title": title,
        "alt": f"{name} - {industry}",
    }


def _ensure_head(soup):
    if soup.head is not None:
        return soup.head
    head = soup.new_tag("head")
    if soup.html is not None:
        soup.html.insert(0, head)
    else:
        soup.insert(0, head)
    return head


def augment_seo(html: str, name: str, industry: str, year: int | None = None) -> str:
    soup = parse_html(html)
    head = _ensure_head(soup)
    texts = seo_texts(name, industry, year)

    if soup.find("meta", attrs={"name": "description"}) is None:
        head.append(soup.new_tag("meta", attrs={"name": "description", "content": texts["description"]}))

    if soup.find("meta", attrs={"name": "keywords"}) is None:
        head.append(soup.new_tag("meta", attrs={"name": "keywords", "content": texts["keywords"]}))

    title = document_title(soup)
    if title is None:
        title = soup.new_tag("title")
        head.append(title)
    title.string = texts["title"]

    if soup.find("meta", attrs={"property": "og:title"}) is None:
        head.append(soup.new_tag("meta", attrs={"property": "og:title", "content": texts["title"]}))
    if soup.find("meta", attrs={"property": "og:description"}) is None:
        head.append(soup.new_tag("meta", attrs={"property": "og:description", "content": texts["description"]}))

    for img in soup.find_all("img"):
        if not img.get("alt"):
            img["alt"] = texts["alt"]

    print(f"  [seo] Tags checked for {name}")
    return str(soup)
