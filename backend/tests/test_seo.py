from webbuilder.extractor import parse_html
from webbuilder.seo import augment_seo, seo_texts


def _meta_count(html):
    return len(parse_html(html).find_all("meta"))


def test_second_pass_changes_nothing(page_html):
    once = augment_seo(page_html, "Acme", "construction", 2021)
    twice = augment_seo(once, "Acme", "construction", 2021)
    assert _meta_count(once) == _meta_count(twice)
    assert once == twice


def test_adds_missing_tags_and_sets_title():
    html = "<html><head><title>Old</title></head><body><img src='a.png'></body></html>"
    soup = parse_html(augment_seo(html, "Acme", "law"))
    assert soup.find("meta", attrs={"name": "description"})["content"] == "Acme - Professional law website"
    assert soup.find("meta", attrs={"name": "keywords"})["content"] == "law, Acme"
    assert soup.find("meta", attrs={"property": "og:title"})["content"] == "Acme - law"
    assert soup.title.string == "Acme - law"
    assert soup.find("img")["alt"] == "Acme - law"


def test_existing_description_is_kept():
    html = '<html><head><meta name="description" content="Hand written"></head><body></body></html>'
    soup = parse_html(augment_seo(html, "Acme", "law"))
    descriptions = soup.find_all("meta", attrs={"name": "description"})
    assert len(descriptions) == 1
    assert descriptions[0]["content"] == "Hand written"


def test_head_is_created_when_missing():
    soup = parse_html(augment_seo("<p>No head here at all</p>", "Acme", "law"))
    assert soup.find("title").string == "Acme - law"


def test_award_texts_mention_year():
    texts = seo_texts("Acme", "design", 2019)
    assert texts["title"] == "Acme - Award Winning 2019"
    assert "2019" in texts["keywords"]


SVG_ICON_PAGE = (
    "<html><head><meta charset='utf-8'></head><body>"
    "<svg viewBox='0 0 10 10'><title>Menu icon</title><path d='M0 0h10'/></svg>"
    "<img src='a.png'></body></html>"
)


def test_svg_title_is_not_the_page_title():
    once = augment_seo(SVG_ICON_PAGE, "Acme", "law")
    soup = parse_html(once)
    assert soup.head.find("title").string == "Acme - law"
    assert soup.find("svg").find("title").string == "Menu icon"
    assert augment_seo(once, "Acme", "law") == once
