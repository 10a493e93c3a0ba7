"""
Content rewriter: paraphrases the first heading, up to three paragraphs and
the first call-to-action of a page with the LLM.

Rewriting is best-effort per text node. Each prompt is its own unit of
failure; when one call fails the node keeps its original text and the rest
of the page is still rewritten.
"""

import re
from dataclasses import dataclass, field

from webbuilder.extractor import HEADING_TAGS, MIN_PARAGRAPH_LENGTH, parse_html
from webbuilder.llm import generate_text
from webbuilder.models import StageResult


MAX_PARAGRAPHS = 3
MAX_KEYWORDS = 5
HEADLINE_LIMIT = 80
CTA_LIMIT = 30

CTA_SELECTOR = 'button, .btn, a[class*="button"], a[class*="cta"]'


@dataclass
class BusinessContext:
    name: str = "Your Business"
    industry: str = "business"
    location: str = ""

    def describe(self) -> str:
        where = f" in {self.location}" if self.location else ""
        return f"{self.name}, a {self.industry} business{where}"


@dataclass
class RewriteResult:
    html: str
    changes_count: int = 0
    failures: list[StageResult] = field(default_factory=list)


def _headline_prompt(ctx: BusinessContext, section_type: str, keyword_string: str) -> str:
    if keyword_string:
        return (
            f"Write an SEO-optimized headline for a {section_type} section for {ctx.describe()}. "
            f"Target keywords: {keyword_string}. Keep it under {HEADLINE_LIMIT} characters, "
            "engaging, and naturally incorporate the keywords."
        )
    return (
        f"Write an engaging headline for a {section_type} section for {ctx.describe()}. "
        f"Keep it under {HEADLINE_LIMIT} characters."
    )


def _paragraph_prompt(ctx: BusinessContext, original: str, keyword_string: str) -> str:
    if keyword_string:
        return (
            f"Rewrite this paragraph for {ctx.describe()}. Naturally incorporate these SEO "
            f"keywords where appropriate: {keyword_string}. Keep the paragraph professional, "
            f"engaging, and between 50-150 words. Original: {original}"
        )
    return (
        f"Rewrite this paragraph for {ctx.describe()}. "
        f"Keep it professional and engaging. Original: {original}"
    )


def _cta_prompt(ctx: BusinessContext) -> str:
    return (
        f"Create a compelling call-to-action button text for {ctx.describe()}. "
        "Keep it under 5 words, action-oriented, and relevant to their services."
    )


def _text_of(el) -> str:
    return " ".join(el.get_text(" ").split())


async def rewrite_page_content(
    html: str,
    context: BusinessContext,
    keywords: list[str] | None = None,
    section_type: str = "page",
) -> RewriteResult:
    soup = parse_html(html)
    keyword_string = ", ".join((keywords or [])[:MAX_KEYWORDS])
    failures: list[StageResult] = []
    changes = 0

    # Headline
    heading = next((h for h in soup.find_all(HEADING_TAGS) if _text_of(h)), None)
    if heading is not None:
        try:
            text = await generate_text(
                _headline_prompt(context, section_type, keyword_string),
                max_tokens=100,
                temperature=0.7,
            )
            heading.string = text.strip()[:HEADLINE_LIMIT]
            changes += 1
        except Exception as e:
            print(f"  [rewriter] Headline rewrite failed, keeping original: {e}")
            failures.append(StageResult.failure("llm_error", f"heading: {e}"))

    # Paragraphs: only the ones long enough to count as body copy
    paragraphs = [p for p in soup.find_all("p") if len(_text_of(p)) > MIN_PARAGRAPH_LENGTH]
    for i, paragraph in enumerate(paragraphs[:MAX_PARAGRAPHS]):
        try:
            text = await generate_text(
                _paragraph_prompt(context, _text_of(paragraph), keyword_string),
                max_tokens=300,
                temperature=0.8,
            )
            paragraph.string = re.sub(r"\n+", " ", text.strip())
            changes += 1
        except Exception as e:
            print(f"  [rewriter] Paragraph {i} rewrite failed, keeping original: {e}")
            failures.append(StageResult.failure("llm_error", f"paragraph {i}: {e}"))

    # Call to action
    cta = next((b for b in soup.select(CTA_SELECTOR) if _text_of(b)), None)
    if cta is not None:
        try:
            text = await generate_text(_cta_prompt(context), max_tokens=20, temperature=0.8)
            cta.string = text.strip().strip('"')[:CTA_LIMIT]
            changes += 1
        except Exception as e:
            print(f"  [rewriter] CTA rewrite failed, keeping original: {e}")
            failures.append(StageResult.failure("llm_error", f"cta: {e}"))

    print(f"  [rewriter] {changes} text nodes rewritten, {len(failures)} kept original")
    return RewriteResult(html=str(soup), changes_count=changes, failures=failures)
