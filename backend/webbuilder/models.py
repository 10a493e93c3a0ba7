"""
Records passed between the scrape -> rewrite -> reimage -> SEO -> verify ->
persist stages, plus the transient status objects the drivers publish.

Scraped and template records are frozen: a stage never edits the record it
was given, it returns a new one built with ``model_copy``. JSON produced for
files and HTTP responses uses camelCase; database rows use snake_case.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")

Stage = Literal["scraping", "rewriting", "reimaging", "seo", "verifying", "complete", "error"]
CrawlState = Literal["idle", "running", "completed", "error"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class FrozenModel(CamelModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Scraped material
# ---------------------------------------------------------------------------

class ImageRef(FrozenModel):
    src: str
    alt: str = ""


class Link(FrozenModel):
    text: str
    url: str


class TextContent(FrozenModel):
    title: str = ""
    headings: list[str] = Field(default_factory=list)
    paragraphs: list[str] = Field(default_factory=list)
    lists: list[list[str]] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)


class DesignTokens(FrozenModel):
    colors: list[str] = Field(default_factory=list)
    typography: dict[str, str] = Field(default_factory=dict)
    spacing: dict[str, str] = Field(default_factory=dict)


class PageMetadata(FrozenModel):
    title: str = ""
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    og_tags: dict[str, str] = Field(default_factory=dict)


class ScrapedSite(FrozenModel):
    """One fetched page. ``error`` is set when fetching or parsing failed."""

    url: str
    company_name: str = "Unknown"
    html_content: str = ""
    css_content: str = ""
    images: list[ImageRef] = Field(default_factory=list)
    text_content: TextContent = Field(default_factory=TextContent)
    design_tokens: DesignTokens = Field(default_factory=DesignTokens)
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, url: str, error: str, company_name: str | None = None) -> "ScrapedSite":
        return cls(url=url, company_name=company_name or "Unknown", error=error)

    def summary(self) -> dict:
        """Compact description stored next to file-fallback templates."""
        return {
            "url": self.url,
            "companyName": self.company_name,
            "metadata": self.metadata.to_json_dict(),
            "designTokens": self.design_tokens.to_json_dict(),
            "textContent": self.text_content.to_json_dict(),
            "imagesCount": len(self.images),
            "htmlLength": len(self.html_content),
            "cssLength": len(self.css_content),
        }


# ---------------------------------------------------------------------------
# Templates and sources
# ---------------------------------------------------------------------------

class Template(FrozenModel):
    id: str
    name: str
    brand: str = ""
    category: str = "corporate"
    industry: str = ""
    thumbnail: str = ""
    colors: dict[str, str] = Field(default_factory=dict)
    typography: dict[str, str] = Field(default_factory=dict)
    layout: dict[str, Any] = Field(default_factory=dict)
    css: str = ""
    dark_mode: bool = False
    tags: list[str] = Field(default_factory=list)
    source_id: Optional[str] = None
    location_country: Optional[str] = None
    location_state: Optional[str] = None
    location_city: Optional[str] = None
    ranking_position: Optional[str] = None
    is_design_quality: bool = False
    design_category: Optional[str] = None
    design_score: Optional[str] = None
    design_award_source: Optional[str] = None
    source_url: str = ""
    content_data: dict[str, Any] = Field(default_factory=dict)
    year: Optional[int] = None
    award_winning: bool = False
    is_approved: bool = False
    is_active: bool = False
    created_at: Optional[str] = None

    @property
    def html(self) -> str:
        return self.content_data.get("html", "")

    @property
    def is_visible(self) -> bool:
        return self.is_approved and self.is_active

    def with_html(self, html: str, **metadata_flags) -> "Template":
        """Return a copy carrying new HTML and extra content metadata flags."""
        metadata = {**self.content_data.get("metadata", {}), **metadata_flags}
        content_data = {**self.content_data, "html": html, "metadata": metadata}
        return self.model_copy(update={"content_data": content_data})


class Source(CamelModel):
    company_name: str
    website_url: str
    industry: str = ""
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    current_ranking: Optional[int] = None
    is_active: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Progress / status
# ---------------------------------------------------------------------------

class WebsiteInput(CamelModel):
    """One site handed to the batch driver."""

    url: str
    name: str = ""
    year: int = 0
    industry: str = ""


class ProcessingStatus(CamelModel):
    url: str
    name: str
    year: int = 0
    industry: str = ""
    stage: Stage
    progress: int = 0
    message: str = ""
    error: Optional[str] = None


class CrawlStatus(CamelModel):
    template_id: str
    template_name: str = "Unknown"
    source_url: str = ""
    status: CrawlState = "idle"
    pages_scraped: int = 0
    total_pages: int = 0
    current_url: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    pause_key: Optional[str] = None


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one independently fallible unit of work.

    ``kind`` names the failure class (``llm_error``, ``image_error``, ...)
    and ``detail`` the message; both are empty on success.
    """

    ok: bool
    value: Optional[T] = None
    kind: str = ""
    detail: str = ""

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: str, detail: str) -> "StageResult[T]":
        return cls(ok=False, kind=kind, detail=detail)


@dataclass
class SiteResult:
    url: str
    success: bool
    template_id: Optional[str] = None
    storage: Optional[str] = None
    verified: Optional[bool] = None
    error: Optional[str] = None
    data: Optional[dict] = None
    template: Optional[dict] = None

    def to_dict(self) -> dict:
        out = {"url": self.url, "success": self.success}
        if self.template_id:
            out["templateId"] = self.template_id
        if self.storage:
            out["storage"] = self.storage
        if self.verified is not None:
            out["verified"] = self.verified
        if self.data is not None:
            out["data"] = self.data
        if self.template is not None:
            out["template"] = self.template
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class BatchSummary:
    results: list[SiteResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def fail_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "results": [r.to_dict() for r in self.results],
        }
