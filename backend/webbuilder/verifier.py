from dataclasses import dataclass

from webbuilder.extractor import document_title, parse_html


MIN_CONTENT_LENGTH = 1000


@dataclass(frozen=True)
class VerificationResult:
    has_content: bool
    has_title: bool
    has_meta_description: bool
    has_images: bool

    @property
    def verified(self) -> bool:
        return self.has_content and self.has_title and self.has_meta_description and self.has_images

    def checks(self) -> dict:
        return {
            "hasContent": self.has_content,
            "hasTitle": self.has_title,
            "hasMetaDescription": self.has_meta_description,
            "hasImages": self.has_images,
        }


def verify_html(html: str) -> VerificationResult:
    """Four pass/fail checks on the final page. A pure function of ``html``."""
    soup = parse_html(html)
    return VerificationResult(
        has_content=len(html or "") > MIN_CONTENT_LENGTH,
        has_title=document_title(soup) is not None,
        has_meta_description=soup.find("meta", attrs={"name": "description"}) is not None,
        has_images=soup.find("img") is not None,
    )
