"""
Image regenerator: swaps every hosted <img> on a page for a DALL-E image.

One failed image never stops the loop; the original ``src`` stays in place.
Progress is reported after every image, so it counts attempts rather than
successes.
"""

import asyncio
from dataclasses import dataclass, field

from openai import AsyncOpenAI

from webbuilder.config import get_settings
from webbuilder.extractor import parse_html
from webbuilder.models import StageResult


IMAGE_TIMEOUT = 120

_client = None


def _get_client():
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=get_settings().openai_api_key)
    return _client


@dataclass
class ImageRegenerationResult:
    html: str
    regenerated: int = 0
    attempted: int = 0
    total: int = 0
    failures: list[StageResult] = field(default_factory=list)


def build_image_prompt(alt: str, business_name: str, industry: str) -> str:
    return f"{alt or business_name} {industry} professional website image"


async def generate_ai_image(prompt: str, size: str = "1024x1024") -> str | None:
    """Return a hosted image URL, or None when image generation is not configured."""
    if not get_settings().openai_api_key:
        return None
    client = _get_client()
    response = await asyncio.wait_for(
        client.images.generate(
            model=get_settings().image_model,
            prompt=prompt,
            size=size,
            quality="standard",
            n=1,
        ),
        timeout=IMAGE_TIMEOUT,
    )
    if not response.data or not response.data[0].url:
        raise ValueError("No image URL returned from DALL-E")
    return response.data[0].url


async def regenerate_images(
    html: str,
    business_name: str,
    industry: str,
    on_progress=None,
) -> ImageRegenerationResult:
    """
    Regenerate every non data-URI image in ``html``.

    ``on_progress`` is an optional ``async (attempted, total)`` callback
    fired once per image, whether or not that image succeeded.
    """
    soup = parse_html(html)
    images = soup.find_all("img")
    total = len(images)
    regenerated = 0
    attempted = 0
    failures: list[StageResult] = []

    for i, img in enumerate(images):
        src = img.get("src") or ""
        if src and not src.startswith("data:"):
            prompt = build_image_prompt(img.get("alt") or "", business_name, industry)
            try:
                new_url = await generate_ai_image(prompt, size="1024x1024")
                if new_url:
                    img["src"] = new_url
                    regenerated += 1
                else:
                    failures.append(StageResult.failure("image_unavailable", f"image {i + 1}: no URL"))
            except Exception as e:
                print(f"  [reimage] Failed to regenerate image {i + 1}: {e}")
                failures.append(StageResult.failure("image_error", f"image {i + 1}: {e}"))

        attempted += 1
        if on_progress:
            await on_progress(attempted, total)

    print(f"  [reimage] Regenerated {regenerated}/{total} images")
    return ImageRegenerationResult(
        html=str(soup),
        regenerated=regenerated,
        attempted=attempted,
        total=total,
        failures=failures,
    )
