from webbuilder import image_generator
from webbuilder.extractor import parse_html
from webbuilder.image_generator import build_image_prompt, generate_ai_image, regenerate_images
from webbuilder.seo import augment_seo


HTML = """
<img src="https://cdn.example.com/one.jpg" alt="Team photo">
<img src="https://cdn.example.com/two.jpg">
<img src="data:image/png;base64,AAAA">
<img src="https://cdn.example.com/three.jpg" alt="">
"""


async def test_failed_image_keeps_original_and_progress_counts_attempts(monkeypatch):
    calls = []

    async def fake_generate(prompt, size="1024x1024"):
        calls.append(prompt)
        if len(calls) == 2:
            raise RuntimeError("content policy")
        return f"https://images.example.com/{len(calls)}.png"

    monkeypatch.setattr(image_generator, "generate_ai_image", fake_generate)
    progress = []

    async def on_progress(attempted, total):
        progress.append((attempted, total))

    result = await regenerate_images(HTML, "Acme", "bakery", on_progress=on_progress)
    srcs = [img["src"] for img in parse_html(result.html).find_all("img")]

    assert srcs == [
        "https://images.example.com/1.png",
        "https://cdn.example.com/two.jpg",
        "data:image/png;base64,AAAA",
        "https://images.example.com/3.png",
    ]
    assert progress == [(1, 4), (2, 4), (3, 4), (4, 4)]
    assert result.regenerated == 2
    assert result.attempted == 4
    assert [f.kind for f in result.failures] == ["image_error"]
    # Regeneration only swaps src; alt back-fill belongs to the SEO pass
    assert parse_html(result.html).find_all("img")[3]["alt"] == ""


async def test_without_openai_key_nothing_changes():
    assert await generate_ai_image("anything") is None
    result = await regenerate_images(HTML, "Acme", "bakery")
    assert result.regenerated == 0
    assert {f.kind for f in result.failures} == {"image_unavailable"}


def test_prompt_prefers_alt_text():
    assert build_image_prompt("Team photo", "Acme", "bakery") == "Team photo bakery professional website image"
    assert build_image_prompt("", "Acme", "bakery") == "Acme bakery professional website image"


async def test_regenerated_images_get_the_seo_alt_default(monkeypatch):
    async def fake_generate(prompt, size="1024x1024"):
        return "https://images.example.com/new.png"

    monkeypatch.setattr(image_generator, "generate_ai_image", fake_generate)
    result = await regenerate_images("<img src='https://x.example.com/a.jpg'>", "Acme", "law")
    img = parse_html(augment_seo(result.html, "Acme", "law")).find("img")

    assert img["src"] == "https://images.example.com/new.png"
    assert img["alt"] == "Acme - law"
