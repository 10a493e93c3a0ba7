from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class Settings(BaseSettings):
    supabase_url: str = ""
    supabase_key: str = ""
    anthropic_api_key: str = ""
    gemini_api_key: str = ""
    openai_api_key: str = ""
    google_search_api_key: str = ""
    google_search_engine_id: str = ""

    # AI defaults
    default_model: str = "claude-sonnet-4-5-20250929"
    gemini_model: str = "gemini-2.5-flash"
    image_model: str = "dall-e-3"

    # Fetching
    scrape_renderer: str = "browser"  # "browser" (playwright) or "http" (httpx)
    page_load_timeout: int = 30000  # milliseconds
    http_timeout: float = 30.0  # seconds
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )
    respect_robots_txt: bool = True
    scrape_max_retries: int = 3
    scrape_retry_delay: float = 2.0  # seconds, fixed between attempts

    # Batch / crawl drivers
    batch_delay: float = 2.0  # seconds between sites
    pause_batch_size: int = 10
    pause_timeout: float = 300.0  # seconds before a paused batch auto-resumes
    crawl_page_delay: float = 0.5
    crawl_page_timeout: float = 15.0

    # File fallback when the database is unreachable
    templates_dir: str = "scraped_templates"

    class Config:
        # Look for .env in the repo root (two levels up from backend/webbuilder/)
        _env_path = os.path.join(os.path.dirname(__file__), "..", "..", ".env")
        env_file = _env_path if os.path.exists(_env_path) else None
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()
