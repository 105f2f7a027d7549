"""
Loads and handles config from config.yml
Machine-specific browser settings (SCRAPER_*) are loaded from .env
"""
import logging
import os
from typing import List, Dict, Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class RunConfig(BaseModel):
    """Run parameters shared by every category."""
    target_count: int = Field(50, ge=1)
    max_stagnant_rounds: int = Field(3, ge=1)
    enrichment_cap: int = Field(25, ge=0)
    request_delay_ms: int = Field(1000, ge=0)
    settle_delay_ms: int = Field(1000, ge=0)
    navigation_timeout_ms: int = Field(30000, ge=1000)
    wait_timeout_ms: int = Field(10000, ge=0)
    detail_timeout_s: float = Field(60.0, gt=0)
    max_retries: int = Field(3, ge=1)
    retry_base_delay_s: float = Field(2.0, ge=0)
    body_char_cap: int = Field(5000, ge=100)
    reply_char_cap: int = Field(1000, ge=10)
    preview_min_length: int = Field(50, ge=0)
    concurrency: int = Field(1, ge=1, le=8)
    max_run_seconds: Optional[float] = Field(None, gt=0)
    max_total_items: Optional[int] = Field(None, ge=1)


class ScoringConfig(BaseModel):
    """Engagement score weights."""
    comment_weight: float = 2.0
    approval_bonus: float = 1.5
    approval_threshold: float = 0.8
    approval_policy: Literal["observed", "estimated", "off"] = "observed"
    default_age_hours: float = Field(24.0, ge=1.0)


class BrowserConfig(BaseModel):
    """How pages are fetched."""
    engine: Literal["playwright", "http"] = "playwright"
    browser_type: str = "chromium"  # chromium, firefox, webkit
    headless: bool = True
    user_agent: Optional[str] = None
    viewport: Dict[str, int] = {"width": 1280, "height": 720}
    proxy: Optional[str] = None


class CategoryConfig(BaseModel):
    """A listing to page through."""
    key: str
    site: str
    listing_url: str
    enabled: bool = True


class Config(BaseModel):
    run: RunConfig = RunConfig()
    scoring: ScoringConfig = ScoringConfig()
    browser: BrowserConfig = BrowserConfig()
    categories: List[CategoryConfig] = []
    output_dir: str = "output"
    log_level: str = "INFO"


def _bool(value: str | bool) -> bool:
    """Convert string or bool to boolean."""
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


def _get_config_path(path: Optional[str] = None) -> str:
    """Get the path to config.yml, handling different working directories."""
    if path:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Cannot find {path}")
        return path

    env_path = os.getenv("SCRAPER_CONFIG")
    if env_path and os.path.exists(env_path):
        return env_path

    # Try relative path first
    if os.path.exists('resources/config.yml'):
        return 'resources/config.yml'

    # Try from project root
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    config_path = os.path.join(project_root, 'resources', 'config.yml')
    if os.path.exists(config_path):
        return config_path

    raise FileNotFoundError("Cannot find resources/config.yml")


def _parse_categories(data: Any) -> List[CategoryConfig]:
    """
    Parse the categories section. Accepts a mapping keyed by category key
    or a list of entries with an explicit key. Broken entries are skipped.
    """
    if isinstance(data, dict):
        entries = [dict(value or {}, key=key) for key, value in data.items()]
    else:
        entries = list(data or [])

    categories = []
    for entry in entries:
        try:
            categories.append(CategoryConfig(
                key=entry.get("key", ""),
                site=entry.get("site", "generic"),
                listing_url=entry.get("listing_url") or entry.get("url", ""),
                enabled=_bool(entry.get("enabled", True)),
            ))
        except (ValidationError, AttributeError) as e:
            logger.error(f"Failed to parse category '{entry}': {e}")
    return categories


def _browser_from_env(data: Dict[str, Any]) -> BrowserConfig:
    browser = dict(data)
    if os.getenv("SCRAPER_ENGINE"):
        browser["engine"] = os.getenv("SCRAPER_ENGINE")
    if os.getenv("SCRAPER_HEADLESS") is not None:
        browser["headless"] = _bool(os.getenv("SCRAPER_HEADLESS"))
    if os.getenv("SCRAPER_USER_AGENT"):
        browser["user_agent"] = os.getenv("SCRAPER_USER_AGENT")
    if os.getenv("SCRAPER_PROXY"):
        browser["proxy"] = os.getenv("SCRAPER_PROXY")
    return BrowserConfig(**browser)


def parse_config(config: Dict[str, Any]) -> Config:
    """Build a Config from already-loaded YAML data."""
    return Config(
        run=RunConfig(**(config.get("run") or {})),
        scoring=ScoringConfig(**(config.get("scoring") or {})),
        browser=_browser_from_env(config.get("browser") or {}),
        categories=_parse_categories(config.get("categories")),
        output_dir=config.get("output_dir", "output"),
        log_level=os.getenv("LOG_LEVEL") or config.get("log_level", "INFO"),
    )


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from config.yml and overrides from .env."""
    load_dotenv()

    config_path = _get_config_path(path)

    with open(config_path, 'r') as file:
        config = yaml.safe_load(file) or {}

    return parse_config(config)


def get_enabled_categories(config: Config) -> List[CategoryConfig]:
    """Get only enabled categories."""
    return [c for c in config.categories if c.enabled]
