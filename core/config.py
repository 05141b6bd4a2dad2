# core/config.py
import os
from dataclasses import dataclass, field
from typing import Dict

from .models import RetailerKind


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() == "true"


SCRAPER_API_KEY = os.getenv("SCRAPER_API_KEY", "").strip()
SCRAPER_API_URL = os.getenv("SCRAPER_API_URL", "http://api.scraperapi.com").strip()
BRIGHTDATA_UNLOCKER_API_TOKEN = os.getenv("BRIGHTDATA_UNLOCKER_API_TOKEN", "").strip()
BRIGHTDATA_UNLOCKER_ZONE = os.getenv("BRIGHTDATA_UNLOCKER_ZONE", "").strip()
BRIGHTDATA_API_URL = os.getenv("BRIGHTDATA_API_URL", "https://api.brightdata.com/request").strip()
# Public key shipped in Target's own web client.
TARGET_API_KEY = os.getenv("TARGET_API_KEY", "9f36aeafbe60771e321a7cc95a78140772ab3e96").strip()

REQUEST_TIMEOUT = _env_float("REQUEST_TIMEOUT", 30.0)
PIPELINE_TIMEOUT = _env_float("PIPELINE_TIMEOUT", 90.0)
DEEP_SEARCH_MAX_DEPTH = _env_int("DEEP_SEARCH_MAX_DEPTH", 9)

# Empirically tuned floors for a "real" list page, per retailer. Re-tune against live traffic.
MIN_BODY_BYTES = {
    RetailerKind.AMAZON_WISHLIST: _env_int("MIN_BODY_BYTES_AMAZON", 5000),
    RetailerKind.AMAZON_REGISTRY: _env_int("MIN_BODY_BYTES_AMAZON_REGISTRY", 5000),
    RetailerKind.TARGET_REGISTRY: _env_int("MIN_BODY_BYTES_TARGET", 2000),
    RetailerKind.WALMART_WISHLIST: _env_int("MIN_BODY_BYTES_WALMART", 10000),
    RetailerKind.WALMART_REGISTRY: _env_int("MIN_BODY_BYTES_WALMART_REGISTRY", 10000),
}

DB_PATH = os.getenv("DB_PATH", "/data/list_state.sqlite3")
DEBUG_SCRAPE_HTML = _env_bool("DEBUG_SCRAPE_HTML")
DEBUG_DIR = os.getenv("DEBUG_DIR", "/data/debug_dumps")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = _env_int("PORT", 8080)


@dataclass(frozen=True)
class Settings:
    """Everything the pipeline needs from the environment, injectable for tests."""
    scraper_api_key: str = ""
    scraper_api_url: str = "http://api.scraperapi.com"
    brightdata_token: str = ""
    brightdata_zone: str = ""
    brightdata_api_url: str = "https://api.brightdata.com/request"
    target_api_key: str = ""
    request_timeout: float = 30.0
    pipeline_timeout: float = 90.0
    deep_search_max_depth: int = 9
    min_body_bytes: Dict[RetailerKind, int] = field(default_factory=lambda: dict(MIN_BODY_BYTES))
    db_path: str = DB_PATH

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            scraper_api_key=SCRAPER_API_KEY,
            scraper_api_url=SCRAPER_API_URL,
            brightdata_token=BRIGHTDATA_UNLOCKER_API_TOKEN,
            brightdata_zone=BRIGHTDATA_UNLOCKER_ZONE,
            brightdata_api_url=BRIGHTDATA_API_URL,
            target_api_key=TARGET_API_KEY,
            request_timeout=REQUEST_TIMEOUT,
            pipeline_timeout=PIPELINE_TIMEOUT,
            deep_search_max_depth=DEEP_SEARCH_MAX_DEPTH,
            min_body_bytes=dict(MIN_BODY_BYTES),
            db_path=DB_PATH,
        )

    def min_bytes_for(self, kind: RetailerKind) -> int:
        return self.min_body_bytes.get(kind, 0)
