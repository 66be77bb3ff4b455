"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODELS = ("gemini-2.0-flash", "gemini-1.5-flash")
DEFAULT_USER_AGENT = "VendoraCRM-Research/1.0 (+https://vendora.se)"


@dataclass(frozen=True)
class Settings:
    database_url: str
    gemini_api_key: str = ""
    gemini_models: Tuple[str, ...] = field(default=DEFAULT_GEMINI_MODELS)
    serper_api_key: str = ""
    tavily_api_key: str = ""
    worker_port: int = 9000
    request_timeout: float = 10.0
    llm_timeout: float = 45.0
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def has_search_provider(self) -> bool:
        return bool(self.serper_api_key or self.tavily_api_key)


def _parse_models(raw: str) -> Tuple[str, ...]:
    configured = [item.strip() for item in (raw or "").split(",") if item.strip()]
    ordered = []
    for model in [*configured, *DEFAULT_GEMINI_MODELS]:
        if model not in ordered:
            ordered.append(model)
    return tuple(ordered)


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not numeric; using %s", name, raw, default)
        return default
    return value if value > 0 else default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    gemini_api_key = os.getenv("GEMINI_API_KEY", "").strip()
    serper_api_key = os.getenv("SERPER_API_KEY", "").strip()
    tavily_api_key = os.getenv("TAVILY_API_KEY", "").strip()
    worker_port = int(os.getenv("WORKER_PORT", "9000"))
    user_agent = os.getenv("RESEARCH_USER_AGENT", "").strip() or DEFAULT_USER_AGENT

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not gemini_api_key:
        logger.warning("GEMINI_API_KEY is not configured; AI generation is unavailable.")
    if not serper_api_key and not tavily_api_key:
        logger.warning("No SERPER_API_KEY or TAVILY_API_KEY configured; external discovery is disabled.")

    return Settings(
        database_url=database_url,
        gemini_api_key=gemini_api_key,
        gemini_models=_parse_models(os.getenv("GEMINI_MODEL", "")),
        serper_api_key=serper_api_key,
        tavily_api_key=tavily_api_key,
        worker_port=worker_port,
        request_timeout=_parse_float("REQUEST_TIMEOUT", 10.0),
        llm_timeout=_parse_float("LLM_TIMEOUT", 45.0),
        user_agent=user_agent,
    )
