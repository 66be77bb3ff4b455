"""Client utilities for the Gemini generative-language API."""

import logging
from typing import Any, Dict, Optional

import requests

from crm_research.core.config import get_settings
from crm_research.core.models import LlmResult

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

GENERATION_CONFIG = {"temperature": 0.2, "topP": 0.9, "maxOutputTokens": 1400}


class GeminiError(RuntimeError):
    """Raised when Gemini returns a non-successful response."""


def is_available() -> bool:
    return bool(get_settings().gemini_api_key)


def _output_text(payload: Dict[str, Any]) -> str:
    candidates = payload.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "\n".join(str(part.get("text") or "") for part in parts if isinstance(part, dict)).strip()


def generate(prompt: str) -> Optional[LlmResult]:
    """Generate text for a prompt, trying each configured model in order.

    Returns None when no API key is configured. A 404 (model not found) moves
    on to the next model; any other non-2xx raises GeminiError, as does running
    out of models.
    """
    settings = get_settings()
    if not settings.gemini_api_key:
        return None

    body = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": GENERATION_CONFIG,
    }
    tried = []
    for model in settings.gemini_models:
        tried.append(model)
        response = _SESSION.post(
            f"{_BASE_URL}/{model}:generateContent",
            params={"key": settings.gemini_api_key},
            json=body,
            timeout=settings.llm_timeout,
        )
        if response.status_code == 404:
            logger.warning("Gemini model %s not found; trying next model", model)
            continue
        if not 200 <= response.status_code < 300:
            logger.error("Gemini request failed: model=%s status=%s", model, response.status_code)
            raise GeminiError(f"Gemini request failed ({response.status_code}): {response.text[:300]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeminiError(f"Gemini returned a non-JSON body for model {model}") from exc

        text = _output_text(payload if isinstance(payload, dict) else {})
        logger.info("Gemini model %s returned %d characters", model, len(text))
        return LlmResult(model=model, output_text=text)

    raise GeminiError(f"No Gemini model available (tried: {', '.join(tried) or 'none'})")
