"""Shared requests session helpers."""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from crm_research.core.config import get_settings


def build_session(user_agent: Optional[str] = None, retries: int = 2) -> requests.Session:
    """Return a session carrying the research User-Agent and 5xx retries."""
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent or get_settings().user_agent})
    if retries:
        retry = Retry(
            total=retries,
            backoff_factor=0.5,
            status_forcelist=(500, 502, 503, 504),
            allowed_methods=("POST", "GET"),
            raise_on_status=False,
        )
        session.mount("http://", HTTPAdapter(max_retries=retry))
        session.mount("https://", HTTPAdapter(max_retries=retry))
    return session
