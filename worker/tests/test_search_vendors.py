import pytest
import requests

from crm_research.core import http
from crm_research.vendors import serper, tavily


class DummySettings:
    def __init__(self, serper_api_key="serp-key", tavily_api_key="tav-key"):
        self.serper_api_key = serper_api_key
        self.tavily_api_key = tavily_api_key
        self.request_timeout = 10.0


class DummyResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload or {}
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.response = DummyResponse()
        self.error = None

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def serper_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(serper, "_SESSION", session)
    monkeypatch.setattr(serper, "get_settings", lambda: DummySettings())
    return session


@pytest.fixture
def tavily_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(tavily, "_SESSION", session)
    monkeypatch.setattr(tavily, "get_settings", lambda: DummySettings())
    return session


def test_serper_maps_organic_results(serper_session):
    serper_session.response = DummyResponse(
        payload={
            "organic": [
                {"title": "Acme Store", "link": "https://acme.se", "snippet": "Accessories"},
                {"title": "No link"},
                "junk",
            ]
        }
    )

    rows = serper.search("companies similar to Acme", max_results=50)

    call = serper_session.calls[0]
    assert call["url"] == "https://google.serper.dev/search"
    assert call["headers"] == {"X-API-KEY": "serp-key"}
    assert call["json"] == {"q": "companies similar to Acme", "num": 20}
    assert call["timeout"] == 10.0
    assert rows == [
        {"title": "Acme Store", "link": "https://acme.se", "snippet": "Accessories"},
        {"title": "No link", "link": "", "snippet": ""},
    ]


def test_serper_without_key_skips_request(monkeypatch, serper_session):
    monkeypatch.setattr(serper, "get_settings", lambda: DummySettings(serper_api_key=""))

    assert serper.search("anything") == []
    assert serper_session.calls == []


def test_serper_empty_query_skips_request(serper_session):
    assert serper.search("   ") == []
    assert serper_session.calls == []


def test_serper_non_success_returns_empty(serper_session):
    serper_session.response = DummyResponse(status_code=429, payload={"organic": [{"link": "x"}]})
    assert serper.search("acme") == []


def test_serper_network_error_returns_empty(serper_session):
    serper_session.error = requests.ConnectionError("boom")
    assert serper.search("acme") == []


def test_serper_invalid_json_returns_empty(serper_session):
    serper_session.response = DummyResponse(invalid_json=True)
    assert serper.search("acme") == []


def test_tavily_maps_results(tavily_session):
    tavily_session.response = DummyResponse(
        payload={"results": [{"title": "Beta AB", "url": "https://beta.se", "content": "Retailer"}]}
    )

    rows = tavily.search("companies reseller", max_results=2)

    call = tavily_session.calls[0]
    assert call["url"] == "https://api.tavily.com/search"
    assert call["json"]["api_key"] == "tav-key"
    assert call["json"]["max_results"] == 5
    assert call["json"]["search_depth"] == "basic"
    assert rows == [{"title": "Beta AB", "link": "https://beta.se", "snippet": "Retailer"}]


def test_tavily_without_key_skips_request(monkeypatch, tavily_session):
    monkeypatch.setattr(tavily, "get_settings", lambda: DummySettings(tavily_api_key=""))

    assert tavily.search("anything") == []
    assert tavily_session.calls == []


def test_tavily_non_success_returns_empty(tavily_session):
    tavily_session.response = DummyResponse(status_code=500)
    assert tavily.search("acme") == []


def test_tavily_missing_results_returns_empty(tavily_session):
    tavily_session.response = DummyResponse(payload={"answer": "n/a"})
    assert tavily.search("acme") == []


def test_build_session_sets_user_agent_and_retries():
    session = http.build_session(user_agent="Agent/1", retries=3)

    assert session.headers["User-Agent"] == "Agent/1"
    retry = session.get_adapter("https://google.serper.dev").max_retries
    assert retry.total == 3
    assert 503 in retry.status_forcelist
