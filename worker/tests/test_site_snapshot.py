import pytest
import requests

from crm_research.core import site_snapshot


class DummySettings:
    user_agent = "TestAgent/1.0"
    request_timeout = 7.0


class DummyResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


class DummySession:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, headers=None, timeout=None, allow_redirects=True):
        self.calls.append((url, headers, timeout))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response


SAMPLE_HTML = (
    "<html><head><title>Acme  Store</title>"
    '<meta name="Description" content="Mobile accessories and audio"></head>'
    "<body><h1>Welcome   to Acme</h1><p>Retail</p></body></html>"
)


@pytest.fixture(autouse=True)
def patch_settings(monkeypatch):
    monkeypatch.setattr(site_snapshot, "get_settings", lambda: DummySettings())


def test_normalize_url():
    assert site_snapshot.normalize_url("acme.se") == "https://acme.se"
    assert site_snapshot.normalize_url(" http://acme.se/shop ") == "http://acme.se/shop"
    assert site_snapshot.normalize_url("HTTPS://Acme.se") == "HTTPS://Acme.se"
    assert site_snapshot.normalize_url("") == ""


def test_compute_fit_score_bounds():
    assert site_snapshot.compute_fit_score("") == 35
    assert site_snapshot.compute_fit_score("Electronics RETAIL") == 47
    assert site_snapshot.compute_fit_score(" ".join(site_snapshot.FIT_KEYWORDS)) == 100


def test_extract_snapshot_reads_head_and_text():
    snapshot = site_snapshot.extract_snapshot("https://acme.se", SAMPLE_HTML)

    assert snapshot.title == "Acme Store"
    assert snapshot.description == "Mobile accessories and audio"
    assert snapshot.h1 == "Welcome to Acme"
    assert snapshot.text_sample.startswith("Acme Store Mobile accessories and audio Welcome to Acme")
    assert "<" not in snapshot.text_sample
    # accessories, mobile, audio, retail
    assert snapshot.vendora_fit_score == 59


def test_extract_snapshot_caps_text_sample():
    html = "<p>" + ("word " * 2000) + "</p>"
    snapshot = site_snapshot.extract_snapshot("https://long.se", html)

    assert snapshot.title is None
    assert len(snapshot.text_sample) <= site_snapshot.TEXT_SAMPLE_LENGTH


def test_fetch_website_snapshot_uses_user_agent_and_timeout():
    session = DummySession({"https://acme.se": DummyResponse(text=SAMPLE_HTML)})

    snapshot = site_snapshot.fetch_website_snapshot("acme.se", session=session)

    url, headers, timeout = session.calls[0]
    assert url == "https://acme.se"
    assert headers["User-Agent"] == "TestAgent/1.0"
    assert timeout == 7.0
    assert snapshot.url == "https://acme.se"


def test_fetch_website_snapshot_raises_on_error_status():
    session = DummySession({"https://down.se": DummyResponse(status_code=503)})

    with pytest.raises(site_snapshot.SnapshotFetchError):
        site_snapshot.fetch_website_snapshot("https://down.se", session=session)


def test_fetch_snapshots_drops_failures_and_keeps_order():
    session = DummySession(
        {
            "https://a.se": DummyResponse(text="<title>A</title>"),
            "https://b.se": requests.ConnectionError("refused"),
            "https://c.se": DummyResponse(status_code=404),
            "https://d.se": DummyResponse(text="<title>D</title>"),
        }
    )

    snapshots = site_snapshot.fetch_snapshots(
        ["https://a.se", "https://b.se", "https://c.se", "", "https://d.se"], session=session
    )

    assert [snapshot.url for snapshot in snapshots] == ["https://a.se", "https://d.se"]
    assert [snapshot.title for snapshot in snapshots] == ["A", "D"]


def test_fetch_snapshots_empty_input():
    assert site_snapshot.fetch_snapshots([]) == []
