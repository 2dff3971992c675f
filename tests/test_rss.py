"""
RSS aggregation and single-feed proxy tests.

Outbound HTTP is stubbed by patching ``requests.Session.get``; no network.

Tests cover:
  - one feed resolves, one fails → only the resolved feed's items
  - newest first, capped at 20, undated items last
  - sourceCategory derived from the feed URL
  - empty / missing urls → 400, every feed failing → 500
  - RSS 2.0 and Atom parsing
  - /api/rss-proxy passthrough, 400 and 500
"""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest
import requests

from app.services import rss_service


# ═══════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════

BASE_TIME = datetime(2024, 8, 15, 12, 0, tzinfo=timezone.utc)


def rss_document(prefix, count, start_offset_hours=0, undated=0):
    items = []
    for i in range(count):
        published = BASE_TIME - timedelta(hours=start_offset_hours + i * 2)
        items.append(
            f"<item><title>{prefix} {i}</title><link>https://news.test/{prefix}/{i}</link>"
            f"<guid>{prefix}-{i}</guid><pubDate>{format_datetime(published)}</pubDate>"
            f"<description>&lt;p&gt;Texto {prefix} {i}&lt;/p&gt;</description></item>"
        )
    for i in range(undated):
        items.append(f"<item><title>{prefix} sem data {i}</title><link>https://news.test/u/{i}</link></item>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel>'
        f"<title>{prefix}</title><link>https://news.test/{prefix}</link>{''.join(items)}"
        "</channel></rss>"
    ).encode("utf-8")


ATOM_DOCUMENT = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Mundo Atom</title>
  <link href="https://atom.test/"/>
  <entry>
    <title>Atom entry</title>
    <link rel="alternate" href="https://atom.test/entry-1"/>
    <id>urn:entry:1</id>
    <updated>2024-08-14T09:30:00Z</updated>
    <summary>Resumo da entrada</summary>
    <author><name>Redacao</name></author>
  </entry>
</feed>"""


class FakeResponse:
    def __init__(self, content, status_code=200, content_type="application/rss+xml; charset=utf-8"):
        self.content = content
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture()
def fake_feeds(monkeypatch):
    """Map URL → bytes | Exception | FakeResponse; records every call."""
    routes = {}
    calls = []

    def fake_get(self, url, headers=None, timeout=None, **kwargs):
        calls.append({"url": url, "headers": headers or {}, "timeout": timeout})
        target = routes.get(url)
        if target is None:
            raise requests.ConnectionError(f"unreachable: {url}")
        if isinstance(target, Exception):
            raise target
        if isinstance(target, FakeResponse):
            return target
        return FakeResponse(target)

    monkeypatch.setattr(requests.Session, "get", fake_get)
    monkeypatch.setattr(rss_service.feed_client, "_session", None)
    return routes, calls


# ═══════════════════════════════════════════════════════════════
# /api/rss
# ═══════════════════════════════════════════════════════════════

class TestAggregate:
    def test_failed_feed_is_dropped(self, client, fake_feeds):
        routes, _ = fake_feeds
        ok_url = "https://feeds.test/mercados/rss"
        bad_url = "https://feeds.test/economia/rss"
        routes[ok_url] = rss_document("ok", 5)
        routes[bad_url] = requests.Timeout("timed out")

        res = client.get(f"/api/rss?urls={ok_url},{bad_url}")
        assert res.status_code == 200
        items = res.get_json()
        assert len(items) == 5
        assert all(item["title"].startswith("ok") for item in items)
        assert all(item["sourceCategory"] == "Mercados" for item in items)
        dates = [item["isoDate"] for item in items]
        assert dates == sorted(dates, reverse=True)

    def test_merged_sorted_and_capped_at_20(self, client, fake_feeds):
        routes, _ = fake_feeds
        a = "https://feeds.test/business/a.xml"
        b = "https://feeds.test/mundo/b.xml"
        routes[a] = rss_document("a", 15)
        routes[b] = rss_document("b", 15, start_offset_hours=1)

        res = client.get(f"/api/rss?urls={a},{b}")
        assert res.status_code == 200
        items = res.get_json()
        assert len(items) == 20
        parsed = [datetime.fromisoformat(i["isoDate"].replace("Z", "+00:00")) for i in items]
        assert parsed == sorted(parsed, reverse=True)
        # newest item overall comes from feed a (offset 0)
        assert items[0]["title"] == "a 0"
        assert items[1]["title"] == "b 0"
        assert {i["sourceCategory"] for i in items} == {"Business", "Mundo"}

    def test_undated_items_go_last(self, client, fake_feeds):
        routes, _ = fake_feeds
        url = "https://feeds.test/geral.xml"
        routes[url] = rss_document("g", 2, undated=1)

        items = client.get(f"/api/rss?urls={url}").get_json()
        assert [i["title"] for i in items] == ["g 0", "g 1", "g sem data 0"]
        assert items[0]["sourceCategory"] == "Notícias"
        assert items[0]["contentSnippet"] == "Texto g 0"

    def test_empty_urls_returns_400(self, client, fake_feeds):
        res = client.get("/api/rss?urls=")
        assert res.status_code == 400
        assert res.get_json() == {"error": "Nenhuma URL de feed fornecida."}

    def test_missing_urls_returns_400(self, client, fake_feeds):
        res = client.get("/api/rss")
        assert res.status_code == 400
        assert "error" in res.get_json()

    def test_all_feeds_failing_returns_500(self, client, fake_feeds):
        routes, _ = fake_feeds
        routes["https://feeds.test/a.xml"] = FakeResponse(b"", status_code=502)
        routes["https://feeds.test/b.xml"] = b"<html>not a feed</html>"

        res = client.get("/api/rss?urls=https://feeds.test/a.xml,https://feeds.test/b.xml")
        assert res.status_code == 500
        assert res.get_json() == {"error": "Não foi possível carregar os feeds."}

    def test_non_http_urls_are_not_fetched(self, client, fake_feeds):
        routes, calls = fake_feeds
        ok_url = "https://feeds.test/ok.xml"
        routes[ok_url] = rss_document("ok", 1)

        res = client.get(f"/api/rss?urls=file:///etc/passwd,{ok_url}")
        assert res.status_code == 200
        assert [c["url"] for c in calls] == [ok_url]

    def test_does_not_require_auth(self, client, fake_feeds):
        routes, _ = fake_feeds
        routes["https://feeds.test/ok.xml"] = rss_document("ok", 1)
        res = client.get("/api/rss?urls=https://feeds.test/ok.xml")
        assert res.status_code == 200


# ═══════════════════════════════════════════════════════════════
# PARSER
# ═══════════════════════════════════════════════════════════════

class TestParser:
    def test_atom_entries(self):
        feed = rss_service.parse_feed(ATOM_DOCUMENT)
        assert feed["title"] == "Mundo Atom"
        entry = feed["items"][0]
        assert entry["link"] == "https://atom.test/entry-1"
        assert entry["isoDate"] == "2024-08-14T09:30:00Z"
        assert entry["creator"] == "Redacao"
        assert entry["contentSnippet"] == "Resumo da entrada"

    def test_invalid_xml_raises_feed_error(self):
        with pytest.raises(rss_service.FeedError):
            rss_service.parse_feed(b"<rss><channel>")

    @pytest.mark.parametrize("url,category", [
        ("https://x.test/mercados/feed", "Mercados"),
        ("https://x.test/economia/feed", "Economia"),
        ("https://x.test/business/feed", "Business"),
        ("https://x.test/mundo/feed", "Mundo"),
        ("https://x.test/esportes/feed", "Notícias"),
    ])
    def test_category_from_url(self, url, category):
        assert rss_service.category_from_url(url) == category


# ═══════════════════════════════════════════════════════════════
# /api/rss-proxy
# ═══════════════════════════════════════════════════════════════

class TestProxy:
    def test_passthrough_body_and_content_type(self, client, fake_feeds):
        routes, calls = fake_feeds
        url = "https://feeds.test/raw.xml"
        body = rss_document("raw", 1)
        routes[url] = FakeResponse(body, content_type="text/xml; charset=utf-8")

        res = client.get(f"/api/rss-proxy?url={url}")
        assert res.status_code == 200
        assert res.data == body
        assert res.headers["Content-Type"] == "text/xml; charset=utf-8"
        assert res.headers["Access-Control-Allow-Origin"] == "*"
        assert calls[0]["headers"]["User-Agent"] == rss_service.USER_AGENT

    def test_missing_url_returns_400(self, client, fake_feeds):
        res = client.get("/api/rss-proxy")
        assert res.status_code == 400
        assert b"url" in res.data

    def test_fetch_error_returns_500(self, client, fake_feeds):
        res = client.get("/api/rss-proxy?url=https://feeds.test/down.xml")
        assert res.status_code == 500
        assert res.data == b"Failed to fetch RSS feed."
