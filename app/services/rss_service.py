"""
RSS Service — server-side feed fetching for the news widgets.

All outbound feed requests go through FeedClient. Feeds are fetched
concurrently on a bounded thread pool; a feed that fails to download or
parse is dropped and logged, never fatal to the batch.

Aggregation rules:
    - each item is tagged with ``sourceCategory`` derived from its feed URL
    - items are ordered by ``isoDate`` descending, undated items last
    - at most RSS_MAX_ITEMS (20) items are returned
    - only http/https URLs are fetched

Testability: tests replace ``feed_client.session`` with a fake exposing
``get(url, headers=..., timeout=...)``.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from datetime import timezone
from email.utils import parsedate_to_datetime
from urllib.parse import urlsplit

import requests

from app.core.exceptions import UpstreamError, ValidationError
from app.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)

USER_AGENT = "Intranet-RSS-Proxy/1.0"
DEFAULT_TIMEOUT = 10
DEFAULT_MAX_ITEMS = 20
DEFAULT_MAX_WORKERS = 8

_ATOM = "{http://www.w3.org/2005/Atom}"
_CONTENT = "{http://purl.org/rss/1.0/modules/content/}"
_DC = "{http://purl.org/dc/elements/1.1/}"

_CATEGORY_RULES = (
    ("mercados", "Mercados"),
    ("economia", "Economia"),
    ("business", "Business"),
    ("mundo", "Mundo"),
)
DEFAULT_CATEGORY = "Notícias"


class FeedError(Exception):
    """A single feed could not be fetched or parsed."""


def category_from_url(url: str) -> str:
    for needle, category in _CATEGORY_RULES:
        if needle in url:
            return category
    return DEFAULT_CATEGORY


def split_feed_urls(raw: str | None) -> list[str]:
    """Split the ``urls`` query value; raise ValidationError when nothing usable remains."""
    urls = [u.strip() for u in (raw or "").split(",") if u.strip()]
    if not urls:
        raise ValidationError("Nenhuma URL de feed fornecida.")
    return urls


def _is_fetchable(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


# ── Parsing ──────────────────────────────────────────────────────────────────

def _text(element, tag: str) -> str | None:
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _iso(raw: str | None) -> str | None:
    if not raw:
        return None
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        parsed = parse_datetime(raw)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _snippet(html: str | None, limit: int = 300) -> str | None:
    if not html:
        return None
    try:
        text = "".join(ET.fromstring(f"<div>{html}</div>").itertext())
    except ET.ParseError:
        text = html
    text = " ".join(text.split())
    return text[:limit]


def parse_feed(body: bytes | str) -> dict:
    """Parse an RSS 2.0 or Atom document into ``{title, link, items}``."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise FeedError(f"invalid XML: {exc}") from exc

    if root.tag == f"{_ATOM}feed":
        items = []
        for entry in root.findall(f"{_ATOM}entry"):
            link_el = entry.find(f"{_ATOM}link[@rel='alternate']")
            if link_el is None:
                link_el = entry.find(f"{_ATOM}link")
            content = _text(entry, f"{_ATOM}content") or _text(entry, f"{_ATOM}summary")
            published = _text(entry, f"{_ATOM}published") or _text(entry, f"{_ATOM}updated")
            author = entry.find(f"{_ATOM}author")
            items.append({
                "title": _text(entry, f"{_ATOM}title"),
                "link": link_el.get("href") if link_el is not None else None,
                "pubDate": published,
                "isoDate": _iso(published),
                "content": content,
                "contentSnippet": _snippet(content),
                "guid": _text(entry, f"{_ATOM}id"),
                "creator": _text(author, f"{_ATOM}name") if author is not None else None,
                "categories": [c.get("term") for c in entry.findall(f"{_ATOM}category") if c.get("term")],
            })
        link_el = root.find(f"{_ATOM}link")
        return {
            "title": _text(root, f"{_ATOM}title"),
            "link": link_el.get("href") if link_el is not None else None,
            "items": items,
        }

    channel = root.find("channel")
    if root.tag != "rss" or channel is None:
        raise FeedError(f"unsupported feed root <{root.tag}>")
    items = []
    for item in channel.findall("item"):
        content = _text(item, f"{_CONTENT}encoded") or _text(item, "description")
        pub_date = _text(item, "pubDate") or _text(item, f"{_DC}date")
        enclosure = item.find("enclosure")
        entry = {
            "title": _text(item, "title"),
            "link": _text(item, "link"),
            "pubDate": pub_date,
            "isoDate": _iso(pub_date),
            "content": content,
            "contentSnippet": _snippet(content),
            "guid": _text(item, "guid"),
            "creator": _text(item, f"{_DC}creator"),
            "categories": [c.text.strip() for c in item.findall("category") if c.text],
        }
        if enclosure is not None and enclosure.get("url"):
            entry["enclosure"] = {"url": enclosure.get("url"), "type": enclosure.get("type")}
        items.append(entry)
    return {"title": _text(channel, "title"), "link": _text(channel, "link"), "items": items}


# ── HTTP client ──────────────────────────────────────────────────────────────

class FeedClient:
    """Outbound HTTP for feed hosts.

    Pass a custom ``session`` in tests to intercept HTTP calls.
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    @session.setter
    def session(self, value) -> None:
        self._session = value

    def fetch(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> requests.Response:
        if not _is_fetchable(url):
            raise FeedError(f"unsupported URL scheme: {url}")
        try:
            response = self.session.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FeedError(str(exc)) from exc
        return response


feed_client = FeedClient()


# ── Operations ───────────────────────────────────────────────────────────────

def _fetch_items(url: str, timeout: float) -> list[dict]:
    response = feed_client.fetch(url, timeout=timeout)
    feed = parse_feed(response.content)
    category = category_from_url(url)
    return [{**item, "sourceCategory": category} for item in feed["items"]]


def aggregate_feeds(urls: list[str], timeout: float = DEFAULT_TIMEOUT,
                    max_items: int = DEFAULT_MAX_ITEMS, max_workers: int = DEFAULT_MAX_WORKERS) -> list[dict]:
    """Fetch ``urls`` concurrently and merge their items.

    Raises UpstreamError only when every feed failed.
    """
    if not urls:
        raise ValidationError("Nenhuma URL de feed fornecida.")

    combined: list[dict] = []
    failures = 0
    workers = max(1, min(max_workers, len(urls)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(_fetch_items, url, timeout): url for url in urls}
        for future, url in futures.items():
            try:
                combined.extend(future.result())
            except (FeedError, requests.RequestException) as exc:
                failures += 1
                logger.warning("Feed dropped url=%s: %s", url, exc)

    if failures == len(urls):
        raise UpstreamError("Não foi possível carregar os feeds.")

    dated = [i for i in combined if i.get("isoDate")]
    undated = [i for i in combined if not i.get("isoDate")]
    dated.sort(key=lambda i: parse_datetime(i["isoDate"]), reverse=True)
    logger.debug("Aggregated %d items from %d/%d feeds", len(combined), len(urls) - failures, len(urls))
    return (dated + undated)[:max_items]


def fetch_raw_feed(url: str | None, timeout: float = DEFAULT_TIMEOUT) -> tuple[bytes, str]:
    """Single-feed proxy: return the upstream body and content type unchanged."""
    if not url:
        raise ValidationError("A 'url' query parameter is required.")
    try:
        response = feed_client.fetch(url, timeout=timeout)
    except FeedError as exc:
        logger.error("Error fetching RSS feed url=%s: %s", url, exc)
        raise UpstreamError("Failed to fetch RSS feed.") from exc
    content_type = response.headers.get("Content-Type", "application/xml; charset=utf-8")
    return response.content, content_type
