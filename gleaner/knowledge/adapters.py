"""
Content Adapters

Fetch a source's locator and normalize what comes back into
ContentItem records.

Design decisions:
- One adapter per source type, selected through AdapterRegistry
- Adapters never embed or store; they only fetch and normalize
- Every transport or parse failure surfaces as FetchError
- Zero items is a valid, successful fetch
"""

import asyncio
import io
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup
from pypdf import PdfReader

from gleaner.config.settings import AdapterSettings
from gleaner.core.exceptions import FetchError, SourceError
from gleaner.core.interfaces import ContentAdapterProtocol
from gleaner.core.types import ContentItem, SourceType
from gleaner.observability.logging import get_logger

logger = get_logger("gleaner.adapters")


def html_to_text(html: str | bytes) -> tuple[str, str]:
    """Extract (title, visible text) from an HTML document."""
    soup = BeautifulSoup(html, "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""

    # Remove script and style elements
    for element in soup(["script", "style", "nav", "footer", "header", "noscript"]):
        element.decompose()

    # Prefer the main content region when the page marks one
    main = soup.select("article, main, .content, #content")
    roots = main if main else [soup.body or soup]

    lines: list[str] = []
    for root in roots:
        text = root.get_text(separator="\n")
        lines.extend(line.strip() for line in text.split("\n") if line.strip())
    return title, "\n".join(lines)


class BaseContentAdapter(ABC):
    """
    Base class for content adapters.

    Owns the shared HTTP client and the FetchError wrapping so
    subclasses only implement _fetch().
    """

    source_type: SourceType

    def __init__(
        self,
        settings: AdapterSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or AdapterSettings()
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                headers={"User-Agent": self.settings.user_agent},
                follow_redirects=True,
            )
        return self._client

    async def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._get_client().get(url, **kwargs)
        response.raise_for_status()
        return response

    def _truncate(self, text: str) -> str:
        return text[: self.settings.max_content_chars]

    async def fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        """
        Fetch and normalize content for a locator.

        Raises:
            FetchError: transport or parse failure
        """
        try:
            items = await self._fetch(locator, source_id)
        except FetchError:
            raise
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"{self.source_type.value} fetch returned HTTP {e.response.status_code}",
                locator=locator,
                context={"source_id": source_id, "status": e.response.status_code},
                cause=e,
            )
        except Exception as e:
            raise FetchError(
                f"{self.source_type.value} fetch failed: {e}",
                locator=locator,
                context={"source_id": source_id},
                cause=e,
            )

        logger.debug(
            "Fetched content",
            source_id=source_id,
            source_type=self.source_type.value,
            items=len(items),
        )
        return items

    @abstractmethod
    async def _fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        pass

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class APIAdapter(BaseContentAdapter):
    """
    JSON REST endpoint.

    An object response becomes one item; an array response becomes one
    item per element. Nested values are flattened into "path: value"
    lines.
    """

    source_type = SourceType.API

    async def _fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        response = await self._get(locator, headers={"Accept": "application/json"})
        try:
            data = response.json()
        except ValueError as e:
            raise FetchError("API response is not valid JSON", locator=locator, cause=e)

        elements = data if isinstance(data, list) else [data]
        items = []
        for index, element in enumerate(elements):
            title = f"API data from {locator}"
            if len(elements) > 1:
                title += f" [{index}]"
            items.append(
                ContentItem(
                    title=title,
                    text=self._truncate(flatten_json(element)),
                    source_id=source_id,
                    origin_locator=locator,
                )
            )
        return items


def flatten_json(value: Any, prefix: str = "") -> str:
    """Render JSON data as stable "path: value" lines."""
    lines: list[str] = []

    if isinstance(value, dict):
        for key in sorted(value):
            path = f"{prefix}.{key}" if prefix else str(key)
            lines.append(flatten_json(value[key], path))
    elif isinstance(value, list):
        for i, element in enumerate(value):
            lines.append(flatten_json(element, f"{prefix}[{i}]"))
    elif value is None:
        return ""
    else:
        text = value if isinstance(value, str) else json.dumps(value)
        return f"{prefix}: {text}" if prefix else text

    return "\n".join(line for line in lines if line)


class WebAdapter(BaseContentAdapter):
    """Single HTML page, reduced to its visible text."""

    source_type = SourceType.WEB

    async def _fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        response = await self._get(locator)
        title, text = html_to_text(response.text)

        return [
            ContentItem(
                title=title or locator,
                text=self._truncate(text),
                source_id=source_id,
                origin_locator=str(response.url),
            )
        ]


class PDFAdapter(BaseContentAdapter):
    """
    PDF document from a URL or a local path.

    Pages that fail to extract are skipped; the document becomes one item.
    """

    source_type = SourceType.PDF

    async def _fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        if urlparse(locator).scheme in ("http", "https"):
            response = await self._get(locator)
            data = response.content
        else:
            path = Path(locator.removeprefix("file://"))
            data = await asyncio.to_thread(path.read_bytes)

        title, text = await asyncio.to_thread(self._extract, data)

        return [
            ContentItem(
                title=title or Path(urlparse(locator).path).stem or locator,
                text=self._truncate(text),
                source_id=source_id,
                origin_locator=locator,
            )
        ]

    @staticmethod
    def _extract(data: bytes) -> tuple[str, str]:
        reader = PdfReader(io.BytesIO(data))

        pages = []
        for page in reader.pages:
            try:
                text = page.extract_text() or ""
            except Exception as e:
                logger.debug("Skipping unreadable PDF page", error=str(e))
                continue
            if text.strip():
                pages.append(text.strip())

        title = ""
        if reader.metadata is not None and reader.metadata.title:
            title = str(reader.metadata.title)
        return title, "\n\n".join(pages)


class VideoAdapter(BaseContentAdapter):
    """
    YouTube video metadata through the Data API v3 videos endpoint.

    Accepts a bare video id, a watch URL or a youtu.be short link.
    Text is the title plus description.
    """

    source_type = SourceType.VIDEO

    @staticmethod
    def video_id(locator: str) -> str:
        parsed = urlparse(locator)
        if not parsed.scheme:
            return locator.strip()
        if parsed.netloc.endswith("youtu.be"):
            return parsed.path.lstrip("/")
        query = parse_qs(parsed.query)
        if "v" in query:
            return query["v"][0]
        # /embed/<id>, /shorts/<id>
        return parsed.path.rstrip("/").rsplit("/", 1)[-1]

    async def _fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        if self.settings.youtube_api_key is None:
            raise FetchError("YouTube API key is not configured", locator=locator)

        video_id = self.video_id(locator)
        if not video_id:
            raise FetchError("Could not determine a video id", locator=locator)

        response = await self._get(
            f"{self.settings.youtube_api_url.rstrip('/')}/videos",
            params={
                "part": "snippet",
                "id": video_id,
                "key": self.settings.youtube_api_key.get_secret_value(),
            },
        )
        videos = response.json().get("items", [])
        if not videos:
            raise FetchError(f"Video {video_id} not found", locator=locator)

        snippet = videos[0].get("snippet", {})
        title = snippet.get("title", "")
        description = snippet.get("description", "")

        return [
            ContentItem(
                title=title,
                text=self._truncate(f"{title}\n\n{description}".strip()),
                source_id=source_id,
                origin_locator=f"https://www.youtube.com/watch?v={video_id}",
                published_at=_parse_iso(snippet.get("publishedAt")),
            )
        ]


class FeedAdapter(BaseContentAdapter):
    """RSS or Atom feed, one item per entry."""

    source_type = SourceType.FEED

    async def _fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        response = await self._get(locator)
        feed = feedparser.parse(response.content)

        if feed.bozo and not feed.entries:
            raise FetchError(
                f"Unparseable feed: {feed.get('bozo_exception')}",
                locator=locator,
            )

        items = []
        for entry in feed.entries:
            text = entry_text(entry)
            items.append(
                ContentItem(
                    title=entry.get("title", ""),
                    text=self._truncate(text),
                    source_id=source_id,
                    origin_locator=entry.get("link", locator),
                    published_at=_struct_to_datetime(
                        entry.get("published_parsed") or entry.get("updated_parsed")
                    ),
                )
            )
        return items


def entry_text(entry: Any) -> str:
    """Best available body of a feed entry, as plain text."""
    body = ""
    if entry.get("content"):
        body = entry["content"][0].get("value", "")
    body = body or entry.get("summary", "") or entry.get("description", "")

    if "<" in body:
        _, body = html_to_text(f"<body>{body}</body>")
    return body.strip()


def _struct_to_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime(*value[:6], tzinfo=timezone.utc)


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class AdapterRegistry:
    """Maps each source type to the adapter that fetches it."""

    def __init__(self, adapters: dict[SourceType, ContentAdapterProtocol] | None = None):
        self._adapters: dict[SourceType, ContentAdapterProtocol] = dict(adapters or {})

    @classmethod
    def default(
        cls,
        settings: AdapterSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "AdapterRegistry":
        """Registry with one built-in adapter per source type, sharing a client."""
        settings = settings or AdapterSettings()
        adapter_classes = [APIAdapter, WebAdapter, PDFAdapter, VideoAdapter, FeedAdapter]
        return cls({a.source_type: a(settings, client) for a in adapter_classes})

    def get(self, source_type: SourceType) -> ContentAdapterProtocol:
        adapter = self._adapters.get(source_type)
        if adapter is None:
            raise SourceError(
                f"No adapter registered for source type {source_type.value}",
                context={"source_type": source_type.value},
            )
        return adapter

    def supports(self, source_type: SourceType) -> bool:
        return source_type in self._adapters

    async def close(self) -> None:
        closed: set[int] = set()
        for adapter in self._adapters.values():
            close = getattr(adapter, "close", None)
            if close is not None and id(adapter) not in closed:
                closed.add(id(adapter))
                await close()
