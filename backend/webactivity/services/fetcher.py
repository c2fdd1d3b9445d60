"""Page fetching via the Firecrawl API."""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import html2text
from firecrawl import Firecrawl

from webactivity.config import Settings
from webactivity.exceptions import FetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchedPage:
    """Content retrieved for a single URL."""
    url: str
    title: str
    description: str
    text: str
    html: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def word_count(self) -> int:
        return count_words(self.text)

    @property
    def content_hash(self) -> str:
        return content_hash(self.text)


class Fetcher(Protocol):
    """Anything that can turn a URL into a FetchedPage."""

    def fetch(self, url: str) -> FetchedPage:
        """Fetch a page or raise FetchError."""
        ...


def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


def content_hash(text: str) -> str:
    """SHA-256 of the page text, the snapshot change signal."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class FirecrawlFetcher:
    """Scrape single pages using Firecrawl for content extraction."""

    def __init__(self, settings: Settings, client: Any | None = None):
        """Initialize fetcher with settings.

        Args:
            settings: Application settings containing the Firecrawl API key
            client: Optional preconfigured Firecrawl client
        """
        if client is None:
            if not settings.firecrawl_api_key:
                raise ValueError("FIRECRAWL_API_KEY is required")
            client = Firecrawl(api_key=settings.firecrawl_api_key)

        self.client = client
        self.wait_for_ms = settings.firecrawl_wait_for_ms

        # Fallback when Firecrawl returns HTML but no markdown
        self.html_converter = html2text.HTML2Text()
        self.html_converter.ignore_links = False
        self.html_converter.ignore_images = True
        self.html_converter.body_width = 0  # No line wrapping

    def fetch(self, url: str) -> FetchedPage:
        """Scrape a single page.

        Args:
            url: The URL to scrape

        Returns:
            The page's markdown text plus title, description and HTML

        Raises:
            FetchError: If the scrape fails or returns no content
        """
        logger.info(f"Scraping page: {url}")

        try:
            doc = self.client.scrape(
                url=url,
                formats=["markdown", "html"],
                only_main_content=True,
                # Wait for JavaScript to render before capturing content
                wait_for=self.wait_for_ms,
                # Bypass Firecrawl's cache to get fresh content
                max_age=0,
            )
        except Exception as e:
            logger.error(f"Error scraping {url}: {e}")
            raise FetchError(url, e) from e

        html = getattr(doc, "html", None)
        markdown = getattr(doc, "markdown", None) or ""
        if not markdown.strip() and html:
            markdown = self.html_converter.handle(html)
        if not markdown.strip():
            raise FetchError(url, "empty content")

        meta = getattr(doc, "metadata", None)
        title = getattr(meta, "title", "") or ""
        description = getattr(meta, "description", "") or ""
        keywords = getattr(meta, "keywords", None)

        return FetchedPage(
            url=url,
            title=title,
            description=description,
            text=markdown,
            html=html,
            metadata={"keywords": keywords} if keywords else {},
        )
