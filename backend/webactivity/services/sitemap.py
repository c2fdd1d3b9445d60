"""Sitemap reading service."""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urljoin, urlparse
from xml.etree import ElementTree

import httpx

from webactivity.exceptions import SitemapFetchError, UnknownMarketError
from webactivity.markets import MARKETS, MarketConfig
from webactivity.models import URL_MAX_LENGTH
from webactivity.services.page_classifier import PageClassifier, get_classifier

logger = logging.getLogger(__name__)

# InvalidURL (e.g. a bad port in a <loc>) is not an HTTPError subclass
FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ElementTree.ParseError)


@dataclass
class SitemapEntry:
    """A URL listed in a market sitemap."""
    url: str
    last_modified: datetime | None = None
    changefreq: str | None = None
    priority: str | None = None
    content_type: str = "other"
    is_article: bool = False


class SitemapReader:
    """Read market sitemaps into SitemapEntry sequences."""

    # XML namespaces used in sitemaps
    NAMESPACES = {
        "sm": "http://www.sitemaps.org/schemas/sitemap/0.9",
    }

    # Locations tried in order under each candidate base
    SITEMAP_PATHS = [
        "sitemap.xml",
        "sitemap_index.xml",
        "post-sitemap.xml",
        "page-sitemap.xml",
        "news-sitemap.xml",
    ]

    def __init__(
        self,
        user_agent: str,
        timeout: float = 30.0,
        markets: Mapping[str, MarketConfig] | None = None,
        classifier: PageClassifier | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self.markets = markets if markets is not None else MARKETS
        self.classifier = classifier or get_classifier()
        self.transport = transport

    def iter_entries(self, market: str) -> Iterator[SitemapEntry]:
        """Lazily yield the entries of a market's sitemap.

        Every call fetches the sitemap again. Sitemap indexes are followed
        recursively; a broken child sitemap is logged and skipped.

        Raises:
            UnknownMarketError: If the market is not configured.
            SitemapFetchError: If no sitemap can be fetched and parsed.
        """
        config = self._get_config(market)
        with self._client() as client:
            root_url, root = self._locate_sitemap(client, market, config)
            logger.info(f"[{market}] Using sitemap {root_url}")

            seen: set[str] = set()
            for entry in self._iter_document(client, market, root, depth=0):
                if entry.url in seen or not self._is_allowed(entry.url, config):
                    continue
                seen.add(entry.url)
                yield entry

    def get_entries(self, market: str) -> list[SitemapEntry]:
        """Fetch the full entry list for a market."""
        return list(self.iter_entries(market))

    def _get_config(self, market: str) -> MarketConfig:
        if market not in self.markets:
            raise UnknownMarketError(market)
        return self.markets[market]

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self.transport,
        )

    def candidate_urls(self, config: MarketConfig) -> list[str]:
        """Sitemap URLs to try for a market, most specific first."""
        parsed = urlparse(config.url)
        site_root = f"{parsed.scheme}://{parsed.netloc}/"
        # Directory of the market URL (handles both ".../en/" and ".../be/nl.html")
        market_dir = urljoin(config.url, ".")

        bases = [market_dir] if market_dir != site_root else []
        bases.append(site_root)

        return [urljoin(base, path) for base in bases for path in self.SITEMAP_PATHS]

    def _locate_sitemap(
        self,
        client: httpx.Client,
        market: str,
        config: MarketConfig,
    ) -> tuple[str, ElementTree.Element]:
        """Return the first candidate sitemap that fetches and parses."""
        last_error: Exception | None = None
        for url in self.candidate_urls(config):
            try:
                return url, self._fetch_xml(client, url)
            except FETCH_ERRORS as e:
                logger.debug(f"[{market}] Sitemap candidate {url} failed: {e}")
                last_error = e

        raise SitemapFetchError(market, last_error or "no sitemap found")

    def _fetch_xml(self, client: httpx.Client, url: str) -> ElementTree.Element:
        response = client.get(url)
        response.raise_for_status()
        return ElementTree.fromstring(response.content)

    def _iter_document(
        self,
        client: httpx.Client,
        market: str,
        root: ElementTree.Element,
        depth: int,
    ) -> Iterator[SitemapEntry]:
        """Yield entries from a parsed sitemap or sitemap index."""
        # Check if this is a sitemap index
        if root.tag.endswith("sitemapindex"):
            if depth >= 3:
                logger.warning(f"[{market}] Sitemap index nested too deep, stopping")
                return
            for loc in root.findall(".//sm:sitemap/sm:loc", self.NAMESPACES):
                if not loc.text:
                    continue
                child_url = loc.text.strip()
                try:
                    child = self._fetch_xml(client, child_url)
                except FETCH_ERRORS as e:
                    logger.warning(f"[{market}] Failed to fetch sub-sitemap {child_url}: {e}")
                    continue
                yield from self._iter_document(client, market, child, depth + 1)
            return

        # Regular sitemap
        for url_elem in root.findall(".//sm:url", self.NAMESPACES):
            loc = url_elem.find("sm:loc", self.NAMESPACES)
            if loc is None or not loc.text:
                continue
            url = loc.text.strip()
            if len(url) > URL_MAX_LENGTH:
                logger.warning(f"[{market}] Skipping over-long URL: {url[:100]}...")
                continue
            yield SitemapEntry(
                url=url,
                last_modified=self._parse_lastmod(self._text(url_elem, "sm:lastmod")),
                changefreq=self._text(url_elem, "sm:changefreq"),
                priority=self._text(url_elem, "sm:priority"),
                content_type=self.classifier.classify_url(url),
                is_article=self.classifier.is_article_url(url),
            )

    def _text(self, elem: ElementTree.Element, path: str) -> str | None:
        child = elem.find(path, self.NAMESPACES)
        if child is None or not child.text:
            return None
        return child.text.strip()

    def _is_allowed(self, url: str, config: MarketConfig) -> bool:
        """Markets on a shared domain only keep their own subpaths."""
        if not config.allowed_paths:
            return True
        path = urlparse(url).path
        return any(path.startswith(prefix) for prefix in config.allowed_paths)

    def _parse_lastmod(self, lastmod_str: str | None) -> datetime | None:
        """Parse lastmod date string as an aware UTC datetime."""
        if not lastmod_str:
            return None

        value = lastmod_str.strip()
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"

        formats = [
            "%Y-%m-%dT%H:%M:%S%z",
            "%Y-%m-%dT%H:%M:%S.%f%z",
            "%Y-%m-%dT%H:%M%z",
            "%Y-%m-%dT%H:%M:%S",
            "%Y-%m-%d",
        ]

        for fmt in formats:
            try:
                parsed = datetime.strptime(value, fmt)
            except ValueError:
                continue
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)

        return None
