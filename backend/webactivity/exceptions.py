"""Error types raised by the content sync pipeline."""


class ReconciliationError(Exception):
    """Base class for content sync failures."""


class UnknownMarketError(ReconciliationError, ValueError):
    """Raised when a market id is not in the market table."""

    def __init__(self, market: str):
        self.market = market
        super().__init__(f"Unknown market: {market}")


class SitemapFetchError(ReconciliationError):
    """The sitemap for a market could not be fetched or parsed."""

    def __init__(self, market: str, cause: Exception | str):
        self.market = market
        self.cause = cause
        super().__init__(f"Sitemap fetch failed for {market}: {cause}")


class FetchError(ReconciliationError):
    """A single page could not be fetched."""

    def __init__(self, url: str, cause: Exception | str):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to fetch {url}: {cause}")


class EnrichmentError(ReconciliationError):
    """An AI summary or categorization call failed for a page."""

    def __init__(self, url: str, step: str, cause: Exception | str):
        self.url = url
        self.step = step
        self.cause = cause
        super().__init__(f"{step.capitalize()} failed for {url}: {cause}")


class PersistenceError(ReconciliationError):
    """A write to the content store failed. Never swallowed."""
