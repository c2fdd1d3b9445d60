"""Page classification: URL content types and on-page signals."""

import math
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup


class PageClassifier:
    """Classify sitemap URLs and extract content signals from fetched pages."""

    # URL patterns that indicate an article
    ARTICLE_URL_PATTERNS = [
        re.compile(r"/blog/", re.I),
        re.compile(r"/news/", re.I),
        re.compile(r"/article/", re.I),
        re.compile(r"/post/", re.I),
        re.compile(r"/stories/", re.I),
        re.compile(r"/insights/", re.I),
        re.compile(r"/updates/", re.I),
        re.compile(r"/\d{4}/\d{2}/"),  # Date paths like /2024/03/
        re.compile(r"/p/", re.I),
    ]

    # Utility pages are never worth tracking
    UTILITY_KEYWORDS = [
        "privacy", "terms", "cookie", "legal", "disclaimer", "contact",
        "about", "sitemap", "search", "404", "error", "login",
        "register", "account", "careers",
    ]

    PRODUCT_KEYWORDS = [
        "treatment", "product", "medicine", "therapy", "solution",
        "service", "wegovy", "mounjaro", "ozempic", "saxenda",
    ]

    HOME_PATHS = {"", "/", "/home", "/index"}

    WORDS_PER_MINUTE = 200

    def is_article_url(self, url: str) -> bool:
        """Guess whether a URL points to an article.

        Matches common article path segments, or a long hyphenated slug as
        the last path segment.
        """
        if any(pattern.search(url) for pattern in self.ARTICLE_URL_PATTERNS):
            return True

        segments = [s for s in urlparse(url).path.split("/") if s]
        if segments:
            last = segments[-1]
            return "-" in last and len(last) > 20
        return False

    def classify_url(self, url: str) -> str:
        """Classify a URL as home, utility, product, article or other."""
        url_lower = url.lower()
        path = urlparse(url_lower).path

        if path in self.HOME_PATHS:
            return "home"
        if any(keyword in url_lower for keyword in self.UTILITY_KEYWORDS):
            return "utility"
        if any(keyword in url_lower for keyword in self.PRODUCT_KEYWORDS):
            return "product"
        if self.is_article_url(url):
            return "article"
        return "other"

    def detect_content_type(self, url: str, text: str) -> str:
        """Detect the editorial content type from URL and text."""
        url_lower = url.lower()
        text_lower = text.lower()
        path = urlparse(url_lower).path

        if any(p in url_lower for p in ("/article", "/blog", "/news")):
            return "article"
        if "/calculator" in url_lower or "/tool" in url_lower:
            return "tool"
        if "/video" in url_lower or "video" in text_lower or "watch" in text_lower:
            return "video"
        if path in self.HOME_PATHS or path.endswith("/index") or path.endswith("/home"):
            return "homepage"
        if "/faq" in url_lower or "/questions" in url_lower:
            return "faq"
        if "/research" in url_lower or "/study" in url_lower:
            return "research"
        if "/contact" in url_lower or "/form" in url_lower:
            return "form"
        if len(text.split()) > 500:
            return "article"
        return "navigation"

    def extract_signals(self, url: str, text: str, html: str | None = None) -> dict:
        """Extract content signals used by the dashboard.

        Markup is preferred when available; plain text keywords are the
        fallback for pages fetched as markdown only.
        """
        text_lower = text.lower()
        word_count = len(text.split())

        has_video = "video" in text_lower or "watch" in text_lower
        has_form = "submit" in text_lower
        if html:
            soup = BeautifulSoup(html, "html.parser")
            has_video = has_video or bool(
                soup.find("video")
                or soup.select_one("iframe[src*='youtube'], iframe[src*='vimeo']")
            )
            has_form = has_form or soup.find("form") is not None

        return {
            "has_video": has_video,
            "has_calculator": (
                "calculator" in text_lower
                or "calculate" in text_lower
                or "calculator" in url.lower()
            ),
            "has_form": has_form,
            "has_references": (
                "reference" in text_lower
                or "citation" in text_lower
                or "[1]" in text_lower
            ),
            "word_count": word_count,
            "reading_time": math.ceil(word_count / self.WORDS_PER_MINUTE),
        }


# Singleton instance
_classifier: PageClassifier | None = None


def get_classifier() -> PageClassifier:
    """Get or create classifier singleton."""
    global _classifier
    if _classifier is None:
        _classifier = PageClassifier()
    return _classifier
