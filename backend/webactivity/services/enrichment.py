"""AI summaries and categories for fetched pages.

Enrichment is best effort: callers record failures and keep the page
snapshot. Pages without a summary can be enriched again later.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Protocol

from webactivity.config import Settings
from webactivity.prompts import PAGE_CATEGORIZATION_PROMPT, PAGE_SUMMARY_PROMPT
from webactivity.services.page_classifier import PageClassifier, get_classifier

logger = logging.getLogger(__name__)

# Fixed seed for deterministic output (OpenAI only)
DETERMINISTIC_SEED = 42

DEFAULT_CATEGORY = "General Information"

# Mutually exclusive content categories with their matching keywords
CONTENT_CATEGORIES: dict[str, dict] = {
    "HCP: Speak to Dr": {
        "description": "Content encouraging patients to speak with healthcare providers",
        "keywords": ["speak to doctor", "consult physician", "medical advice", "healthcare provider", "hcp", "discuss with doctor"],
    },
    "Contact HCP": {
        "description": "HCP locator tools and contact information",
        "keywords": ["find doctor", "locate physician", "hcp locator", "doctor near me", "specialist finder", "clinic locations"],
    },
    "CVD": {
        "description": "Cardiovascular disease and obesity-related heart conditions",
        "keywords": ["cardiovascular", "heart disease", "blood pressure", "cholesterol", "stroke", "heart health", "cardiac"],
    },
    "What is Obesity": {
        "description": "Educational content about obesity as a disease",
        "keywords": ["obesity definition", "overweight", "adiposity", "chronic disease", "obesity causes", "weight classifications"],
    },
    "BMI": {
        "description": "BMI calculators, charts, and body mass index information",
        "keywords": ["bmi", "body mass index", "bmi calculator", "weight calculator", "bmi chart", "calculate bmi", "imc"],
    },
    "Menopause": {
        "description": "Obesity and weight management during menopause",
        "keywords": ["menopause", "hormonal changes", "women health", "perimenopause", "post-menopausal", "hormones"],
    },
    "Joint Pain": {
        "description": "Obesity-related joint problems and mobility issues",
        "keywords": ["joint pain", "arthritis", "knee pain", "mobility", "orthopedic", "back pain", "inflammation"],
    },
    "Success Stories": {
        "description": "Patient testimonials and weight loss journeys",
        "keywords": ["patient story", "success story", "testimonial", "journey", "transformation", "real people", "case study"],
    },
    "Diet & Exercise": {
        "description": "Lifestyle modifications for weight management",
        "keywords": ["diet", "nutrition", "exercise", "physical activity", "lifestyle", "healthy eating", "workout", "meal plan"],
    },
    "Treating Obesity": {
        "description": "Medical treatments and interventions for obesity",
        "keywords": ["treatment", "medication", "wegovy", "mounjaro", "ozempic", "surgery", "bariatric", "therapy", "intervention"],
    },
    DEFAULT_CATEGORY: {
        "description": "Other obesity-related content not fitting above categories",
        "keywords": ["information", "resources", "support", "faq", "help", "about"],
    },
}

CONTENT_TYPES: dict[str, str] = {
    "article": "Long-form educational content",
    "tool": "Interactive tools like calculators",
    "video": "Video content",
    "infographic": "Visual information graphics",
    "homepage": "Main landing pages",
    "navigation": "Navigation and utility pages",
    "form": "Contact or registration forms",
    "news": "News and updates",
    "research": "Scientific studies and research",
    "faq": "Frequently asked questions",
}


@dataclass
class Summary:
    """Page summary in the market language and in English."""
    original: str
    english: str | None = None


@dataclass
class Categorization:
    """Category assignment for a page."""
    category: str
    content_type: str
    confidence: float
    keywords: list[str] = field(default_factory=list)


class Enricher(Protocol):
    """Narrow contract for the enrichment collaborators."""

    def summarize(self, text: str, language: str) -> Summary:
        ...

    def categorize(self, text: str, title: str, url: str) -> Categorization:
        ...


def is_english(language: str) -> bool:
    return language == "en" or language.startswith("en-")


class KeywordEnricher:
    """Enrichment without an LLM: text snippets and keyword categories."""

    SNIPPET_CHARS = 200

    def __init__(self, classifier: PageClassifier | None = None):
        self.classifier = classifier or get_classifier()

    def summarize(self, text: str, language: str) -> Summary:
        """Use the opening of the page as its summary."""
        snippet = " ".join(text.split())[: self.SNIPPET_CHARS]
        if len(text) > self.SNIPPET_CHARS:
            snippet += "..."
        return Summary(
            original=snippet,
            english=snippet if is_english(language) else None,
        )

    def categorize(self, text: str, title: str, url: str) -> Categorization:
        """Pick the category whose keywords match the page most often."""
        haystack = f"{title} {text}".lower()
        url_lower = url.lower()

        category = DEFAULT_CATEGORY
        confidence = 0.5
        found: list[str] = []

        for name, info in CONTENT_CATEGORIES.items():
            matches = [kw for kw in info["keywords"] if kw in haystack]
            if len(matches) > len(found):
                category = name
                confidence = min(0.9, 0.5 + len(matches) * 0.1)
                found = matches

        # Strong signals override keyword counts
        if (
            "bmi calculator" in haystack
            or "body mass index" in haystack
            or "calculate bmi" in haystack
            or "/bmi" in url_lower
        ):
            category, confidence = "BMI", 0.95
        elif "find a doctor" in haystack or "locate physician" in haystack:
            category, confidence = "Contact HCP", 0.95
        elif "speak to your doctor" in haystack or "consult your physician" in haystack:
            category, confidence = "HCP: Speak to Dr", 0.95

        return Categorization(
            category=category,
            content_type=self.classifier.detect_content_type(url, text),
            confidence=confidence,
            keywords=found,
        )


class LLMEnricher:
    """Summarizes and categorizes pages using LLM APIs."""

    def __init__(self, settings: Settings, classifier: PageClassifier | None = None):
        self.settings = settings
        self.classifier = classifier or get_classifier()
        self._openai_client = None
        self._anthropic_client = None

    def _get_openai_client(self):
        """Lazy load OpenAI client."""
        if self._openai_client is None:
            from openai import OpenAI
            self._openai_client = OpenAI(api_key=self.settings.openai_api_key)
        return self._openai_client

    def _get_anthropic_client(self):
        """Lazy load Anthropic client."""
        if self._anthropic_client is None:
            from anthropic import Anthropic
            self._anthropic_client = Anthropic(api_key=self.settings.anthropic_api_key)
        return self._anthropic_client

    def _call_openai(self, prompt: str, model: str = "gpt-4o-mini") -> str:
        """Call OpenAI API with deterministic settings."""
        client = self._get_openai_client()

        response = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
            seed=DETERMINISTIC_SEED,
            response_format={"type": "json_object"},
        )

        return response.choices[0].message.content

    def _call_anthropic(self, prompt: str, model: str = "claude-3-haiku-20240307") -> str:
        """Call Anthropic API."""
        client = self._get_anthropic_client()

        response = client.messages.create(
            model=model,
            max_tokens=1024,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
        )

        return response.content[0].text

    def _call_llm(self, prompt: str) -> str:
        """Call configured LLM provider."""
        provider = self.settings.llm_provider
        model = self.settings.llm_model

        logger.info(f"Calling {provider} {model}...")

        if provider == "openai":
            return self._call_openai(prompt, model)
        elif provider == "anthropic":
            return self._call_anthropic(prompt, model)
        else:
            raise ValueError(f"Unknown LLM provider: {provider}")

    def _parse_json(self, response: str) -> dict:
        """Parse JSON from LLM response, handling code fences."""
        content = response.strip()

        # Remove markdown code fences if present
        if content.startswith("```"):
            first_newline = content.find("\n")
            if first_newline != -1:
                content = content[first_newline + 1:]
            if content.endswith("```"):
                content = content[:-3].rstrip()

        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("Expected a JSON object from the LLM")
        return data

    def _truncate(self, text: str) -> str:
        return text[: self.settings.summary_max_chars]

    def summarize(self, text: str, language: str) -> Summary:
        """Summarize a page in its own language and in English."""
        prompt = PAGE_SUMMARY_PROMPT.format(
            language=language,
            content=self._truncate(text),
        )
        data = self._parse_json(self._call_llm(prompt))

        original = (data.get("original") or "").strip()
        english = (data.get("english") or "").strip() or None
        if not original:
            raise ValueError("LLM returned an empty summary")

        if is_english(language):
            english = english or original
        return Summary(original=original, english=english)

    def categorize(self, text: str, title: str, url: str) -> Categorization:
        """Assign one category and content type to a page."""
        prompt = PAGE_CATEGORIZATION_PROMPT.format(
            title=title,
            url=url,
            content=self._truncate(text),
            categories="\n".join(
                f"- {name}: {info['description']}" for name, info in CONTENT_CATEGORIES.items()
            ),
            content_types="\n".join(
                f"- {name}: {desc}" for name, desc in CONTENT_TYPES.items()
            ),
        )
        data = self._parse_json(self._call_llm(prompt))

        # Reject hallucinated categories and types
        category = data.get("category")
        if category not in CONTENT_CATEGORIES:
            category = DEFAULT_CATEGORY
        content_type = data.get("content_type")
        if content_type not in CONTENT_TYPES:
            content_type = self.classifier.detect_content_type(url, text)

        try:
            confidence = float(data.get("confidence", 0.8))
        except (TypeError, ValueError):
            confidence = 0.8

        keywords = data.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [k.strip() for k in keywords.split(",") if k.strip()]
        elif not isinstance(keywords, list):
            keywords = []
        return Categorization(
            category=category,
            content_type=content_type,
            confidence=max(0.0, min(1.0, confidence)),
            keywords=[str(k) for k in keywords][:20],
        )


def get_enricher(settings: Settings) -> Enricher:
    """Use the configured LLM provider, or keyword rules without an API key."""
    if settings.llm_provider == "openai" and settings.openai_api_key:
        return LLMEnricher(settings)
    if settings.llm_provider == "anthropic" and settings.anthropic_api_key:
        return LLMEnricher(settings)
    logger.warning("No LLM API key configured, using keyword enrichment")
    return KeywordEnricher()
