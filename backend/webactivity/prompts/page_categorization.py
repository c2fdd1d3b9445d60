"""Prompt for assigning a page to one content category."""

PAGE_CATEGORIZATION_PROMPT = """Analyze this medical content page and categorize it.

## Page
Title: {title}
URL: {url}
Content:
{content}

## Categories (choose exactly ONE)
{categories}

## Content Types (choose exactly ONE)
{content_types}

## Output
Return JSON:
{{
  "category": "exact category name from the list above",
  "content_type": "exact type from the list above",
  "confidence": 0.0,
  "keywords": ["relevant", "keywords", "found"]
}}

## Rules
- Choose the PRIMARY focus if the page covers several topics
- Use "General Information" only if no other category fits
- Confidence is between 0.0 and 1.0
- Return ONLY valid JSON, no markdown code fences"""
