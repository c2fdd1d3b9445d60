"""LLM prompts for page enrichment."""

from webactivity.prompts.page_categorization import PAGE_CATEGORIZATION_PROMPT
from webactivity.prompts.page_summary import PAGE_SUMMARY_PROMPT

__all__ = [
    "PAGE_CATEGORIZATION_PROMPT",
    "PAGE_SUMMARY_PROMPT",
]
