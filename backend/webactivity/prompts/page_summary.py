"""Prompts for summarizing a single page."""

PAGE_SUMMARY_PROMPT = """Summarize this health information web page in 2-3 sentences.

## Page

Language: {language}
Content:
{content}

## Output Format

Return ONLY a valid JSON object:
{{
  "original": "2-3 sentence summary in {language}",
  "english": "The same summary in English"
}}

## Important

- Both summaries describe the same content
- If the language is English, both fields hold the same summary
- Return ONLY valid JSON, no markdown code fences"""
