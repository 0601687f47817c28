"""Markdown → Telegram MarkdownV2 conversion layer.

Wraps `telegramify_markdown` so menu headings written in standard Markdown
(`**bold**`) and catalog names with MarkdownV2 reserved characters (`C++`,
`Intro (Part 1)`) are escaped correctly. Callers fall back to plain text
when Telegram still rejects the result.

Key function: convert_markdown(text) → MarkdownV2 string.
"""

import telegramify_markdown


def convert_markdown(text: str) -> str:
    """Convert standard Markdown to Telegram MarkdownV2 format."""
    return telegramify_markdown.markdownify(text).rstrip("\n")
