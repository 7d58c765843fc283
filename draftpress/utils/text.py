"""Markup-stripping and excerpt helpers shared by assembly and delivery."""

import re

from bs4 import BeautifulSoup


def strip_markup(markup: str) -> str:
    """Return the visible text of an HTML fragment with whitespace collapsed."""
    if not markup:
        return ""
    text = BeautifulSoup(markup, "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def generate_excerpt(markup: str, max_length: int = 160, word_boundary: bool = True) -> str:
    """Plain-text excerpt of at most ``max_length`` characters plus an ellipsis.

    With ``word_boundary`` the cut is moved back to the last complete word.
    """
    text = strip_markup(markup)
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    if word_boundary:
        last_space = truncated.rfind(" ")
        if last_space > 0:
            truncated = truncated[:last_space]
    return truncated.rstrip() + "..."
