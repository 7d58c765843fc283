"""Meta generator backed by the Claude API.

Treated as unreliable: every failure surfaces as ``GenerationError`` and
callers fall back to deterministic values.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

import anthropic

from draftpress.config import GeneratorSettings

log = logging.getLogger(__name__)

META_TITLE_MAX = 60
META_DESCRIPTION_MAX = 160

SYSTEM_PROMPT = (
    "You write SEO metadata for blog posts. Answer with exactly two lines:\n"
    "META_TITLE: <at most 60 characters>\n"
    "META_DESCRIPTION: <150-160 characters, includes the focus keyword>"
)


class GenerationError(Exception):
    pass


@dataclass
class GeneratedText:
    content: str
    word_count: int


class MetaGenerator:
    def __init__(self, settings: GeneratorSettings | None = None, client=None):
        self.settings = settings or GeneratorSettings()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            api_key = os.getenv("ANTHROPIC_API_KEY", "")
            if not api_key:
                raise GenerationError("ANTHROPIC_API_KEY is not set")
            self._client = anthropic.Anthropic(api_key=api_key)
        return self._client

    def generate(self, prompt: str, tenant_context: str = "") -> GeneratedText:
        system = SYSTEM_PROMPT
        if tenant_context:
            system = f"{system}\n\nAbout the company:\n{tenant_context}"
        try:
            response = self.client.messages.create(
                model=self.settings.model,
                max_tokens=self.settings.max_tokens,
                temperature=self.settings.temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
            text = response.content[0].text.strip()
        except anthropic.APIError as e:
            log.error(f"Claude API error: {e}")
            raise GenerationError(f"Claude API error: {e}") from e
        except (IndexError, AttributeError) as e:
            raise GenerationError(f"Unexpected Claude response: {e}") from e
        if not text:
            raise GenerationError("Claude returned an empty response")
        return GeneratedText(content=text, word_count=len(text.split()))

    def generate_meta(self, title: str, focus_keyword: str = "", body_text: str = "",
                      tenant_context: str = "") -> dict:
        """Return ``{"meta_title", "meta_description"}``; raises GenerationError."""
        prompt = (
            f"Title: {title}\n"
            f"Focus keyword: {focus_keyword or 'none'}\n\n"
            f"Article opening:\n{body_text[:2000]}"
        )
        generated = self.generate(prompt, tenant_context)

        title_match = re.search(r"META_TITLE:\s*(.+)", generated.content, re.IGNORECASE)
        desc_match = re.search(r"META_DESCRIPTION:\s*(.+)", generated.content, re.IGNORECASE)
        if not desc_match:
            raise GenerationError("Claude response has no META_DESCRIPTION line")

        meta_title = title_match.group(1).strip() if title_match else title
        meta_description = desc_match.group(1).strip()
        if len(meta_title) > META_TITLE_MAX:
            meta_title = meta_title[:META_TITLE_MAX - 3].rstrip() + "..."
        if len(meta_description) > META_DESCRIPTION_MAX:
            meta_description = meta_description[:META_DESCRIPTION_MAX - 3].rstrip() + "..."
        return {"meta_title": meta_title, "meta_description": meta_description}
