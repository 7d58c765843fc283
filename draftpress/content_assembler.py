"""Content Assembler: merges ordered content blocks into one post body."""

from __future__ import annotations

import html
import logging
import re

import markdown as md_lib

from draftpress.models import (
    AssembledDocument,
    BlockKind,
    Citation,
    ContentBlock,
    ContentMetrics,
)
from draftpress.utils.text import generate_excerpt, strip_markup

log = logging.getLogger(__name__)

DEFAULT_ALT_TEXT = "Blog image"
META_DESCRIPTION_LENGTH = 160

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_BLOCK_TAG = re.compile(r"^\s*<(p|div|ul|ol|h[1-6]|blockquote|pre|figure|table)\b", re.IGNORECASE)


def select_blocks(blocks) -> list[ContentBlock]:
    """Selected blocks only, in render order (ties broken by block id)."""
    return sorted((b for b in blocks if b.selected), key=lambda b: b.sort_key)


class ContentAssembler:
    """Pure block-to-markup assembly. No I/O."""

    def assemble(self, blocks, focus_keyword: str = "", target_word_count: int | None = None,
                 meta_title: str | None = None, meta_description: str | None = None,
                 internal_links=(), external_links=()) -> AssembledDocument:
        blocks = list(blocks)
        ordered = select_blocks(blocks)
        skipped = len(blocks) - len(ordered)
        if skipped:
            log.debug(f"Skipping {skipped} unselected blocks")

        parts = [self.render_block(block) for block in ordered]
        parts = [p for p in parts if p]

        citations = self._collect_citations(ordered)
        if citations:
            parts.append(self.render_link_section(
                "Sources",
                [{"url": c.url, "title": c.title or c.url, "description": c.description}
                 for c in citations],
            ))
        if internal_links:
            parts.append(self.render_link_section("Related Articles", internal_links))
        if external_links:
            parts.append(self.render_link_section("Additional Resources", external_links, external=True))

        body = "\n".join(parts)
        title = self.derive_title(ordered, focus_keyword)
        metrics = self.compute_metrics(ordered, body, focus_keyword, target_word_count)

        log.info(
            f"Assembled {len(ordered)} blocks: '{title}' "
            f"({metrics.word_count} words, {metrics.completion_percentage}% complete)"
        )
        return AssembledDocument(
            title=title,
            body_markup=body,
            meta_title=meta_title or title,
            meta_description=meta_description or generate_excerpt(body, META_DESCRIPTION_LENGTH),
            word_count=metrics.word_count,
            metrics=metrics,
        )

    def render_block(self, block: ContentBlock) -> str:
        content = (block.content or "").strip()
        if not content:
            return ""

        level = block.kind.heading_level
        if level:
            return f"<h{level}>{content}</h{level}>"

        if block.kind == BlockKind.PARAGRAPH:
            return self._render_paragraph(content)

        if block.kind == BlockKind.LIST:
            return self._render_list(content)

        if block.kind == BlockKind.IMAGE:
            alt = block.metadata.alt_text or DEFAULT_ALT_TEXT
            img = f'<img src="{html.escape(content, quote=True)}" alt="{html.escape(alt, quote=True)}" />'
            caption = ""
            if block.metadata.caption:
                caption = f"<figcaption>{html.escape(block.metadata.caption)}</figcaption>"
            return f'<figure class="wp-block-image">{img}{caption}</figure>'

        if block.kind == BlockKind.QUOTE:
            return f"<blockquote>{content}</blockquote>"

        if block.kind == BlockKind.CODE:
            return f"<pre><code>{html.escape(block.content, quote=False)}</code></pre>"

        return ""

    def _render_paragraph(self, content: str) -> str:
        if _BLOCK_TAG.match(content):
            return content
        rendered = md_lib.markdown(content).strip()
        if not rendered.startswith("<p>"):
            rendered = f"<p>{rendered}</p>"
        return rendered

    def _render_list(self, content: str) -> str:
        if "<li" in content.lower():
            return f"<ul>{content}</ul>"
        items = [_LIST_MARKER.sub("", line).strip() for line in content.splitlines()]
        items = [_inline_markdown(item) for item in items if item]
        return "<ul>" + "".join(f"<li>{item}</li>" for item in items) + "</ul>"

    def render_link_section(self, heading: str, links, external: bool = False) -> str:
        rel = ' rel="noopener noreferrer"' if external else ""
        lines = [f"<h3>{html.escape(heading)}</h3>", "<ul>"]
        for link in links:
            url = html.escape(link.get("url", ""), quote=True)
            title = html.escape(link.get("title") or link.get("url", ""))
            description = link.get("description") or ""
            suffix = f" - {html.escape(description)}" if description else ""
            lines.append(f'<li><a href="{url}" target="_blank"{rel}>{title}</a>{suffix}</li>')
        lines.append("</ul>")
        return "\n".join(lines)

    def derive_title(self, ordered_blocks, focus_keyword: str = "") -> str:
        for block in ordered_blocks:
            if block.kind == BlockKind.H1 and block.content.strip():
                return strip_markup(block.content)
        if focus_keyword.strip():
            return f"{focus_keyword.strip()} Guide"
        return "Untitled Draft"

    def compute_metrics(self, blocks, markup: str, focus_keyword: str = "",
                        target_word_count: int | None = None) -> ContentMetrics:
        """Word count comes from block metadata, never from the markup."""
        word_count = sum(b.metadata.word_count or 0 for b in blocks)
        return ContentMetrics(
            word_count=word_count,
            keyword_density=keyword_density(markup, focus_keyword, word_count),
            completion_percentage=completion_percentage(word_count, target_word_count),
        )

    @staticmethod
    def _collect_citations(blocks) -> list[Citation]:
        seen = set()
        citations = []
        for block in blocks:
            for citation in block.metadata.citations:
                if citation.url not in seen:
                    seen.add(citation.url)
                    citations.append(citation)
        return citations


def keyword_density(markup: str, focus_keyword: str, word_count: int) -> float:
    keyword = (focus_keyword or "").strip()
    if not keyword or word_count <= 0:
        return 0.0
    text = strip_markup(markup)
    pattern = re.compile(
        r"(?<!\w)" + r"\s+".join(re.escape(w) for w in keyword.split()) + r"(?!\w)",
        re.IGNORECASE,
    )
    occurrences = len(pattern.findall(text))
    return occurrences / word_count


def completion_percentage(current_words: int, target_word_count: int | None) -> float:
    if not target_word_count or target_word_count <= 0:
        return 0.0
    return round(min(100.0, current_words / target_word_count * 100), 1)


def _inline_markdown(text: str) -> str:
    rendered = md_lib.markdown(text).strip()
    if rendered.startswith("<p>") and rendered.endswith("</p>"):
        return rendered[3:-4]
    return rendered
