"""Tests for block assembly, title derivation and content metrics."""

import pytest

from draftpress.content_assembler import (
    ContentAssembler,
    completion_percentage,
    keyword_density,
    select_blocks,
)
from draftpress.models import BlockKind, BlockMetadata, Citation, ContentBlock


def block(id, kind, content, order, selected=True, **metadata):
    return ContentBlock(
        id=id,
        kind=BlockKind(kind),
        content=content,
        order=order,
        selected=selected,
        metadata=BlockMetadata(**metadata),
    )


@pytest.fixture
def assembler():
    return ContentAssembler()


class TestAssemble:
    def test_solar_roi_scenario(self, assembler):
        blocks = [
            block("b1", "h1", "Solar ROI", 0),
            block("b2", "paragraph", "Panels pay for themselves in about eight years.", 1, word_count=8),
            block("b3", "paragraph", "Incentives shorten that further.", 2, word_count=4),
        ]
        doc = assembler.assemble(blocks)

        assert doc.body_markup.count("<h1>") == 1
        assert doc.body_markup.count("<p>") == 2
        assert doc.title == "Solar ROI"

    def test_unselected_blocks_are_dropped(self, assembler):
        blocks = [
            block("b1", "h1", "Kept", 0),
            block("b2", "paragraph", "Discarded alternative", 1, selected=False),
            block("b3", "paragraph", "Kept paragraph", 2),
        ]
        doc = assembler.assemble(blocks)
        assert "Discarded alternative" not in doc.body_markup
        assert "Kept paragraph" in doc.body_markup

    def test_render_order_follows_order_then_id(self, assembler):
        blocks = [
            block("c", "paragraph", "third", 2),
            block("b", "paragraph", "second-b", 1),
            block("a", "paragraph", "second-a", 1),
            block("z", "h1", "first", 0),
        ]
        body = assembler.assemble(blocks).body_markup
        positions = [body.index(text) for text in ("first", "second-a", "second-b", "third")]
        assert positions == sorted(positions)

    def test_deterministic(self, assembler):
        blocks = [
            block("b1", "h2", "Why it matters", 0),
            block("b2", "list", "- one\n- two", 1),
            block("b3", "image", "https://cdn.example.com/a.png", 2, alt_text="Chart"),
        ]
        assert assembler.assemble(blocks).body_markup == assembler.assemble(list(blocks)).body_markup

    def test_accepts_a_generator(self, assembler):
        doc = assembler.assemble(b for b in [block("b1", "paragraph", "Only one", 0)])
        assert doc.body_markup == "<p>Only one</p>"

    def test_meta_defaults(self, assembler):
        doc = assembler.assemble([
            block("b1", "h1", "Solar ROI", 0),
            block("b2", "paragraph", "A short body.", 1),
        ])
        assert doc.meta_title == "Solar ROI"
        assert doc.meta_description == "Solar ROI A short body."

    def test_explicit_meta_is_kept(self, assembler):
        doc = assembler.assemble(
            [block("b1", "paragraph", "Body", 0)],
            meta_title="Custom title",
            meta_description="Custom description",
        )
        assert doc.meta_title == "Custom title"
        assert doc.meta_description == "Custom description"

    def test_citations_are_collected_once(self, assembler):
        cite = Citation(url="https://energy.gov/solar", title="DOE Solar")
        doc = assembler.assemble([
            block("b1", "paragraph", "One", 0, citations=(cite,)),
            block("b2", "paragraph", "Two", 1, citations=(cite,)),
        ])
        assert "<h3>Sources</h3>" in doc.body_markup
        assert doc.body_markup.count('href="https://energy.gov/solar"') == 1

    def test_link_sections(self, assembler):
        doc = assembler.assemble(
            [block("b1", "paragraph", "Body", 0)],
            internal_links=[{"url": "https://blog.acme-solar.com/net-metering", "title": "Net metering"}],
            external_links=[{"url": "https://nrel.gov", "title": "NREL", "description": "Research lab"}],
        )
        assert "<h3>Related Articles</h3>" in doc.body_markup
        assert "<h3>Additional Resources</h3>" in doc.body_markup
        assert 'rel="noopener noreferrer">NREL</a> - Research lab' in doc.body_markup


class TestRenderBlock:
    def test_headings(self, assembler):
        assert assembler.render_block(block("h", "h2", "Costs", 0)) == "<h2>Costs</h2>"
        assert assembler.render_block(block("h", "h3", "Upfront", 0)) == "<h3>Upfront</h3>"

    def test_paragraph_markdown(self, assembler):
        html = assembler.render_block(block("p", "paragraph", "Save **30%** today", 0))
        assert html == "<p>Save <strong>30%</strong> today</p>"

    def test_paragraph_already_markup(self, assembler):
        html = assembler.render_block(block("p", "paragraph", "<p>Already wrapped</p>", 0))
        assert html == "<p>Already wrapped</p>"

    def test_list_from_lines(self, assembler):
        html = assembler.render_block(block("l", "list", "- Lower bills\n* *Tax* credit\n3. Resale value", 0))
        assert html == "<ul><li>Lower bills</li><li><em>Tax</em> credit</li><li>Resale value</li></ul>"

    def test_list_with_items(self, assembler):
        html = assembler.render_block(block("l", "list", "<li>a</li><li>b</li>", 0))
        assert html == "<ul><li>a</li><li>b</li></ul>"

    def test_image_with_caption(self, assembler):
        html = assembler.render_block(
            block("i", "image", "https://cdn.example.com/a.png?x=1&y=2", 0,
                  alt_text='Roof "array"', caption="Installed 2024")
        )
        assert html == (
            '<figure class="wp-block-image">'
            '<img src="https://cdn.example.com/a.png?x=1&amp;y=2" alt="Roof &quot;array&quot;" />'
            "<figcaption>Installed 2024</figcaption></figure>"
        )

    def test_image_default_alt(self, assembler):
        html = assembler.render_block(block("i", "image", "https://cdn.example.com/a.png", 0))
        assert 'alt="Blog image"' in html

    def test_quote_and_code(self, assembler):
        assert assembler.render_block(block("q", "quote", "Sun is free", 0)) == "<blockquote>Sun is free</blockquote>"
        assert assembler.render_block(block("c", "code", "a < b", 0)) == "<pre><code>a &lt; b</code></pre>"

    def test_empty_content_renders_nothing(self, assembler):
        assert assembler.render_block(block("p", "paragraph", "   ", 0)) == ""


class TestTitle:
    def test_first_h1_wins(self, assembler):
        blocks = select_blocks([
            block("a", "h1", "<em>First</em> title", 0),
            block("b", "h1", "Second title", 1),
        ])
        assert assembler.derive_title(blocks) == "First title"

    def test_keyword_fallback(self, assembler):
        assert assembler.derive_title([], "solar panels") == "solar panels Guide"

    def test_untitled_fallback(self, assembler):
        assert assembler.derive_title([]) == "Untitled Draft"


class TestMetrics:
    def test_word_count_from_metadata(self, assembler):
        doc = assembler.assemble([
            block("a", "paragraph", "one two three", 0, word_count=120),
            block("b", "paragraph", "four", 1, word_count=80),
        ], target_word_count=400)
        assert doc.word_count == 200
        assert doc.metrics.completion_percentage == 50.0

    def test_completion_caps_at_100(self):
        assert completion_percentage(1500, 1000) == 100.0

    def test_completion_without_target(self):
        assert completion_percentage(1500, None) == 0.0
        assert completion_percentage(1500, 0) == 0.0

    def test_keyword_density(self):
        markup = "<p>Solar panels cut bills.</p><p>Buy solar   panels now. Solarpanels no.</p>"
        density = keyword_density(markup, "solar panels", 10)
        assert density == pytest.approx(0.2)

    def test_keyword_density_without_keyword(self):
        assert keyword_density("<p>text</p>", "", 10) == 0.0
        assert keyword_density("<p>text</p>", "text", 0) == 0.0

    def test_density_percent(self, assembler):
        doc = assembler.assemble(
            [block("a", "paragraph", "solar is great", 0, word_count=4)],
            focus_keyword="solar",
        )
        assert doc.metrics.keyword_density_percent == 25.0


class TestBlockParsing:
    def test_from_dict(self):
        parsed = ContentBlock.from_dict({
            "id": "b1",
            "kind": "paragraph",
            "content": "Hello",
            "order": 3,
            "selected": True,
            "metadata": {"word_count": 1, "citations": [{"url": "https://a.com"}, {"title": "no url"}]},
        })
        assert parsed.kind == BlockKind.PARAGRAPH
        assert parsed.order == 3
        assert len(parsed.metadata.citations) == 1

    @pytest.mark.parametrize("order", ["3", 1.5, None, True])
    def test_order_must_be_an_integer(self, order):
        with pytest.raises(ValueError):
            ContentBlock.from_dict({"id": "b1", "kind": "paragraph", "order": order})

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            ContentBlock.from_dict({"id": "b1", "kind": "video", "order": 0})
