"""Tests for rewriting external image URLs in post markup."""

from unittest.mock import MagicMock

import responses
from PIL import Image

from draftpress.content_rehoster import ContentRehoster
from draftpress.errors import MediaUploadError
from draftpress.media_rehoster import MediaRehoster
from draftpress.models import RehostedMedia

BASE_URL = "https://blog.acme-solar.com"
API_BASE = f"{BASE_URL}/wp-json/wp/v2"
HOSTED = f"{BASE_URL}/wp-content/uploads/2026/10/roof.png"


def add_image(url, png):
    responses.add(responses.GET, url, body=png, status=200, content_type="image/png")


def add_upload(source_url=HOSTED, media_id=101):
    responses.add(
        responses.POST, f"{API_BASE}/media",
        json={"id": media_id, "source_url": source_url}, status=201,
    )


def fake_rehoster(mapping):
    """MediaRehoster stand-in: URL -> hosted URL, or an exception to raise."""
    media = MagicMock(spec=MediaRehoster)

    def rehost(url, credentials, alt_text=""):
        target = mapping[url]
        if isinstance(target, Exception):
            raise target
        return RehostedMedia(media_id=1, hosted_url=target)

    media.rehost.side_effect = rehost
    return media


class TestRehost:
    @responses.activate
    def test_one_reachable_one_unreachable(self, credentials, png):
        """A dead image host leaves that image alone and rewrites the other."""
        add_image("https://cdn.example.com/roof.png", png)
        add_upload()
        markup = (
            '<p>Intro</p><img src="https://cdn.example.com/roof.png" alt="Roof" />'
            '<img src="https://unreachable.example.net/meter.png" alt="Meter" />'
        )

        result = ContentRehoster(MediaRehoster()).rehost_media(markup, credentials)

        assert result == (
            f'<p>Intro</p><img src="{HOSTED}" alt="Roof" />'
            '<img src="https://unreachable.example.net/meter.png" alt="Meter" />'
        )

    @responses.activate
    def test_outcome_reports_every_url(self, credentials, png):
        add_image("https://cdn.example.com/roof.png", png)
        add_upload()
        markup = (
            '<img src="https://cdn.example.com/roof.png">'
            '<img src="https://unreachable.example.net/meter.png">'
            f'<img src="{BASE_URL}/wp-content/uploads/old.png">'
            '<img src="data:image/png;base64,AAAA">'
        )

        outcome = ContentRehoster(MediaRehoster()).rehost(markup, credentials)

        assert outcome.rehosted == {"https://cdn.example.com/roof.png": HOSTED}
        assert list(outcome.failed) == ["https://unreachable.example.net/meter.png"]
        assert outcome.skipped == {
            f"{BASE_URL}/wp-content/uploads/old.png": "already hosted",
            "data:image/png;base64,AAAA": "invalid",
        }

    def test_second_pass_is_a_no_op(self, credentials):
        media = fake_rehoster({"https://cdn.example.com/a.png": HOSTED})
        rehoster = ContentRehoster(media)
        once = rehoster.rehost_media('<img src="https://cdn.example.com/a.png">', credentials)
        twice = rehoster.rehost_media(once, credentials)

        assert once == f'<img src="{HOSTED}">'
        assert twice is once
        assert media.rehost.call_count == 1

    def test_cms_host_match_ignores_www_and_case(self, credentials):
        media = fake_rehoster({})
        markup = '<img src="https://WWW.Blog.Acme-Solar.com/wp-content/uploads/a.png">'
        assert ContentRehoster(media).rehost_media(markup, credentials) is markup
        media.rehost.assert_not_called()

    def test_duplicate_urls_rehosted_once(self, credentials):
        media = fake_rehoster({"https://cdn.example.com/a.png": HOSTED})
        markup = '<img src="https://cdn.example.com/a.png"><p>x</p><img src="https://cdn.example.com/a.png">'

        result = ContentRehoster(media).rehost_media(markup, credentials)

        assert result == f'<img src="{HOSTED}"><p>x</p><img src="{HOSTED}">'
        assert media.rehost.call_count == 1

    def test_only_src_attribute_changes(self, credentials):
        media = fake_rehoster({"https://cdn.example.com/a.png": HOSTED})
        markup = (
            "<figure class=\"wp-block-image\">"
            "<img class='hero' data-src=\"https://cdn.example.com/a.png\" "
            "src='https://cdn.example.com/a.png' alt=\"A\">"
            "<figcaption>https://cdn.example.com/a.png</figcaption></figure>"
        )

        result = ContentRehoster(media).rehost_media(markup, credentials)

        assert result == (
            "<figure class=\"wp-block-image\">"
            "<img class='hero' data-src=\"https://cdn.example.com/a.png\" "
            f"src=\"{HOSTED}\" alt=\"A\">"
            "<figcaption>https://cdn.example.com/a.png</figcaption></figure>"
        )

    def test_unquoted_and_escaped_src(self, credentials):
        source = "https://cdn.example.com/a.png?w=800&h=600"
        media = fake_rehoster({source: HOSTED})
        markup = '<img src=https://cdn.example.com/a.png?w=800&amp;h=600 alt=x>'

        result = ContentRehoster(media).rehost_media(markup, credentials)

        assert result == f'<img src="{HOSTED}" alt=x>'
        media.rehost.assert_called_once_with(source, credentials)

    def test_all_failures_return_input_unchanged(self, credentials):
        media = fake_rehoster({
            "https://cdn.example.com/a.png": MediaUploadError("404"),
            "https://cdn.example.com/b.png": MediaUploadError("timeout"),
        })
        markup = '<img src="https://cdn.example.com/a.png"><img src="https://cdn.example.com/b.png">'
        outcome = ContentRehoster(media).rehost(markup, credentials)

        assert outcome.markup is markup
        assert outcome.failed == {
            "https://cdn.example.com/a.png": "404",
            "https://cdn.example.com/b.png": "timeout",
        }

    @responses.activate
    def test_undecodable_image_keeps_original_url(self, credentials, png, monkeypatch):
        """An image the decoder refuses fails alone; the other image is still rewritten."""
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        responses.add(
            responses.GET, "https://cdn.example.com/huge.bin", body=png, status=200,
            content_type="application/octet-stream",
        )
        add_image("https://cdn.example.com/roof.png", png)
        add_upload()
        markup = '<img src="https://cdn.example.com/huge.bin"><img src="https://cdn.example.com/roof.png">'

        outcome = ContentRehoster(MediaRehoster()).rehost(markup, credentials)

        assert outcome.markup == f'<img src="https://cdn.example.com/huge.bin"><img src="{HOSTED}">'
        assert list(outcome.failed) == ["https://cdn.example.com/huge.bin"]
        assert "decoder" in outcome.failed["https://cdn.example.com/huge.bin"]

    def test_unexpected_error_is_a_per_image_failure(self, credentials):
        media = fake_rehoster({
            "https://cdn.example.com/a.png": RuntimeError("codec crashed"),
            "https://cdn.example.com/b.png": HOSTED,
        })
        markup = '<img src="https://cdn.example.com/a.png"><img src="https://cdn.example.com/b.png">'

        outcome = ContentRehoster(media).rehost(markup, credentials)

        assert outcome.markup == f'<img src="https://cdn.example.com/a.png"><img src="{HOSTED}">'
        assert outcome.failed == {"https://cdn.example.com/a.png": "RuntimeError: codec crashed"}

    def test_img_without_src_and_empty_markup(self, credentials):
        media = fake_rehoster({})
        rehoster = ContentRehoster(media)
        assert rehoster.rehost_media('<img alt="no source">', credentials) == '<img alt="no source">'
        assert rehoster.rehost_media("", credentials) == ""
        media.rehost.assert_not_called()

    def test_many_images_with_bounded_pool(self, credentials):
        mapping = {f"https://cdn.example.com/{i}.png": f"{BASE_URL}/uploads/{i}.png" for i in range(10)}
        media = fake_rehoster(mapping)
        markup = "".join(f'<img src="{url}">' for url in mapping)

        result = ContentRehoster(media, max_concurrency=2).rehost_media(markup, credentials)

        assert result == "".join(f'<img src="{hosted}">' for hosted in mapping.values())
