"""Content Rehoster: moves externally hosted images in a post body onto the CMS.

Each ``<img>`` whose ``src`` points outside the destination CMS is rehosted
through :class:`MediaRehoster` and its ``src`` rewritten. A failed image keeps
its original URL; the document is always returned whole.
"""

from __future__ import annotations

import html
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from urllib.parse import urlparse

from draftpress.config import WordPressCredentials
from draftpress.errors import MediaUploadError
from draftpress.media_rehoster import MediaRehoster, is_absolute_http_url

log = logging.getLogger(__name__)

IMG_TAG = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
# data-src and similar attributes must not match
SRC_ATTR = re.compile(
    r"""(?<![\w-])src\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"'>]+))""",
    re.IGNORECASE,
)


@dataclass
class RehostOutcome:
    markup: str
    rehosted: dict[str, str] = field(default_factory=dict)  # original -> hosted
    skipped: dict[str, str] = field(default_factory=dict)  # url -> reason
    failed: dict[str, str] = field(default_factory=dict)  # url -> error


def _host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _src_value(match: re.Match) -> str:
    return match.group("dq") if match.group("dq") is not None else (
        match.group("sq") if match.group("sq") is not None else match.group("bare")
    )


class ContentRehoster:
    def __init__(self, media_rehoster: MediaRehoster, max_concurrency: int = 3):
        self.media_rehoster = media_rehoster
        self.max_concurrency = max(1, max_concurrency)

    def rehost_media(self, markup: str, credentials: WordPressCredentials) -> str:
        return self.rehost(markup, credentials).markup

    def rehost(self, markup: str, credentials: WordPressCredentials) -> RehostOutcome:
        outcome = RehostOutcome(markup=markup)
        if not markup:
            return outcome

        cms_host = _host(credentials.base_url)
        candidates = []  # first-appearance order, deduplicated
        for tag in IMG_TAG.finditer(markup):
            src = SRC_ATTR.search(tag.group(0))
            if not src:
                continue
            url = html.unescape(_src_value(src).strip())
            if url in outcome.skipped or url in candidates:
                continue
            if not is_absolute_http_url(url):
                outcome.skipped[url] = "invalid"
            elif _host(url) == cms_host:
                outcome.skipped[url] = "already hosted"
            else:
                candidates.append(url)

        if not candidates:
            log.info(f"No external images to rehost ({len(outcome.skipped)} skipped)")
            return outcome

        log.info(f"Rehosting {len(candidates)} external images to {cms_host}")
        with ThreadPoolExecutor(max_workers=min(self.max_concurrency, len(candidates))) as pool:
            futures = [
                (url, pool.submit(self.media_rehoster.rehost, url, credentials))
                for url in candidates
            ]
            for url, future in futures:
                try:
                    outcome.rehosted[url] = future.result().hosted_url
                except MediaUploadError as e:
                    outcome.failed[url] = e.detail
                    log.warning(f"Image rehost failed, keeping original URL {url}: {e.detail}")
                except Exception as e:
                    outcome.failed[url] = f"{type(e).__name__}: {e}"
                    log.exception(f"Unexpected error rehosting {url}, keeping original URL")

        if outcome.rehosted:
            outcome.markup = self._rewrite(markup, outcome.rehosted)
        log.info(
            f"Rehost complete: {len(outcome.rehosted)} rehosted, "
            f"{len(outcome.failed)} failed, {len(outcome.skipped)} skipped"
        )
        return outcome

    @staticmethod
    def _rewrite(markup: str, replacements: dict[str, str]) -> str:
        """Replace the src value inside each matched <img> tag, nothing else."""

        def replace_tag(tag_match: re.Match) -> str:
            tag = tag_match.group(0)
            src = SRC_ATTR.search(tag)
            if not src:
                return tag
            url = html.unescape(_src_value(src).strip())
            hosted = replacements.get(url)
            if hosted is None:
                return tag
            new_attr = f'src="{html.escape(hosted, quote=True)}"'
            return tag[:src.start()] + new_attr + tag[src.end():]

        return IMG_TAG.sub(replace_tag, markup)
