"""Media Rehoster: copies a remote image into the CMS media library."""

from __future__ import annotations

import io
import logging
import time
from datetime import datetime, timezone
from urllib.parse import urlparse

import requests
from PIL import Image, UnidentifiedImageError

from draftpress.config import MediaSettings, WordPressCredentials
from draftpress.errors import MediaUploadError
from draftpress.models import RehostedMedia

log = logging.getLogger(__name__)

USER_AGENT = "draftpress/1.0"
DEFAULT_CONTENT_TYPE = "image/jpeg"

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/avif": "avif",
    "image/svg+xml": "svg",
    "image/bmp": "bmp",
    "image/tiff": "tif",
}

# Pillow format name -> MIME type
PIL_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}


def is_absolute_http_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class MediaRehoster:
    """Downloads an image and uploads it to the destination CMS."""

    def __init__(self, settings: MediaSettings | None = None, upload_timeout: float = 60):
        self.settings = settings or MediaSettings()
        self.upload_timeout = upload_timeout

    def rehost(self, source_url: str, credentials: WordPressCredentials,
               alt_text: str = "") -> RehostedMedia:
        """Fetch ``source_url`` and upload it; raises MediaUploadError on any failure."""
        if not is_absolute_http_url(source_url):
            raise MediaUploadError(f"Not an absolute http(s) URL: {source_url[:80]}")

        data, header_type = self._fetch(source_url)
        content_type = self._infer_content_type(data, header_type, source_url)
        extension = EXTENSIONS.get(content_type, "jpg")
        filename = f"rehosted-{datetime.now(timezone.utc):%Y%m%d%H%M%S%f}.{extension}"

        media = self._upload(data, filename, content_type, credentials)
        if alt_text:
            self._set_alt_text(media.media_id, alt_text, credentials)
        return media

    def _fetch(self, source_url: str) -> tuple[bytes, str]:
        max_bytes = self.settings.max_bytes
        try:
            resp = requests.get(
                source_url,
                timeout=self.settings.fetch_timeout,
                stream=True,
                headers={"User-Agent": USER_AGENT},
            )
        except requests.exceptions.RequestException as e:
            raise MediaUploadError(f"Could not fetch {source_url}: {e}") from e

        with resp:
            if resp.status_code != 200:
                raise MediaUploadError(
                    f"Fetching {source_url} returned {resp.status_code}",
                    status_code=resp.status_code,
                )
            declared = resp.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise MediaUploadError(
                    f"Image too large ({int(declared):,} bytes > {max_bytes:,}): {source_url}"
                )

            chunks = []
            size = 0
            deadline = time.time() + self.settings.fetch_timeout
            try:
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    if time.time() > deadline:
                        raise MediaUploadError(
                            f"Download of {source_url} exceeded {self.settings.fetch_timeout}s"
                        )
                    size += len(chunk)
                    if size > max_bytes:
                        raise MediaUploadError(
                            f"Image exceeds {max_bytes:,} bytes: {source_url}"
                        )
                    chunks.append(chunk)
            except requests.exceptions.RequestException as e:
                raise MediaUploadError(f"Download of {source_url} interrupted: {e}") from e

            header_type = resp.headers.get("Content-Type", "")

        data = b"".join(chunks)
        if not data:
            raise MediaUploadError(f"Empty response body from {source_url}")
        log.info(f"Fetched image: {source_url} ({len(data):,} bytes)")
        return data, header_type

    def _infer_content_type(self, data: bytes, header_type: str, source_url: str) -> str:
        declared = header_type.split(";")[0].strip().lower()
        if declared.startswith("image/"):
            return declared

        try:
            with Image.open(io.BytesIO(data)) as img:
                sniffed = PIL_FORMATS.get(img.format or "")
        except Image.DecompressionBombError as e:
            raise MediaUploadError(f"{source_url} rejected by image decoder: {e}") from e
        except (UnidentifiedImageError, OSError):
            sniffed = None
        if sniffed:
            return sniffed

        if not declared:
            return DEFAULT_CONTENT_TYPE
        raise MediaUploadError(f"{source_url} is not an image (Content-Type: {declared})")

    def _upload(self, data: bytes, filename: str, content_type: str,
                credentials: WordPressCredentials) -> RehostedMedia:
        endpoint = f"{credentials.api_base}/media"
        start = time.time()
        try:
            resp = requests.post(
                endpoint,
                headers={"Authorization": credentials.auth_header},
                files={"file": (filename, data, content_type)},
                timeout=self.upload_timeout,
            )
        except requests.exceptions.RequestException as e:
            raise MediaUploadError(f"Media upload to {endpoint} failed: {e}") from e

        log.info(
            f"POST {endpoint} -> {resp.status_code}",
            extra={
                "endpoint": endpoint,
                "method": "POST",
                "status_code": resp.status_code,
                "response_time": round(time.time() - start, 3),
            },
        )
        if resp.status_code not in (200, 201):
            raise MediaUploadError(
                f"Media upload failed with status {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text[:500],
            )
        try:
            media = resp.json()
            media_id = int(media["id"])
            hosted_url = media["source_url"]
        except (ValueError, KeyError, TypeError) as e:
            raise MediaUploadError(f"Unexpected media upload response: {e}") from e

        log.info(f"Uploaded image: {media_id} - {filename}")
        return RehostedMedia(
            media_id=media_id,
            hosted_url=hosted_url,
            filename=filename,
            content_type=content_type,
        )

    def _set_alt_text(self, media_id: int, alt_text: str, credentials: WordPressCredentials):
        try:
            resp = requests.post(
                f"{credentials.api_base}/media/{media_id}",
                headers={"Authorization": credentials.auth_header},
                json={"alt_text": alt_text, "title": alt_text},
                timeout=10,
            )
            if not 200 <= resp.status_code < 300:
                log.warning(f"Alt text update for media {media_id} returned {resp.status_code}")
        except requests.exceptions.RequestException as e:
            log.warning(f"Alt text update for media {media_id} failed: {e}")
