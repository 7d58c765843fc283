"""Relay publisher: creates CMS drafts through an automation webhook."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

import requests

from draftpress.config import RelaySettings
from draftpress.errors import (
    ConfigMissingError,
    PublishError,
    RelayOfflineError,
    RelayRejectedError,
)
from draftpress.models import DeliveryMethod, DraftPayload, PublishResult, RelayStatus
from draftpress.utils.text import generate_excerpt

log = logging.getLogger(__name__)

USER_AGENT = "draftpress/1.0"
SOURCE_PLATFORM = "draftpress"
RELAY_EXCERPT_LENGTH = 150
TEST_TIMEOUT = 10


class RelayPublisher:
    """Posts draft payloads to a webhook that talks to the CMS on our behalf."""

    def __init__(self, settings: RelaySettings | None = None):
        self.settings = settings or RelaySettings()

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    def build_payload(self, payload: DraftPayload, tenant_id: str | None) -> dict:
        return {
            "title": payload.title,
            "content": payload.content,
            "excerpt": payload.excerpt or generate_excerpt(
                payload.content, RELAY_EXCERPT_LENGTH, word_boundary=False
            ),
            "metaTitle": payload.meta_title or payload.title,
            "metaDescription": payload.meta_description,
            "focusKeyword": payload.focus_keyword,
            "companyId": tenant_id,
            "categories": list(payload.categories),
            "tags": list(payload.tags),
            "featuredImage": payload.featured_image.url if payload.featured_image else None,
            "aiGenerated": True,
            "sourcePlatform": SOURCE_PLATFORM,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "secret": self.settings.secret,
        }

    def _post(self, url: str, body: dict, timeout: float) -> requests.Response:
        start = time.time()
        try:
            resp = requests.post(
                url,
                json=body,
                headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
                timeout=timeout,
            )
        except requests.exceptions.Timeout as e:
            raise RelayOfflineError(f"Relay webhook timed out after {timeout}s: {url}") from e
        except requests.exceptions.ConnectionError as e:
            raise RelayOfflineError(f"Relay service is not reachable at {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise RelayOfflineError(f"Relay request failed: {e}") from e

        log.info(
            f"POST {url} -> {resp.status_code}",
            extra={
                "endpoint": url,
                "method": "POST",
                "status_code": resp.status_code,
                "response_time": round(time.time() - start, 3),
            },
        )
        if not 200 <= resp.status_code < 300:
            raise RelayRejectedError(
                f"Relay webhook error: {resp.status_code} {resp.reason or ''}".strip(),
                status_code=resp.status_code,
                body=resp.text[:500],
            )
        return resp

    @staticmethod
    def _envelope(resp: requests.Response) -> dict:
        try:
            envelope = resp.json()
        except ValueError as e:
            raise RelayRejectedError(
                "Relay returned a response that is not JSON", body=resp.text[:500]
            ) from e
        if not isinstance(envelope, dict):
            raise RelayRejectedError("Relay returned an unexpected response shape")
        if not envelope.get("success"):
            raise RelayRejectedError(
                f"Relay reported failure: {envelope.get('error') or 'unknown relay error'}",
                body=resp.text[:500],
            )
        return envelope

    def create_wordpress_draft(self, payload, tenant_id: str | None = None,
                               site_url: str | None = None) -> PublishResult:
        """Create a draft via the relay.

        ``site_url`` is only used to build the edit link when the relay's
        response omits one.
        """
        try:
            if not self.is_configured:
                raise ConfigMissingError("Relay webhook URL is not configured")
            if isinstance(payload, dict):
                payload = DraftPayload.from_dict(payload)

            log.info(f"Sending draft to relay: {payload.title}", extra={"tenant_id": tenant_id})
            resp = self._post(
                self.settings.webhook_url,
                self.build_payload(payload, tenant_id),
                self.settings.timeout,
            )
            data = self._envelope(resp).get("data") or {}
            post_id = data.get("wordpressId")
            if post_id in (None, ""):
                raise RelayRejectedError("Relay reported success without a wordpressId")
            edit_url = data.get("editUrl")
            if not edit_url and site_url:
                edit_url = f"{site_url.rstrip('/')}/wp-admin/post.php?post={post_id}&action=edit"
            if not edit_url:
                raise RelayRejectedError("Relay reported success without an editUrl")
        except PublishError as e:
            log.error(
                f"Relay draft creation failed: {e.detail}",
                extra={"tenant_id": tenant_id, "error_kind": e.kind.value},
            )
            return PublishResult.from_error(e)

        log.info(f"Relay created draft: {post_id}", extra={"tenant_id": tenant_id})
        return PublishResult.succeeded(
            post_id=post_id,
            edit_url=edit_url,
            preview_url=data.get("previewUrl"),
            method=DeliveryMethod.RELAY,
            message="Successfully created WordPress draft via relay",
        )

    def update_wordpress_post(self, post_id, changes: dict) -> dict:
        """Ask the relay to update an existing post. Returns the relay's envelope."""
        if not self.is_configured:
            raise ConfigMissingError("Relay webhook URL is not configured")
        body = {"action": "update", "wordpressId": post_id, **changes, "secret": self.settings.secret}
        resp = self._post(self.settings.resolved_update_url, body, self.settings.timeout)
        return self._envelope(resp)

    def test_connection(self) -> RelayStatus:
        if not self.is_configured:
            return RelayStatus(
                success=False,
                error_kind=ConfigMissingError.kind,
                error="Relay webhook URL is not configured",
            )
        body = {
            "test": True,
            "title": "Relay Connection Test",
            "content": "This is a test to verify relay connectivity.",
            "companyId": "test",
            "secret": self.settings.secret,
        }
        try:
            self._post(self.settings.webhook_url, body, TEST_TIMEOUT)
        except PublishError as e:
            log.warning(f"Relay connection test failed: {e.detail}")
            return RelayStatus(success=False, error_kind=e.kind, error=e.detail)
        return RelayStatus(success=True, message="Relay webhook is accessible")

    def get_service_status(self) -> dict:
        return {
            "service": "WordPress relay",
            "webhook_url": self.settings.webhook_url,
            "update_url": self.settings.resolved_update_url if self.is_configured else "",
            "configured": self.is_configured,
            "has_secret": bool(self.settings.secret),
        }
