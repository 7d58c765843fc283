"""WordPress REST API publisher (direct delivery path)."""

from __future__ import annotations

import logging
import time

import requests
from slugify import slugify

from draftpress.config import (
    SEO_META_FIELDS,
    CmsSettings,
    CredentialResolver,
    WordPressCredentials,
)
from draftpress.errors import (
    AuthenticationError,
    MediaUploadError,
    NotFoundError,
    PermissionDeniedError,
    PublishError,
    RemoteRejectedError,
    RemoteUnreachableError,
)
from draftpress.media_rehoster import MediaRehoster
from draftpress.models import (
    ConnectionResult,
    DeliveryMethod,
    DraftPayload,
    DraftPostPage,
    PublishResult,
)
from draftpress.utils.text import generate_excerpt

log = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 50


class WordPressPublisher:
    """Handles all WordPress REST API interactions for every tenant.

    Credentials are resolved per call, so one publisher serves all tenants.
    Requests are never retried here; retry policy belongs to the caller.
    """

    def __init__(self, resolver: CredentialResolver, settings: CmsSettings | None = None,
                 media_rehoster: MediaRehoster | None = None):
        self.resolver = resolver
        self.settings = settings or CmsSettings()
        self.media_rehoster = media_rehoster or MediaRehoster(upload_timeout=self.settings.media_timeout)

    def _request(self, credentials: WordPressCredentials, method, url, expected=(200,),
                 authenticated=True, timeout=None, **kwargs) -> requests.Response:
        """Make one HTTP request and map the outcome onto the error taxonomy."""
        headers = {"Content-Type": "application/json"}
        if authenticated:
            headers["Authorization"] = credentials.auth_header

        start = time.time()
        try:
            resp = requests.request(
                method, url, headers=headers, timeout=timeout or self.settings.timeout, **kwargs
            )
        except requests.exceptions.Timeout as e:
            log.warning(f"Timeout on {method} {url}")
            raise RemoteUnreachableError(f"WordPress request timed out: {url}") from e
        except requests.exceptions.ConnectionError as e:
            log.warning(f"Connection error on {method} {url}: {e}")
            raise RemoteUnreachableError(
                f"Cannot connect to WordPress site {credentials.base_url}: {e}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise RemoteUnreachableError(f"WordPress request failed: {e}") from e

        log.info(
            f"{method} {url} -> {resp.status_code}",
            extra={
                "endpoint": url,
                "method": method,
                "status_code": resp.status_code,
                "response_time": round(time.time() - start, 3),
                "tenant_id": credentials.tenant_id,
            },
        )

        if resp.status_code in expected:
            return resp
        if resp.status_code == 401:
            raise AuthenticationError(
                f"Authentication failed for {credentials.username}: {resp.text[:200]}",
                status_code=401, body=resp.text,
            )
        if resp.status_code == 403:
            raise PermissionDeniedError(
                f"Insufficient permissions: {resp.text[:200]}", status_code=403, body=resp.text,
            )
        if resp.status_code == 404:
            raise NotFoundError(
                f"Not found: {url} (is the REST API enabled with pretty permalinks?)",
                status_code=404, body=resp.text,
            )
        raise RemoteRejectedError(
            f"WordPress returned status {resp.status_code}: {resp.text[:200]}",
            status_code=resp.status_code, body=resp.text,
        )

    @staticmethod
    def _json(resp: requests.Response):
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteRejectedError(
                f"WordPress returned a non-JSON body with status {resp.status_code}",
                status_code=resp.status_code, body=resp.text[:500],
            ) from e

    @classmethod
    def _post_from(cls, resp: requests.Response, fallback_id=None) -> dict:
        """The post object from a write response, with an integer ``id``."""
        post = cls._json(resp)
        if not isinstance(post, dict):
            post = {}
        try:
            post["id"] = int(post.get("id", fallback_id))
        except (TypeError, ValueError) as e:
            raise RemoteRejectedError(
                f"WordPress response with status {resp.status_code} carries no post id",
                status_code=resp.status_code, body=resp.text[:500],
            ) from e
        return post

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def test_connection(self, tenant_id: str | None = None) -> ConnectionResult:
        """Unauthenticated root probe, then an authenticated list-posts probe."""
        try:
            credentials = self.resolver.resolve(tenant_id)
        except PublishError as e:
            return ConnectionResult(success=False, error_kind=e.kind, error=e.detail)

        try:
            root = self._request(credentials, "GET", f"{credentials.api_base}/", authenticated=False)
            self._request(credentials, "GET", f"{credentials.api_base}/posts?per_page=1")
        except PublishError as e:
            log.warning(f"WordPress connection test failed: {e.detail}", extra={"tenant_id": tenant_id})
            result = ConnectionResult(
                success=False,
                error_kind=e.kind,
                error=e.detail,
                credential_source=credentials.source,
            )
        else:
            try:
                site = root.json()
            except ValueError:
                site = {}
            result = ConnectionResult(
                success=True,
                user_info={
                    "username": credentials.username,
                    "site_name": site.get("name", "") if isinstance(site, dict) else "",
                    "base_url": credentials.base_url,
                },
                credential_source=credentials.source,
            )
            log.info("WordPress connection verified", extra={"tenant_id": tenant_id})

        if tenant_id and credentials.source == "tenant":
            self.resolver.tenants.record_connection_test(tenant_id, result.success)
        return result

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def seo_meta(self, meta_title="", meta_description="", focus_keyword="") -> dict:
        """Map SEO values onto each configured plugin's meta field names."""
        meta = {}
        for plugin in self.settings.seo_plugins:
            fields = SEO_META_FIELDS.get(plugin)
            if not fields:
                log.warning(f"Unknown SEO plugin '{plugin}', skipping its meta fields")
                continue
            for name, value in zip(fields, (meta_title, meta_description, focus_keyword)):
                if value:
                    meta[name] = value
        return meta

    def build_post_body(self, payload: DraftPayload) -> dict:
        slug = payload.slug or slugify(
            payload.focus_keyword or payload.title, max_length=SLUG_MAX_LENGTH, word_boundary=True
        )
        excerpt = payload.excerpt or payload.meta_description or generate_excerpt(payload.content, 160)
        body = {
            "title": payload.title,
            "content": payload.content,
            "status": "draft",
            "slug": slug,
            "excerpt": excerpt,
        }
        meta = self.seo_meta(
            payload.meta_title or payload.title,
            payload.meta_description or excerpt,
            payload.focus_keyword,
        )
        if meta:
            body["meta"] = meta

        # Only numeric term ids are valid for the posts endpoint
        categories = [c for c in payload.categories if isinstance(c, int) and c > 0]
        tags = [t for t in payload.tags if isinstance(t, int) and t > 0]
        if categories:
            body["categories"] = categories
        if tags:
            body["tags"] = tags
        return body

    def create_draft(self, payload, tenant_id: str | None = None) -> PublishResult:
        """Create a WordPress draft. HTTP 201 is the only success signal."""
        warnings = []
        try:
            if isinstance(payload, dict):
                payload = DraftPayload.from_dict(payload)
            credentials = self.resolver.resolve(tenant_id)
            body = self.build_post_body(payload)

            if payload.featured_image:
                try:
                    media = self.media_rehoster.rehost(
                        payload.featured_image.url, credentials, payload.featured_image.alt_text
                    )
                    body["featured_media"] = media.media_id
                    log.info(f"Featured image uploaded: {media.media_id}")
                except MediaUploadError as e:
                    if payload.featured_image.required:
                        raise
                    log.warning(f"Featured image upload failed, creating draft without it: {e.detail}")
                    warnings.append(f"Featured image not attached: {e.detail}")

            resp = self._request(
                credentials, "POST", f"{credentials.api_base}/posts", expected=(201,), json=body
            )
            post = self._post_from(resp)
        except PublishError as e:
            log.error(
                f"Create draft failed: {e.detail}",
                extra={"tenant_id": tenant_id, "error_kind": e.kind.value},
            )
            result = PublishResult.from_error(e)
            result.warnings.extend(warnings)
            return result

        result = PublishResult.succeeded(
            post_id=post["id"],
            edit_url=credentials.edit_url(post["id"]),
            preview_url=post.get("link"),
            method=DeliveryMethod.DIRECT,
            message="Successfully created WordPress draft",
        )
        result.warnings.extend(warnings)
        log.info(f"Created draft: {post['id']} - {payload.title}", extra={"tenant_id": tenant_id})
        return result

    def update_draft(self, post_id, changes: dict, tenant_id: str | None = None) -> PublishResult:
        body = {k: v for k, v in changes.items()
                if k not in ("meta_title", "meta_description", "focus_keyword")}
        meta = self.seo_meta(
            changes.get("meta_title", ""),
            changes.get("meta_description", ""),
            changes.get("focus_keyword", ""),
        )
        if meta:
            body["meta"] = {**body.get("meta", {}), **meta}
        return self._post_change(post_id, body, tenant_id, "Updated WordPress draft")

    def publish_draft(self, post_id, tenant_id: str | None = None) -> PublishResult:
        """Transition a draft to published."""
        return self._post_change(post_id, {"status": "publish"}, tenant_id, "Published WordPress post")

    def _post_change(self, post_id, body: dict, tenant_id, message: str) -> PublishResult:
        try:
            credentials = self.resolver.resolve(tenant_id)
            resp = self._request(
                credentials, "POST", f"{credentials.api_base}/posts/{post_id}", json=body
            )
            post = self._post_from(resp, fallback_id=post_id)
        except PublishError as e:
            log.error(f"Post {post_id} change failed: {e.detail}", extra={"tenant_id": tenant_id})
            return PublishResult.from_error(e)
        return PublishResult.succeeded(
            post_id=post["id"],
            edit_url=credentials.edit_url(post["id"]),
            preview_url=post.get("link"),
            method=DeliveryMethod.DIRECT,
            message=message,
        )

    def delete_draft(self, post_id, tenant_id: str | None = None, permanent=False) -> PublishResult:
        """Move a post to the trash, or delete it outright with ``permanent``."""
        try:
            credentials = self.resolver.resolve(tenant_id)
            self._request(
                credentials,
                "DELETE",
                f"{credentials.api_base}/posts/{post_id}?force={'true' if permanent else 'false'}",
            )
        except PublishError as e:
            return PublishResult.from_error(e)
        log.info(f"{'Deleted' if permanent else 'Trashed'} post {post_id}", extra={"tenant_id": tenant_id})
        return PublishResult.succeeded(
            post_id=post_id,
            edit_url=credentials.edit_url(post_id),
            preview_url=None,
            method=DeliveryMethod.DIRECT,
            message="Permanently deleted" if permanent else "Moved to trash",
        )

    def get_draft_posts(self, tenant_id: str | None = None, page=1, per_page=10,
                        order_by="date", order="desc") -> DraftPostPage:
        """One page of draft posts. Raises PublishError."""
        credentials = self.resolver.resolve(tenant_id)
        resp = self._request(
            credentials,
            "GET",
            f"{credentials.api_base}/posts?status=draft&page={page}&per_page={per_page}"
            f"&orderby={order_by}&order={order}",
        )
        posts = [self._summarize(p, credentials) for p in self._json(resp)]
        return DraftPostPage(
            posts=posts,
            page=page,
            per_page=per_page,
            total=int(resp.headers.get("X-WP-Total", len(posts))),
            total_pages=int(resp.headers.get("X-WP-TotalPages", 1)),
        )

    def get_draft_post(self, post_id, tenant_id: str | None = None) -> dict:
        """A single post summary. Raises PublishError."""
        credentials = self.resolver.resolve(tenant_id)
        resp = self._request(credentials, "GET", f"{credentials.api_base}/posts/{post_id}")
        return self._summarize(self._json(resp), credentials)

    @staticmethod
    def _summarize(post: dict, credentials: WordPressCredentials) -> dict:
        def rendered(value):
            return value.get("rendered", "") if isinstance(value, dict) else (value or "")

        return {
            "id": post["id"],
            "title": rendered(post.get("title")),
            "content": rendered(post.get("content")),
            "excerpt": rendered(post.get("excerpt")),
            "status": post.get("status"),
            "date": post.get("date"),
            "modified": post.get("modified"),
            "link": post.get("link"),
            "edit_url": credentials.edit_url(post["id"]),
        }
