"""Publish Orchestrator: drives one draft from blocks to a CMS draft post.

Idle -> Assembling -> Rehosting -> Delivering(direct|relay) -> Succeeded | Failed

Each invocation is sequential and terminal. Local state is written only after
a remote success, and at most once.
"""

from __future__ import annotations

import logging

from draftpress.config import Settings, CredentialResolver, WordPressCredentials
from draftpress.content_assembler import ContentAssembler
from draftpress.content_rehoster import ContentRehoster
from draftpress.errors import (
    ErrorKind,
    InvalidPayloadError,
    LocalPersistenceError,
    PublishError,
    specificity,
)
from draftpress.generator import GenerationError, MetaGenerator
from draftpress.media_rehoster import MediaRehoster
from draftpress.models import (
    ConnectionReport,
    DeliveryAttempt,
    DeliveryMethod,
    Draft,
    DraftPayload,
    DraftStatus,
    PublishResult,
)
from draftpress.relay_publisher import RelayPublisher
from draftpress.store import DraftStore, TenantStore
from draftpress.utils.text import generate_excerpt
from draftpress.wp_publisher import WordPressPublisher

log = logging.getLogger(__name__)

DELIVERY_PLANS = {
    "direct_first": (DeliveryMethod.DIRECT, DeliveryMethod.RELAY),
    "relay_first": (DeliveryMethod.RELAY, DeliveryMethod.DIRECT),
    "direct_only": (DeliveryMethod.DIRECT,),
    "relay_only": (DeliveryMethod.RELAY,),
}


class PublishOrchestrator:
    def __init__(self, drafts: DraftStore, resolver: CredentialResolver,
                 assembler: ContentAssembler, content_rehoster: ContentRehoster,
                 cms: WordPressPublisher, relay: RelayPublisher,
                 settings: Settings | None = None, generator: MetaGenerator | None = None):
        self.drafts = drafts
        self.resolver = resolver
        self.assembler = assembler
        self.content_rehoster = content_rehoster
        self.cms = cms
        self.relay = relay
        self.settings = settings or Settings()
        self.generator = generator

    @classmethod
    def from_settings(cls, settings: Settings) -> PublishOrchestrator:
        """Wire every component from one Settings object."""
        tenants = TenantStore(settings.storage.tenants_path)
        resolver = CredentialResolver(
            tenants, settings.defaults, allow_defaults=settings.cms.allow_default_credentials
        )
        media = MediaRehoster(settings.media, upload_timeout=settings.cms.media_timeout)
        return cls(
            drafts=DraftStore(settings.storage.drafts_path),
            resolver=resolver,
            assembler=ContentAssembler(),
            content_rehoster=ContentRehoster(media, max_concurrency=settings.media.max_concurrency),
            cms=WordPressPublisher(resolver, settings.cms, media),
            relay=RelayPublisher(settings.relay),
            settings=settings,
            generator=MetaGenerator(settings.generator) if settings.generator.enabled else None,
        )

    def delivery_plan(self) -> list[DeliveryMethod]:
        plan = list(DELIVERY_PLANS[self.settings.delivery.precedence])
        if not self.relay.is_configured:
            plan = [m for m in plan if m != DeliveryMethod.RELAY]
        return plan

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish(self, draft_id: str) -> PublishResult:
        states = ["idle"]
        warnings = []

        draft = self.drafts.get(draft_id)
        if draft is None:
            result = PublishResult.failed(ErrorKind.NOT_FOUND, f"Draft not found: {draft_id}")
            return self._finish_failed(result, states, warnings, [])

        log_extra = {"draft_id": draft_id, "tenant_id": draft.tenant_id}
        if draft.publish_record.cms_post_id is not None:
            message = (
                f"Draft {draft_id} already has CMS post #{draft.publish_record.cms_post_id}; "
                f"publishing again creates a second post"
            )
            log.warning(message, extra=log_extra)
            warnings.append(message)

        try:
            payload = self._build_payload(draft, states, warnings)
        except InvalidPayloadError as e:
            log.error(f"Cannot publish draft {draft_id}: {e.detail}", extra=log_extra)
            return self._finish_failed(PublishResult.from_error(e), states, warnings, [])

        states.append("rehosting")
        credentials = self._credentials_for_rehost(draft, warnings)
        if credentials is not None:
            outcome = self.content_rehoster.rehost(payload.content, credentials)
            payload.content = outcome.markup
            for url, error in outcome.failed.items():
                warnings.append(f"Image kept at original URL {url}: {error}")

        plan = self.delivery_plan()
        if not plan:
            result = PublishResult.failed(
                ErrorKind.CONFIG_MISSING,
                f"Delivery precedence '{self.settings.delivery.precedence}' needs a relay, "
                f"but no relay webhook is configured",
            )
            return self._finish_failed(result, states, warnings, [])

        attempts = []
        results = []
        for method in plan:
            states.append(f"delivering:{method.value}")
            log.info(f"Delivering draft {draft_id} via {method.value}", extra=log_extra)
            if method == DeliveryMethod.DIRECT:
                result = self.cms.create_draft(payload, draft.tenant_id)
            else:
                result = self.relay.create_wordpress_draft(
                    payload, draft.tenant_id, site_url=credentials.base_url if credentials else None
                )
            attempts.append(DeliveryAttempt(
                method=method,
                success=result.success,
                error_kind=result.error_kind,
                detail=result.error_detail or "",
            ))
            results.append(result)
            if result.success:
                return self._finish_succeeded(draft, result, states, warnings, attempts)
            log.warning(
                f"{method.value} delivery failed: {result.error_detail}",
                extra={**log_extra, "delivery_method": method.value,
                       "error_kind": result.error_kind.value},
            )
            if result.error_kind == ErrorKind.INVALID_PAYLOAD:
                break

        best = min(results, key=lambda r: specificity(r.error_kind))
        for result in results:
            warnings.extend(result.warnings)
        failed = PublishResult.failed(best.error_kind, best.error_detail)
        return self._finish_failed(failed, states, warnings, attempts)

    def _build_payload(self, draft: Draft, states: list, warnings: list) -> DraftPayload:
        if draft.blocks:
            states.append("assembling")
            document = self.assembler.assemble(
                draft.blocks,
                focus_keyword=draft.focus_keyword,
                target_word_count=draft.target_word_count,
                meta_title=draft.meta_title or None,
                meta_description=draft.meta_description or None,
                internal_links=draft.internal_links,
                external_links=draft.external_links,
            )
            title = draft.title or document.title
            content = document.body_markup
            meta_title = document.meta_title
        elif draft.content.strip():
            title = draft.title
            content = draft.content
            meta_title = draft.meta_title or draft.title
        else:
            raise InvalidPayloadError(f"Draft {draft.id} has no selected blocks and no content")

        meta_description = draft.meta_description or self._meta_description(
            draft, title, content, warnings
        )
        return DraftPayload(
            title=title,
            content=content,
            meta_title=meta_title,
            meta_description=meta_description,
            focus_keyword=draft.focus_keyword,
            categories=draft.categories,
            tags=draft.tags,
            featured_image=draft.featured_image,
        )

    def _meta_description(self, draft: Draft, title: str, content: str, warnings: list) -> str:
        """Generator first, excerpt otherwise. The source used is always recorded."""
        excerpt = generate_excerpt(content, 160)
        if self.generator is None:
            return excerpt
        try:
            meta = self.generator.generate_meta(title, draft.focus_keyword, excerpt)
        except GenerationError as e:
            message = f"Meta description generation failed, using excerpt: {e}"
            log.warning(message, extra={"draft_id": draft.id})
            warnings.append(message)
            return excerpt
        log.info("Meta description supplied by generator", extra={"draft_id": draft.id})
        warnings.append("Meta description supplied by generator")
        return meta["meta_description"]

    def _credentials_for_rehost(self, draft: Draft, warnings: list) -> WordPressCredentials | None:
        try:
            return self.resolver.resolve(draft.tenant_id)
        except PublishError as e:
            message = f"Image rehosting skipped: {e.detail}"
            log.warning(message, extra={"draft_id": draft.id, "tenant_id": draft.tenant_id})
            warnings.append(message)
            return None

    def _finish_succeeded(self, draft: Draft, result: PublishResult, states: list,
                          warnings: list, attempts: list) -> PublishResult:
        states.append("succeeded")
        result.states = states
        result.attempts = attempts
        result.warnings = warnings + result.warnings
        try:
            self.drafts.record_publish_success(draft.id, result, DraftStatus.READY_TO_PUBLISH)
        except LocalPersistenceError as e:
            result.local_inconsistency = e.kind
            result.message = (
                f"WordPress draft #{result.cms_post_id} was created ({result.edit_url}), "
                f"but saving the local publish record failed: {e.detail}. "
                f"Do not publish again; the post already exists in WordPress."
            )
            log.error(
                result.message,
                extra={"draft_id": draft.id, "error_kind": e.kind.value,
                       "delivery_method": result.delivery_method.value},
            )
            return result

        log.info(
            f"Published draft {draft.id} as CMS post #{result.cms_post_id}",
            extra={"draft_id": draft.id, "tenant_id": draft.tenant_id,
                   "delivery_method": result.delivery_method.value},
        )
        return result

    @staticmethod
    def _finish_failed(result: PublishResult, states: list, warnings: list,
                       attempts: list) -> PublishResult:
        states.append("failed")
        result.states = states
        result.warnings = warnings
        result.attempts = attempts
        return result

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def test_connection(self, tenant_id: str | None = None) -> ConnectionReport:
        direct = self.cms.test_connection(tenant_id)
        relay = self.relay.test_connection() if self.relay.is_configured else None

        if direct.success:
            method = "direct"
        elif relay is not None and relay.success:
            method = "relay"
        else:
            method = "none"
        return ConnectionReport(
            connected=method != "none",
            method=method,
            direct=direct,
            relay=relay,
        )
