"""YAML-backed stores for tenant CMS configs and drafts."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone

import yaml

from draftpress.errors import LocalPersistenceError
from draftpress.models import (
    ConnectionStatus,
    Draft,
    DraftPublishRecord,
    DraftStatus,
    PublishResult,
    RecordStatus,
    TenantCmsConfig,
)

log = logging.getLogger(__name__)


class _YamlStore:
    """Loads a YAML mapping once and rewrites the whole file on save."""

    root_key = ""

    def __init__(self, path):
        self.path = path
        self.state = self._load()

    def _load(self) -> dict:
        if os.path.exists(self.path):
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
            data.setdefault(self.root_key, {})
            return data
        return {self.root_key: {}}

    def _save(self):
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.dump(self.state, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    @property
    def _entries(self) -> dict:
        return self.state[self.root_key]


class TenantStore(_YamlStore):
    """Per-tenant CMS configuration. Read-only to publishing, except self-tests."""

    root_key = "tenants"

    def get(self, tenant_id: str) -> TenantCmsConfig | None:
        data = self._entries.get(tenant_id)
        if not isinstance(data, dict):
            return None
        return TenantCmsConfig.from_dict(tenant_id, data)

    def save(self, config: TenantCmsConfig):
        self._entries[config.tenant_id] = config.to_dict()
        self._save()
        log.info(f"Saved CMS config for tenant {config.tenant_id}", extra={"tenant_id": config.tenant_id})

    def record_connection_test(self, tenant_id: str, success: bool):
        config = self.get(tenant_id)
        if config is None:
            return
        config.connection_status = ConnectionStatus.CONNECTED if success else ConnectionStatus.FAILED
        config.last_tested_at = datetime.now(timezone.utc)
        self._entries[tenant_id] = config.to_dict()
        self._save()


class DraftStore(_YamlStore):
    """Drafts, their content blocks and their publish records."""

    root_key = "drafts"

    def get(self, draft_id: str) -> Draft | None:
        data = self._entries.get(draft_id)
        if not isinstance(data, dict):
            return None
        return Draft.from_dict(draft_id, data)

    def save(self, draft: Draft):
        self._entries[draft.id] = draft.to_dict()
        self._save()

    def record_publish_success(self, draft_id: str, result: PublishResult,
                               workflow_status: DraftStatus = DraftStatus.READY_TO_PUBLISH):
        """Write the publish record and the workflow status in one save.

        Raises LocalPersistenceError when the draft is gone or the write fails.
        """
        draft = self.get(draft_id)
        if draft is None:
            raise LocalPersistenceError(f"Draft not found: {draft_id}")
        draft.publish_record = DraftPublishRecord(
            status=RecordStatus.DRAFT_CREATED,
            cms_post_id=result.cms_post_id,
            edit_url=result.edit_url,
            preview_url=result.preview_url,
            delivery_method=result.delivery_method,
            last_attempted_at=datetime.now(timezone.utc),
        )
        draft.status = workflow_status
        previous = self._entries[draft_id]
        try:
            self.save(draft)
        except (OSError, yaml.YAMLError) as e:
            self._entries[draft_id] = previous
            raise LocalPersistenceError(f"Could not write {self.path}: {e}") from e
        log.info(
            f"Recorded publish: draft {draft_id} -> CMS post #{result.cms_post_id}",
            extra={"draft_id": draft_id, "delivery_method": result.delivery_method.value},
        )

    def mark_publish_failed(self, draft_id: str, detail: str):
        """For retry layers above the orchestrator; the orchestrator never calls this."""
        draft = self.get(draft_id)
        if draft is None:
            raise KeyError(f"Draft not found: {draft_id}")
        record = draft.publish_record
        record.status = RecordStatus.PUBLISH_FAILED
        record.last_attempted_at = datetime.now(timezone.utc)
        record.last_error = detail
        self.save(draft)
