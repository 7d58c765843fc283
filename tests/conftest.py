"""Shared test fixtures for draftpress."""

import io

import pytest
from PIL import Image

from draftpress.config import CredentialResolver, DefaultCredentials, WordPressCredentials
from draftpress.models import TenantCmsConfig
from draftpress.store import DraftStore, TenantStore

BASE_URL = "https://blog.acme-solar.com"
DEFAULT_URL = "https://default.example.com"


def png_bytes(size=(8, 8), color=(200, 80, 20)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


@pytest.fixture
def png():
    return png_bytes()


@pytest.fixture
def credentials() -> WordPressCredentials:
    return WordPressCredentials(
        base_url=BASE_URL,
        username="editor",
        app_password="abcd efgh ijkl mnop",
        source="tenant",
        tenant_id="acme",
    )


@pytest.fixture
def tenant_store(tmp_path) -> TenantStore:
    store = TenantStore(str(tmp_path / "tenants.yaml"))
    store.save(TenantCmsConfig(
        tenant_id="acme",
        base_url=BASE_URL,
        username="editor",
        app_password="abcd efgh ijkl mnop",
        is_active=True,
    ))
    store.save(TenantCmsConfig(tenant_id="halfdone", base_url="https://half.example.com"))
    return store


@pytest.fixture
def default_credentials() -> DefaultCredentials:
    return DefaultCredentials(base_url=DEFAULT_URL, username="admin", app_password="default-pass")


@pytest.fixture
def resolver(tenant_store) -> CredentialResolver:
    return CredentialResolver(tenant_store, DefaultCredentials())


@pytest.fixture
def draft_store(tmp_path) -> DraftStore:
    return DraftStore(str(tmp_path / "drafts.yaml"))
