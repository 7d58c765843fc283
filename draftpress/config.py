"""Settings and per-tenant credential resolution."""

from __future__ import annotations

import base64
import logging
import os
from dataclasses import dataclass, field

import yaml
from dotenv import load_dotenv

from draftpress.errors import ConfigMissingError

load_dotenv(override=True)

log = logging.getLogger(__name__)

PRECEDENCE_CHOICES = ("direct_first", "relay_first", "direct_only", "relay_only")

# SEO plugin -> (title field, description field, focus keyword field)
SEO_META_FIELDS = {
    "yoast": ("_yoast_wpseo_title", "_yoast_wpseo_metadesc", "_yoast_wpseo_focuskw"),
    "rank_math": ("rank_math_title", "rank_math_description", "rank_math_focus_keyword"),
    "aioseo": ("_aioseop_title", "_aioseop_description", "_aioseop_keywords"),
    "seopress": ("_seopress_titles_title", "_seopress_titles_desc", "_seopress_analysis_target_kw"),
}


@dataclass
class CmsSettings:
    timeout: float = 30
    media_timeout: float = 60
    seo_plugins: list[str] = field(default_factory=lambda: ["yoast", "rank_math"])
    allow_default_credentials: bool = True


@dataclass
class MediaSettings:
    fetch_timeout: float = 30
    max_bytes: int = 10 * 1024 * 1024
    max_concurrency: int = 3


@dataclass
class RelaySettings:
    webhook_url: str = ""
    update_url: str = ""
    secret: str = field(default="", repr=False)
    timeout: float = 30

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    @property
    def resolved_update_url(self) -> str:
        if self.update_url:
            return self.update_url
        return self.webhook_url.replace("/wordpress-draft", "/wordpress-update")


@dataclass
class DeliverySettings:
    precedence: str = "direct_first"

    def __post_init__(self):
        if self.precedence not in PRECEDENCE_CHOICES:
            raise ValueError(
                f"delivery.precedence must be one of {', '.join(PRECEDENCE_CHOICES)}, "
                f"got {self.precedence!r}"
            )


@dataclass
class StorageSettings:
    tenants_path: str = "data/tenants.yaml"
    drafts_path: str = "data/drafts.yaml"


@dataclass
class LoggingSettings:
    dir: str = "logs"
    level: str = "INFO"
    file: str = "draftpress.log"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    # capped at WARNING
    quiet_loggers: list = field(default_factory=lambda: ["urllib3", "httpx", "anthropic"])


@dataclass
class GeneratorSettings:
    enabled: bool = False
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 400
    temperature: float = 0.4


@dataclass
class DefaultCredentials:
    """Process-wide credentials for single-tenant deployments."""

    base_url: str = ""
    username: str = ""
    app_password: str = field(default="", repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.username and self.app_password)


@dataclass
class Settings:
    cms: CmsSettings = field(default_factory=CmsSettings)
    media: MediaSettings = field(default_factory=MediaSettings)
    relay: RelaySettings = field(default_factory=RelaySettings)
    delivery: DeliverySettings = field(default_factory=DeliverySettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    generator: GeneratorSettings = field(default_factory=GeneratorSettings)
    defaults: DefaultCredentials = field(default_factory=DefaultCredentials)


def _section(config: dict, name: str) -> dict:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def load_settings(path="config.yaml") -> Settings:
    """Load settings from a YAML file, then apply environment overrides."""
    config = {}
    if path and os.path.exists(path):
        with open(path) as f:
            config = yaml.safe_load(f) or {}

    relay = _section(config, "relay")
    delivery = _section(config, "delivery")

    return Settings(
        cms=CmsSettings(**_section(config, "cms")),
        media=MediaSettings(**_section(config, "media")),
        relay=RelaySettings(
            webhook_url=os.getenv("RELAY_WEBHOOK_URL", relay.get("webhook_url", "")),
            update_url=relay.get("update_url", ""),
            secret=os.getenv("RELAY_WEBHOOK_SECRET", relay.get("secret", "")),
            timeout=relay.get("timeout", 30),
        ),
        delivery=DeliverySettings(
            precedence=os.getenv("PUBLISH_PRECEDENCE", delivery.get("precedence", "direct_first")),
        ),
        storage=StorageSettings(**_section(config, "storage")),
        logging=LoggingSettings(**_section(config, "logging")),
        generator=GeneratorSettings(**_section(config, "generator")),
        defaults=DefaultCredentials(
            base_url=os.getenv("WP_URL", "").strip(),
            username=os.getenv("WP_USERNAME", "").strip(),
            app_password=os.getenv("WP_APP_PASSWORD", "").strip(),
        ),
    )


def normalize_base_url(url: str) -> str:
    url = url.strip().rstrip("/")
    if url and not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


@dataclass(frozen=True)
class WordPressCredentials:
    base_url: str
    username: str
    app_password: str = field(repr=False)
    source: str = "tenant"  # "tenant" or "default"
    tenant_id: str | None = None

    @property
    def api_base(self) -> str:
        return f"{self.base_url}/wp-json/wp/v2"

    @property
    def auth_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.app_password}".encode()).decode()
        return f"Basic {token}"

    def edit_url(self, post_id) -> str:
        return f"{self.base_url}/wp-admin/post.php?post={post_id}&action=edit"


class CredentialResolver:
    """Resolves CMS credentials: tenant config first, then process defaults.

    Every publisher operation goes through ``resolve`` so the precedence is
    identical everywhere.
    """

    def __init__(self, tenants, defaults: DefaultCredentials | None = None,
                 allow_defaults: bool = True):
        self.tenants = tenants
        self.defaults = defaults or DefaultCredentials()
        self.allow_defaults = allow_defaults

    def resolve(self, tenant_id: str | None = None) -> WordPressCredentials:
        if tenant_id:
            config = self.tenants.get(tenant_id)
            if config and config.is_active and config.is_complete:
                return WordPressCredentials(
                    base_url=normalize_base_url(config.base_url),
                    username=config.username,
                    app_password=config.app_password,
                    source="tenant",
                    tenant_id=tenant_id,
                )
            reason = "not found" if config is None else (
                "inactive" if not config.is_active else "incomplete"
            )
            if self.allow_defaults and self.defaults.is_complete:
                log.warning(
                    f"Tenant {tenant_id} CMS config {reason}; "
                    f"falling back to default credentials for {self.defaults.base_url}",
                    extra={"tenant_id": tenant_id},
                )
                return self._default_credentials(tenant_id)
            raise ConfigMissingError(
                f"No credentials available for tenant {tenant_id} (tenant config {reason})"
            )

        if self.allow_defaults and self.defaults.is_complete:
            log.info(f"Using default CMS credentials for {self.defaults.base_url}")
            return self._default_credentials(None)
        raise ConfigMissingError("No credentials available: no tenant given and no default credentials")

    def _default_credentials(self, tenant_id) -> WordPressCredentials:
        return WordPressCredentials(
            base_url=normalize_base_url(self.defaults.base_url),
            username=self.defaults.username,
            app_password=self.defaults.app_password,
            source="default",
            tenant_id=tenant_id,
        )
