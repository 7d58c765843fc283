"""Data model for the publish pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum

from draftpress.errors import ErrorKind, InvalidPayloadError, PublishError


class BlockKind(str, Enum):
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    PARAGRAPH = "paragraph"
    LIST = "list"
    IMAGE = "image"
    QUOTE = "quote"
    CODE = "code"

    @property
    def heading_level(self) -> int | None:
        if self in (BlockKind.H1, BlockKind.H2, BlockKind.H3):
            return int(self.value[1])
        return None


@dataclass(frozen=True)
class Citation:
    url: str
    title: str = ""
    description: str = ""


@dataclass(frozen=True)
class BlockMetadata:
    word_count: int = 0
    ai_generated: bool = False
    source: str = ""  # "gemini", "manual", "competitor", ...
    keywords: tuple[str, ...] = ()
    citations: tuple[Citation, ...] = ()
    alt_text: str = ""
    caption: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> BlockMetadata:
        data = data or {}
        return cls(
            word_count=int(data.get("word_count") or 0),
            ai_generated=bool(data.get("ai_generated", False)),
            source=data.get("source") or "",
            keywords=tuple(data.get("keywords") or ()),
            citations=tuple(
                Citation(
                    url=c.get("url", ""),
                    title=c.get("title", ""),
                    description=c.get("description", ""),
                )
                for c in data.get("citations") or ()
                if isinstance(c, dict) and c.get("url")
            ),
            alt_text=data.get("alt_text") or "",
            caption=data.get("caption") or "",
        )


@dataclass(frozen=True)
class ContentBlock:
    """A single typed unit of document content with a fixed render order."""

    id: str
    kind: BlockKind
    content: str
    order: int
    selected: bool = False
    metadata: BlockMetadata = field(default_factory=BlockMetadata)

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.order, self.id)

    @classmethod
    def from_dict(cls, data: dict) -> ContentBlock:
        try:
            kind = BlockKind(data["kind"])
        except (KeyError, ValueError):
            raise ValueError(f"Unknown block kind: {data.get('kind')!r}")
        order = data.get("order")
        if isinstance(order, bool) or not isinstance(order, int):
            raise ValueError(f"Block {data.get('id')!r} has non-integer order: {order!r}")
        return cls(
            id=str(data["id"]),
            kind=kind,
            content=data.get("content") or "",
            order=order,
            selected=bool(data.get("selected", False)),
            metadata=BlockMetadata.from_dict(data.get("metadata")),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["metadata"]["keywords"] = list(self.metadata.keywords)
        data["metadata"]["citations"] = [asdict(c) for c in self.metadata.citations]
        return data


@dataclass(frozen=True)
class ContentMetrics:
    word_count: int
    keyword_density: float  # occurrences / word_count
    completion_percentage: float

    @property
    def keyword_density_percent(self) -> float:
        return round(self.keyword_density * 100, 2)


@dataclass(frozen=True)
class AssembledDocument:
    title: str
    body_markup: str
    meta_title: str
    meta_description: str
    word_count: int
    metrics: ContentMetrics


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    FAILED = "failed"
    NOT_TESTED = "not-tested"


@dataclass
class TenantCmsConfig:
    tenant_id: str
    base_url: str = ""
    username: str = ""
    app_password: str = field(default="", repr=False)
    is_active: bool = False
    last_tested_at: datetime | None = None
    connection_status: ConnectionStatus = ConnectionStatus.NOT_TESTED

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.username and self.app_password)

    @classmethod
    def from_dict(cls, tenant_id: str, data: dict) -> TenantCmsConfig:
        tested = data.get("last_tested_at")
        return cls(
            tenant_id=tenant_id,
            base_url=(data.get("base_url") or "").strip(),
            username=(data.get("username") or "").strip(),
            app_password=(data.get("app_password") or "").strip(),
            is_active=bool(data.get("is_active", False)),
            last_tested_at=datetime.fromisoformat(tested) if tested else None,
            connection_status=ConnectionStatus(
                data.get("connection_status", ConnectionStatus.NOT_TESTED.value)
            ),
        )

    def to_dict(self) -> dict:
        """Full record for storage, including the credential."""
        data = self.to_public_dict()
        data["app_password"] = self.app_password
        return data

    def to_public_dict(self) -> dict:
        """Caller-facing view. Never contains the application password."""
        return {
            "base_url": self.base_url,
            "username": self.username,
            "is_active": self.is_active,
            "last_tested_at": self.last_tested_at.isoformat() if self.last_tested_at else None,
            "connection_status": self.connection_status.value,
            "has_app_password": bool(self.app_password),
        }


class DeliveryMethod(str, Enum):
    DIRECT = "direct"
    RELAY = "relay"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryAttempt:
    method: DeliveryMethod
    success: bool
    error_kind: ErrorKind | None = None
    detail: str = ""


@dataclass
class PublishResult:
    """The single output contract of every publish operation."""

    success: bool
    delivery_method: DeliveryMethod
    cms_post_id: int | None = None
    edit_url: str | None = None
    preview_url: str | None = None
    error_kind: ErrorKind | None = None
    error_detail: str | None = None
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    attempts: list[DeliveryAttempt] = field(default_factory=list)
    states: list[str] = field(default_factory=list)
    local_inconsistency: ErrorKind | None = None

    def __post_init__(self):
        if self.success:
            if self.cms_post_id is None or not self.edit_url:
                raise ValueError("A successful PublishResult needs a post id and an edit URL")
            if self.error_kind is not None:
                raise ValueError("A successful PublishResult cannot carry an error kind")
        else:
            if self.error_kind is None:
                raise ValueError("A failed PublishResult needs an error kind")
            if self.cms_post_id is not None:
                raise ValueError("A failed PublishResult cannot carry a post id")

    @classmethod
    def succeeded(cls, post_id: int, edit_url: str, preview_url: str | None,
                  method: DeliveryMethod, message: str = "") -> PublishResult:
        return cls(
            success=True,
            delivery_method=method,
            cms_post_id=int(post_id),
            edit_url=edit_url,
            preview_url=preview_url,
            message=message,
        )

    @classmethod
    def failed(cls, kind: ErrorKind, detail: str,
               method: DeliveryMethod = DeliveryMethod.FAILED) -> PublishResult:
        return cls(
            success=False,
            delivery_method=method,
            error_kind=kind,
            error_detail=detail,
            message=detail,
        )

    @classmethod
    def from_error(cls, error: PublishError) -> PublishResult:
        return cls.failed(error.kind, error.detail)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "cms_post_id": self.cms_post_id,
            "edit_url": self.edit_url,
            "preview_url": self.preview_url,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_detail": self.error_detail,
            "delivery_method": self.delivery_method.value,
            "message": self.message,
            "warnings": list(self.warnings),
            "attempts": [
                {
                    "method": a.method.value,
                    "success": a.success,
                    "error_kind": a.error_kind.value if a.error_kind else None,
                    "detail": a.detail,
                }
                for a in self.attempts
            ],
            "local_inconsistency": (
                self.local_inconsistency.value if self.local_inconsistency else None
            ),
        }


@dataclass(frozen=True)
class FeaturedImage:
    url: str
    alt_text: str = "Featured image"
    required: bool = False


@dataclass
class DraftPayload:
    """Validated create-post payload shared by the direct and relay paths."""

    title: str
    content: str
    excerpt: str = ""
    meta_title: str = ""
    meta_description: str = ""
    focus_keyword: str = ""
    slug: str = ""
    categories: list = field(default_factory=list)
    tags: list = field(default_factory=list)
    featured_image: FeaturedImage | None = None

    def __post_init__(self):
        if not (self.title or "").strip():
            raise InvalidPayloadError("Title is required")
        if not (self.content or "").strip():
            raise InvalidPayloadError("Content is required")

    @classmethod
    def from_dict(cls, data: dict) -> DraftPayload:
        image = data.get("featured_image")
        if isinstance(image, str):
            image = FeaturedImage(url=image)
        elif isinstance(image, dict) and image.get("url"):
            image = FeaturedImage(
                url=image["url"],
                alt_text=image.get("alt_text") or "Featured image",
                required=bool(image.get("required", False)),
            )
        else:
            image = None
        return cls(
            title=data.get("title") or "",
            content=data.get("content") or "",
            excerpt=data.get("excerpt") or "",
            meta_title=data.get("meta_title") or "",
            meta_description=data.get("meta_description") or "",
            focus_keyword=data.get("focus_keyword") or "",
            slug=data.get("slug") or "",
            categories=list(data.get("categories") or []),
            tags=list(data.get("tags") or []),
            featured_image=image,
        )


class RecordStatus(str, Enum):
    NOT_SENT = "not-sent"
    DRAFT_CREATED = "draft-created"
    PUBLISH_FAILED = "publish-failed"


@dataclass
class DraftPublishRecord:
    status: RecordStatus = RecordStatus.NOT_SENT
    cms_post_id: int | None = None
    edit_url: str | None = None
    preview_url: str | None = None
    delivery_method: DeliveryMethod | None = None
    last_attempted_at: datetime | None = None
    last_error: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> DraftPublishRecord:
        data = data or {}
        attempted = data.get("last_attempted_at")
        method = data.get("delivery_method")
        return cls(
            status=RecordStatus(data.get("status", RecordStatus.NOT_SENT.value)),
            cms_post_id=data.get("cms_post_id"),
            edit_url=data.get("edit_url"),
            preview_url=data.get("preview_url"),
            delivery_method=DeliveryMethod(method) if method else None,
            last_attempted_at=datetime.fromisoformat(attempted) if attempted else None,
            last_error=data.get("last_error"),
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "cms_post_id": self.cms_post_id,
            "edit_url": self.edit_url,
            "preview_url": self.preview_url,
            "delivery_method": self.delivery_method.value if self.delivery_method else None,
            "last_attempted_at": (
                self.last_attempted_at.isoformat() if self.last_attempted_at else None
            ),
            "last_error": self.last_error,
        }


class DraftStatus(str, Enum):
    KEYWORD_SELECTION = "keyword_selection"
    META_GENERATION = "meta_generation"
    META_SELECTION = "meta_selection"
    CONTENT_REVIEW = "content_review"
    READY_TO_PUBLISH = "ready_to_publish"
    PUBLISHED = "published"


@dataclass
class Draft:
    id: str
    tenant_id: str | None = None
    title: str = ""
    focus_keyword: str = ""
    meta_title: str = ""
    meta_description: str = ""
    content: str = ""  # pre-assembled markup, used when there are no blocks
    target_word_count: int | None = None
    status: DraftStatus = DraftStatus.CONTENT_REVIEW
    featured_image: FeaturedImage | None = None
    categories: list = field(default_factory=list)
    tags: list = field(default_factory=list)
    internal_links: list[dict] = field(default_factory=list)
    external_links: list[dict] = field(default_factory=list)
    blocks: list[ContentBlock] = field(default_factory=list)
    publish_record: DraftPublishRecord = field(default_factory=DraftPublishRecord)

    @classmethod
    def from_dict(cls, draft_id: str, data: dict) -> Draft:
        image = data.get("featured_image")
        return cls(
            id=draft_id,
            tenant_id=data.get("tenant_id"),
            title=data.get("title") or "",
            focus_keyword=data.get("focus_keyword") or "",
            meta_title=data.get("meta_title") or "",
            meta_description=data.get("meta_description") or "",
            content=data.get("content") or "",
            target_word_count=data.get("target_word_count"),
            status=DraftStatus(data.get("status", DraftStatus.CONTENT_REVIEW.value)),
            featured_image=(
                FeaturedImage(
                    url=image["url"],
                    alt_text=image.get("alt_text") or "Featured image",
                    required=bool(image.get("required", False)),
                )
                if isinstance(image, dict) and image.get("url")
                else None
            ),
            categories=list(data.get("categories") or []),
            tags=list(data.get("tags") or []),
            internal_links=list(data.get("internal_links") or []),
            external_links=list(data.get("external_links") or []),
            blocks=[ContentBlock.from_dict(b) for b in data.get("blocks") or []],
            publish_record=DraftPublishRecord.from_dict(data.get("publish_record")),
        )

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "title": self.title,
            "focus_keyword": self.focus_keyword,
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "content": self.content,
            "target_word_count": self.target_word_count,
            "status": self.status.value,
            "featured_image": asdict(self.featured_image) if self.featured_image else None,
            "categories": list(self.categories),
            "tags": list(self.tags),
            "internal_links": list(self.internal_links),
            "external_links": list(self.external_links),
            "blocks": [b.to_dict() for b in self.blocks],
            "publish_record": self.publish_record.to_dict(),
        }


@dataclass(frozen=True)
class RehostedMedia:
    media_id: int
    hosted_url: str
    filename: str = ""
    content_type: str = ""


@dataclass
class ConnectionResult:
    success: bool
    user_info: dict | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None
    credential_source: str | None = None


@dataclass
class RelayStatus:
    success: bool
    message: str = ""
    error_kind: ErrorKind | None = None
    error: str | None = None


@dataclass
class ConnectionReport:
    connected: bool
    method: str  # "direct", "relay" or "none"
    direct: ConnectionResult
    relay: RelayStatus | None = None


@dataclass
class DraftPostPage:
    posts: list[dict]
    page: int
    per_page: int
    total: int
    total_pages: int
