"""Error taxonomy for the publish pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CONFIG_MISSING = "ConfigMissing"
    AUTH_FAILED = "AuthFailed"
    PERMISSION_DENIED = "PermissionDenied"
    NOT_FOUND = "NotFound"
    REMOTE_UNREACHABLE = "RemoteUnreachable"
    REMOTE_REJECTED = "RemoteRejected"
    MEDIA_UPLOAD_FAILED = "MediaUploadFailed"
    LOCAL_PERSISTENCE_FAILED = "LocalPersistenceFailed"
    RELAY_OFFLINE = "RelayOffline"
    RELAY_REJECTED = "RelayRejected"
    INVALID_PAYLOAD = "InvalidPayload"


class PublishError(Exception):
    """Base error. Every subclass maps to exactly one ErrorKind."""

    kind = ErrorKind.REMOTE_REJECTED

    def __init__(self, detail: str, status_code: int | None = None, body: str = ""):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
        self.body = body


class ConfigMissingError(PublishError):
    kind = ErrorKind.CONFIG_MISSING


class AuthenticationError(PublishError):
    kind = ErrorKind.AUTH_FAILED


class PermissionDeniedError(PublishError):
    kind = ErrorKind.PERMISSION_DENIED


class NotFoundError(PublishError):
    kind = ErrorKind.NOT_FOUND


class RemoteUnreachableError(PublishError):
    kind = ErrorKind.REMOTE_UNREACHABLE


class RemoteRejectedError(PublishError):
    kind = ErrorKind.REMOTE_REJECTED


class MediaUploadError(PublishError):
    kind = ErrorKind.MEDIA_UPLOAD_FAILED


class LocalPersistenceError(PublishError):
    kind = ErrorKind.LOCAL_PERSISTENCE_FAILED


class RelayOfflineError(PublishError):
    kind = ErrorKind.RELAY_OFFLINE


class RelayRejectedError(PublishError):
    kind = ErrorKind.RELAY_REJECTED


class InvalidPayloadError(PublishError, ValueError):
    kind = ErrorKind.INVALID_PAYLOAD


# Lower index wins when several delivery paths failed.
SPECIFICITY = [
    ErrorKind.AUTH_FAILED,
    ErrorKind.PERMISSION_DENIED,
    ErrorKind.NOT_FOUND,
    ErrorKind.MEDIA_UPLOAD_FAILED,
    ErrorKind.REMOTE_REJECTED,
    ErrorKind.RELAY_REJECTED,
    ErrorKind.INVALID_PAYLOAD,
    ErrorKind.CONFIG_MISSING,
    ErrorKind.REMOTE_UNREACHABLE,
    ErrorKind.RELAY_OFFLINE,
]


def specificity(kind: ErrorKind | None) -> int:
    if kind in SPECIFICITY:
        return SPECIFICITY.index(kind)
    return len(SPECIFICITY)
