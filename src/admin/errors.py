"""
Admin service error taxonomy and failure classification.
"""
import re
from typing import Any

from src.credentials.errors import (
    CredentialNotFoundError,
    InvalidCredentialError,
    UpstreamServiceError,
)


class AdminServiceError(Exception):
    """Base class for classified admin failures."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict[str, Any]:
        return {"error": {"type": self.kind, "message": self.message}}


class NotFoundError(AdminServiceError):
    kind = "not_found"
    status_code = 404

    def __init__(self, credential_id: int | None):
        if credential_id is None:
            super().__init__("Credential does not exist")
        else:
            super().__init__(f"Credential {credential_id} does not exist")
        self.credential_id = credential_id


class InvalidCredentialAdminError(AdminServiceError):
    kind = "invalid_credential"
    status_code = 400


class UpstreamError(AdminServiceError):
    kind = "upstream_error"
    status_code = 502


class InternalError(AdminServiceError):
    kind = "internal_error"
    status_code = 500


# Message evidence, checked in order; first match wins.
# Not-found only counts when the message is about a credential
NOT_FOUND_PATTERN = re.compile(
    r"\bcredentials?(?:\s+#?\d+)?\s+(?:does not exist|not found)|no such credential"
)
CREDENTIAL_ID_PATTERN = re.compile(r"\bcredentials?\s+#?(\d+)")
INVALID_CREDENTIAL_MARKERS = (
    "missing refresh token",
    "refreshtoken is empty",
    "refresh token is empty",
    "truncated",
    "invalid token",
    "invalid_grant",
    "invalid credential",
    "expired or invalid",
    "rejected",
    "unauthorized",
    "permission denied",
    "forbidden",
    "only disabled credentials can be deleted",
    "disable the credential before deleting",
)
RATE_LIMIT_MARKERS = ("rate limited", "rate-limited", "too many requests")
UPSTREAM_MARKERS = (
    "error trying to connect",
    "connection",
    "timeout",
    "timed out",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "server error",
    "token refresh failed",
)
UPSTREAM_STATUS = re.compile(r"\b(?:http|status)\s*(?:code)?\s*:?\s*5\d\d\b")


def _contains(message: str, markers: tuple[str, ...]) -> bool:
    return any(marker in message for marker in markers)


def classify_error(
    error: Exception, credential_id: int | None = None, *, validating: bool = False
) -> AdminServiceError:
    """
    Map a failure from the store or rotation manager to one error kind.

    Typed failures map directly. Anything else is classified from its
    message. With ``validating`` set (adding credentials), rate limiting is
    reported as a rejected credential rather than an upstream fault.
    """
    if isinstance(error, AdminServiceError):
        return error
    if isinstance(error, CredentialNotFoundError):
        return NotFoundError(error.credential_id)
    if isinstance(error, InvalidCredentialError):
        return InvalidCredentialAdminError(str(error))
    if isinstance(error, (UpstreamServiceError, ConnectionError, TimeoutError)):
        return UpstreamError(str(error) or type(error).__name__)

    message = str(error)
    lowered = message.lower()

    if NOT_FOUND_PATTERN.search(lowered):
        if credential_id is None:
            match = CREDENTIAL_ID_PATTERN.search(lowered)
            credential_id = int(match.group(1)) if match else None
        return NotFoundError(credential_id)
    if _contains(lowered, INVALID_CREDENTIAL_MARKERS) or (
        validating and _contains(lowered, RATE_LIMIT_MARKERS)
    ):
        return InvalidCredentialAdminError(message)
    if (
        _contains(lowered, UPSTREAM_MARKERS)
        or _contains(lowered, RATE_LIMIT_MARKERS)
        or UPSTREAM_STATUS.search(lowered)
    ):
        return UpstreamError(message)
    return InternalError(message)
