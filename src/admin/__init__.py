"""
Administrative orchestration over the credential pool.
"""
from src.admin.errors import (
    AdminServiceError,
    InternalError,
    InvalidCredentialAdminError,
    NotFoundError,
    UpstreamError,
    classify_error,
)
from src.admin.service import AdminService

__all__ = [
    "AdminService",
    "AdminServiceError",
    "InternalError",
    "InvalidCredentialAdminError",
    "NotFoundError",
    "UpstreamError",
    "classify_error",
]
