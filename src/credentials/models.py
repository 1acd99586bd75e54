"""
Credential data models using Pydantic.
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from src.credentials.errors import InvalidCredentialError, PaginationError

T = TypeVar("T")

AUTH_METHODS = ("social", "idc")
SECRET_FIELDS = ("refresh_token", "access_token", "client_secret")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def next_timestamp(previous: datetime | None = None) -> datetime:
    """Return the current UTC time, strictly later than ``previous``."""
    now = utcnow()
    previous = as_utc(previous)
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class CamelModel(BaseModel):
    """Model that accepts and emits camelCase keys alongside field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialState(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"  # terminal


class CredentialRecord(CamelModel):
    """A stored credential plus pool-management metadata."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    refresh_token: SecretStr
    access_token: SecretStr | None = None
    profile_arn: str | None = None
    expires_at: datetime | None = None
    auth_method: str = "social"
    client_id: str | None = None
    client_secret: SecretStr | None = None
    priority: int = 0  # Lower = served first
    region: str | None = None
    machine_id: str | None = None
    failure_count: int = 0
    disabled: bool = False
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @field_validator("expires_at", "created_at", "updated_at", "deleted_at")
    @classmethod
    def _attach_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @property
    def state(self) -> CredentialState:
        """Lifecycle state, derived from the tombstone."""
        if self.deleted_at is None:
            return CredentialState.ACTIVE
        return CredentialState.DELETED

    @property
    def is_active(self) -> bool:
        return self.state is CredentialState.ACTIVE

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.priority, self.id)

    def to_storage_dict(self) -> dict[str, Any]:
        """Serialize with secret values revealed, for persistence."""
        data = self.model_dump(mode="json")
        for name in SECRET_FIELDS:
            secret = getattr(self, name)
            data[name] = secret.get_secret_value() if secret is not None else None
        return data


class CreateCredential(CamelModel):
    """Creation-time fields; the store assigns id and timestamps."""

    refresh_token: SecretStr
    auth_method: str = "social"
    client_id: str | None = None
    client_secret: SecretStr | None = None
    priority: int = 0
    region: str | None = None
    machine_id: str | None = None

    def validate_for_create(self) -> None:
        """Raise InvalidCredentialError if the spec cannot be stored."""
        if not self.refresh_token.get_secret_value().strip():
            raise InvalidCredentialError("Missing refresh token: refreshToken is empty")
        if self.auth_method not in AUTH_METHODS:
            raise InvalidCredentialError(
                f"Invalid auth method '{self.auth_method}', expected one of {', '.join(AUTH_METHODS)}"
            )
        if self.auth_method == "idc" and not (self.client_id and self.client_secret):
            raise InvalidCredentialError("IdC credentials require clientId and clientSecret")
        if self.priority < 0:
            raise InvalidCredentialError(f"Invalid priority {self.priority}: must be non-negative")

    def to_storage_dict(self) -> dict[str, Any]:
        data = self.model_dump()
        data["refresh_token"] = self.refresh_token.get_secret_value()
        if self.client_secret is not None:
            data["client_secret"] = self.client_secret.get_secret_value()
        return data


# Columns that may be omitted from an update but never set to NULL
NON_NULLABLE_UPDATE_FIELDS = ("refresh_token", "priority", "failure_count", "disabled")


class UpdateCredential(CamelModel):
    """
    Partial update. Only explicitly supplied fields are applied; an explicit
    None clears a nullable column.
    """

    access_token: SecretStr | None = None
    refresh_token: SecretStr | None = None
    profile_arn: str | None = None
    expires_at: datetime | None = None
    priority: NonNegativeInt | None = None
    failure_count: NonNegativeInt | None = None
    disabled: bool | None = None
    machine_id: str | None = None

    @model_validator(mode="after")
    def _reject_cleared_required(self) -> "UpdateCredential":
        for name in NON_NULLABLE_UPDATE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> list[tuple[str, Any]]:
        """Ordered (column, value) pairs for the supplied fields."""
        pairs = []
        for name in type(self).model_fields:
            if name not in self.model_fields_set:
                continue
            value = getattr(self, name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            pairs.append((name, value))
        return pairs


class PaginatedResult(CamelModel, Generic[T]):
    """One page of an ordered collection."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, items: list[T], total: int, page: int, page_size: int) -> "PaginatedResult[T]":
        total_pages = (total + page_size - 1) // page_size
        return cls(
            items=items, total=total, page=page, page_size=page_size, total_pages=total_pages
        )


def validate_page(page: int, page_size: int) -> None:
    """Pages are 1-indexed; both arguments must be positive."""
    if page < 1:
        raise PaginationError(f"page must be a positive integer, got {page}")
    if page_size < 1:
        raise PaginationError(f"page_size must be a positive integer, got {page_size}")


def paginate(items: list[T], page: int, page_size: int) -> PaginatedResult[T]:
    """Slice an already ordered list into a page."""
    validate_page(page, page_size)
    start = (page - 1) * page_size
    return PaginatedResult.build(
        items=items[start:start + page_size],
        total=len(items),
        page=page,
        page_size=page_size,
    )


class BatchImportError(CamelModel):
    index: int
    message: str


class BatchImportResult(CamelModel):
    """Aggregate outcome of a best-effort batch create."""

    imported: int = 0
    failed: int = 0
    errors: list[BatchImportError] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.imported

    def record_failure(self, index: int, message: str) -> None:
        self.failed += 1
        self.errors.append(BatchImportError(index=index, message=message))


class BatchDeleteError(CamelModel):
    id: int
    message: str


class BatchDeleteResult(CamelModel):
    """Aggregate outcome of a best-effort batch delete."""

    deleted: int = 0
    failed: int = 0
    errors: list[BatchDeleteError] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.deleted

    def record_failure(self, credential_id: int, message: str) -> None:
        self.failed += 1
        self.errors.append(BatchDeleteError(id=credential_id, message=message))
