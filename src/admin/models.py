"""
Request and response models for the admin service.
"""
from dataclasses import dataclass
from datetime import datetime

from pydantic import Field, NonNegativeInt

from src.credentials.models import CamelModel, CredentialRecord

# Fixed column order for flat (CSV) export
EXPORT_COLUMNS = (
    "id",
    "refresh_token",
    "access_token",
    "profile_arn",
    "expires_at",
    "auth_method",
    "client_id",
    "client_secret",
    "priority",
    "region",
    "machine_id",
    "failure_count",
    "disabled",
)


class CredentialStatusItem(CamelModel):
    id: int
    priority: int
    disabled: bool
    failure_count: int
    is_current: bool
    expires_at: datetime | None = None
    auth_method: str | None = None
    has_profile_arn: bool = False


class CredentialsStatusResponse(CamelModel):
    """Paginated live status of the pool."""

    total: int
    available: int
    current_id: int
    page: int
    page_size: int
    total_pages: int
    credentials: list[CredentialStatusItem]


class BalanceResponse(CamelModel):
    id: int
    subscription_title: str | None = None
    current_usage: float
    usage_limit: float
    remaining: float
    usage_percentage: float
    next_reset_at: float | None = None


class AddCredentialResponse(CamelModel):
    success: bool = True
    message: str
    credential_id: int


@dataclass(frozen=True)
class DisableResult:
    """
    Outcome of a disable/enable call, including the failover attempt made
    when the current credential is disabled.
    """

    id: int
    disabled: bool
    switch_attempted: bool = False
    switched: bool = False
    switch_error: str | None = None


class CredentialExportItem(CamelModel):
    """Field-complete export row, in EXPORT_COLUMNS order."""

    id: int
    refresh_token: str
    access_token: str | None = None
    profile_arn: str | None = None
    expires_at: datetime | None = None
    auth_method: str = "social"
    client_id: str | None = None
    client_secret: str | None = None
    priority: int = 0
    region: str | None = None
    machine_id: str | None = None
    failure_count: int = 0
    disabled: bool = False

    @classmethod
    def from_record(cls, record: CredentialRecord) -> "CredentialExportItem":
        return cls(**record.to_storage_dict())

    def to_row(self) -> list[str]:
        """Flat string values for tabular export."""
        row = []
        for column in EXPORT_COLUMNS:
            value = getattr(self, column)
            if value is None:
                row.append("")
            elif isinstance(value, datetime):
                row.append(value.isoformat())
            elif isinstance(value, bool):
                row.append(str(value).lower())
            else:
                row.append(str(value))
        return row


class SetDisabledRequest(CamelModel):
    disabled: bool


class SetPriorityRequest(CamelModel):
    priority: NonNegativeInt


class BatchImportRequest(CamelModel):
    # Items are validated one by one so a bad item only fails itself
    credentials: list[dict] = Field(default_factory=list)


class BatchDeleteRequest(CamelModel):
    ids: list[int] = Field(default_factory=list)
