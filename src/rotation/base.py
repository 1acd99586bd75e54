"""
Interface to the Rotation Manager that owns live credential selection.

The selection, failover and token-refresh algorithms live outside this
package; administrative code only talks to them through this interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from src.credentials.models import CreateCredential, CredentialRecord


@dataclass(frozen=True)
class LiveEntry:
    """Live state of one pooled credential."""

    id: int
    priority: int
    disabled: bool
    failure_count: int
    expires_at: datetime | None = None
    auth_method: str | None = None
    has_profile_arn: bool = False


@dataclass(frozen=True)
class LiveSnapshot:
    """Point-in-time view of the pool."""

    entries: list[LiveEntry] = field(default_factory=list)
    current_id: int = 0
    available: int = 0


@dataclass(frozen=True)
class UsageInfo:
    """Usage figures reported by the upstream service."""

    current_usage: float
    usage_limit: float
    subscription_title: str | None = None
    next_reset_at: float | None = None


class RotationManager(ABC):
    """
    Concurrency-safe pool owned by the rotation component.

    Implementations report failures as exceptions; raising the types from
    src.credentials.errors lets callers classify them without inspecting
    messages. Operations on a credential deleted concurrently must fail
    with CredentialNotFoundError.
    """

    @abstractmethod
    def snapshot(self) -> LiveSnapshot:
        """Current live state of every pooled credential."""
        pass

    @abstractmethod
    def snapshot_full(self) -> list[CredentialRecord]:
        """Full records including live failure counts and disabled flags."""
        pass

    @abstractmethod
    def set_disabled(self, credential_id: int, disabled: bool) -> None:
        pass

    @abstractmethod
    def set_priority(self, credential_id: int, priority: int) -> None:
        pass

    @abstractmethod
    def reset_and_enable(self, credential_id: int) -> None:
        """Zero the failure count and clear ``disabled``."""
        pass

    @abstractmethod
    def switch_to_next(self) -> bool:
        """Select another credential. Returns True if the selection changed."""
        pass

    @abstractmethod
    async def get_usage_limits_for(self, credential_id: int) -> UsageInfo:
        """Validate or refresh the token, then query upstream usage."""
        pass

    @abstractmethod
    async def add_credential(self, spec: CreateCredential) -> int:
        """Validate, persist and pool a new credential. Returns its ID."""
        pass

    @abstractmethod
    def delete_credential(self, credential_id: int) -> None:
        """Remove a credential from the pool and its store."""
        pass
